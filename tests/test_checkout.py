from __future__ import annotations

import base64
import logging

from fastapi.testclient import TestClient
from sqlmodel import select

from app.config import settings
from app.main import app
from app.models.course import Course
from app.models.purchase import Purchase, PurchaseStatus
from app.models.system_setting import SystemSetting
from app.services.payme_config import (
    MOCK_SECRET_KEY,
    PaymeConfig,
    generate_payme_url,
    load_payme_config,
    to_tiyin,
    warn_if_mock_credentials,
)
from tests.conftest import bearer


def test_checkout_creates_pending_purchase(client, session, user, course):
    response = client.post("/payments/payme/create", json={"course_id": course.id}, headers=bearer(user))

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["amount"] == 150000

    purchase = session.get(Purchase, data["purchase_id"])
    assert purchase.user_id == user.id
    assert purchase.status == PurchaseStatus.PENDING
    assert purchase.provider_txn_id is None


def test_checkout_in_mock_mode_links_to_success_page(client, user, course):
    response = client.post("/payments/payme/create", json={"course_id": course.id}, headers=bearer(user))

    assert response.json()["payment_url"].endswith("/tma/payment-success?amount=150000")


def test_checkout_with_real_merchant_builds_payme_link(client, session, user, course):
    session.add(SystemSetting(key="PAYME_MERCHANT_ID", value="merchant-42"))
    session.commit()

    data = client.post("/payments/payme/create", json={"course_id": course.id}, headers=bearer(user)).json()

    prefix = "https://checkout.paycom.uz/"
    assert data["payment_url"].startswith(prefix)
    decoded = base64.b64decode(data["payment_url"][len(prefix):]).decode()
    assert decoded == f"m=merchant-42;ac.order_id={data['purchase_id']};a=15000000;c=uz"


def test_checkout_requires_login(client, course):
    response = client.post("/payments/payme/create", json={"course_id": course.id})

    assert response.status_code == 401


def test_checkout_unknown_or_inactive_course(client, session, user):
    hidden = Course(title="Arxiv", price=1000, is_active=False)
    session.add(hidden)
    session.commit()

    for course_id in (9999, hidden.id):
        response = client.post("/payments/payme/create", json={"course_id": course_id}, headers=bearer(user))
        assert response.status_code == 404

    assert session.exec(select(Purchase)).all() == []


def test_disabled_user_is_forbidden(client, session, user, course):
    user.can_login = False
    session.add(user)
    session.commit()

    response = client.post("/payments/payme/create", json={"course_id": course.id}, headers=bearer(user))

    assert response.status_code == 403


def test_settings_rows_override_environment(session):
    session.add(SystemSetting(key="PAYME_SECRET_KEY", value="from-admin"))
    session.add(SystemSetting(key="PAYME_MERCHANT_ID", value=""))
    session.commit()

    config = load_payme_config(session, settings)

    assert config.secret_key == "from-admin"
    assert config.merchant_id == settings.PAYME_MERCHANT_ID
    assert config.login == "Paycom"
    assert config.is_mock


def test_generate_payme_url_uses_language():
    real = PaymeConfig(
        login="Paycom",
        merchant_id="m1",
        secret_key="k",
        checkout_url="https://checkout.test",
    )

    url = generate_payme_url(real, 500, {"order_id": "abc"}, lang="ru")

    assert url.startswith("https://checkout.test/")
    encoded = url[len("https://checkout.test/"):]
    assert base64.b64decode(encoded).decode() == "m=m1;ac.order_id=abc;a=500;c=ru"


def test_to_tiyin_rounds():
    assert to_tiyin(1999.99) == 199999


def test_mock_secret_outside_local_is_flagged(monkeypatch, caplog):
    monkeypatch.setattr(settings, "PAYME_SECRET_KEY", MOCK_SECRET_KEY)
    monkeypatch.setattr(settings, "ENV", "production")

    with caplog.at_level(logging.WARNING, logger="app.services.payme_config"):
        assert warn_if_mock_credentials(settings) is True

    assert "PAYME_SECRET_KEY is the mock key" in caplog.text


def test_mock_secret_is_fine_locally_and_real_keys_are_quiet(monkeypatch, caplog):
    monkeypatch.setattr(settings, "PAYME_SECRET_KEY", MOCK_SECRET_KEY)
    monkeypatch.setattr(settings, "ENV", "local")
    assert warn_if_mock_credentials(settings) is False

    monkeypatch.setattr(settings, "ENV", "production")
    monkeypatch.setattr(settings, "PAYME_SECRET_KEY", "real-key")
    assert warn_if_mock_credentials(settings) is False

    assert caplog.records == []


def test_startup_warns_about_mock_secret(monkeypatch, caplog):
    monkeypatch.setattr(settings, "PAYME_SECRET_KEY", MOCK_SECRET_KEY)
    monkeypatch.setattr(settings, "ENV", "staging")

    with caplog.at_level(logging.WARNING, logger="app.services.payme_config"):
        with TestClient(app):
            pass

    assert "ENV=staging" in caplog.text
