from __future__ import annotations

from datetime import datetime, timedelta

import pytest
import requests
from sqlmodel import select

from app.models.chat import ChatMember
from app.models.notifications import Notification
from app.models.purchase import PurchaseStatus
from app.models.purchase_event import PurchaseEvent
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.system_setting import SystemSetting
from tests.conftest import basic_auth, now_ms

WEBHOOK = "/payments/payme/webhook"
PRICE_TIYIN = 150000 * 100


def rpc(client, method, params, *, headers=None, rpc_id=1):
    return client.post(
        WEBHOOK,
        json={"id": rpc_id, "method": method, "params": params},
        headers=basic_auth() if headers is None else headers,
    )


def create(client, purchase, txn_id="txn-1", time=None):
    return rpc(client, "CreateTransaction", {
        "id": txn_id,
        "time": time or now_ms(),
        "amount": PRICE_TIYIN,
        "account": {"order_id": purchase.id},
    })


def perform(client, txn_id="txn-1"):
    return rpc(client, "PerformTransaction", {"id": txn_id})


def cancel(client, txn_id="txn-1", reason=3):
    return rpc(client, "CancelTransaction", {"id": txn_id, "reason": reason})


def subscriptions_of(session, user, course):
    session.expire_all()
    return session.exec(
        select(Subscription)
        .where(Subscription.user_id == user.id)
        .where(Subscription.course_id == course.id)
    ).all()


# -------------------------
# authentication
# -------------------------

def test_missing_auth_is_401_and_changes_nothing(client, session, purchase):
    response = rpc(
        client,
        "CreateTransaction",
        {"id": "txn-1", "time": now_ms(), "amount": PRICE_TIYIN, "account": {"order_id": purchase.id}},
        headers={},
    )

    assert response.status_code == 401
    assert response.json()["error"]["code"] == -32504

    session.refresh(purchase)
    assert purchase.provider_txn_id is None


def test_wrong_key_is_401(client, purchase):
    response = rpc(
        client,
        "PerformTransaction",
        {"id": "txn-1"},
        headers=basic_auth(key="wrong"),
    )

    assert response.status_code == 401
    assert response.json()["error"]["code"] == -32504


def test_admin_configured_key_overrides_environment(client, session, purchase):
    session.add(SystemSetting(key="PAYME_SECRET_KEY", value="rotated-key"))
    session.commit()

    params = {"account": {"order_id": purchase.id}, "amount": PRICE_TIYIN}

    assert rpc(client, "CheckPerformTransaction", params).status_code == 401

    response = rpc(client, "CheckPerformTransaction", params, headers=basic_auth(key="rotated-key"))
    assert response.status_code == 200
    assert response.json()["result"] == {"allow": True}


# -------------------------
# envelope
# -------------------------

def test_response_echoes_request_id(client, purchase):
    response = rpc(
        client,
        "CheckPerformTransaction",
        {"account": {"order_id": purchase.id}},
        rpc_id=4242,
    )

    assert response.json()["id"] == 4242


def test_unknown_method(client):
    response = rpc(client, "GetStatement", {"from": 0, "to": 1})

    assert response.status_code == 200
    assert response.json()["error"]["code"] == -32601


def test_unparsable_body(client):
    response = client.post(WEBHOOK, content=b"{not json", headers=basic_auth())

    assert response.status_code == 200
    assert response.json() == {
        "id": None,
        "error": {"code": -32700, "message": "Could not parse request body"},
    }


def test_invalid_params(client):
    response = rpc(client, "PerformTransaction", {})

    assert response.status_code == 200
    assert response.json()["error"]["code"] == -32600


# -------------------------
# CheckPerformTransaction
# -------------------------

def test_check_perform_allows_pending_purchase(client, purchase):
    response = rpc(client, "CheckPerformTransaction", {
        "account": {"order_id": purchase.id},
        "amount": PRICE_TIYIN,
    })

    assert response.status_code == 200
    assert response.json() == {"id": 1, "result": {"allow": True}}


def test_check_perform_unknown_order(client):
    response = rpc(client, "CheckPerformTransaction", {"account": {"order_id": "missing"}})

    assert response.status_code == 200
    assert response.json()["error"]["code"] == -31050


def test_check_perform_paid_order(client, make_purchase, user, course):
    paid = make_purchase(user, course, status=PurchaseStatus.PAID)

    response = rpc(client, "CheckPerformTransaction", {"account": {"order_id": paid.id}})

    assert response.json()["error"]["code"] == -31051


def test_check_perform_wrong_amount(client, purchase):
    response = rpc(client, "CheckPerformTransaction", {
        "account": {"order_id": purchase.id},
        "amount": PRICE_TIYIN - 100,
    })

    assert response.json()["error"]["code"] == -31001


# -------------------------
# CreateTransaction
# -------------------------

def test_create_links_transaction(client, session, purchase):
    create_time = now_ms()

    response = create(client, purchase, time=create_time)

    assert response.status_code == 200
    assert response.json()["result"] == {
        "create_time": create_time,
        "transaction": "txn-1",
        "state": 1,
    }

    session.refresh(purchase)
    assert purchase.provider_txn_id == "txn-1"
    assert purchase.provider_create_time == create_time
    assert purchase.status == PurchaseStatus.PENDING


def test_create_is_idempotent(client, session, purchase):
    first = create(client, purchase, time=1700000000000).json()
    second = create(client, purchase, time=1700000099999).json()

    assert first == second

    events = session.exec(
        select(PurchaseEvent).where(PurchaseEvent.purchase_id == purchase.id)
    ).all()
    assert [e.event_type for e in events] == ["transaction_created"]


def test_create_with_another_transaction_id_conflicts(client, purchase):
    create(client, purchase, txn_id="txn-1")

    response = create(client, purchase, txn_id="txn-2")

    assert response.json()["error"]["code"] == -31008


def test_create_reusing_transaction_on_another_order_conflicts(client, make_purchase, user, course, purchase):
    other = make_purchase(user, course)
    create(client, purchase, txn_id="txn-1")

    response = create(client, other, txn_id="txn-1")

    assert response.json()["error"]["code"] == -31008


def test_create_on_paid_order(client, make_purchase, user, course):
    paid = make_purchase(user, course, status=PurchaseStatus.PAID)

    response = create(client, paid)

    assert response.json()["error"]["code"] == -31051


def test_create_unknown_order(client):
    response = rpc(client, "CreateTransaction", {
        "id": "txn-1",
        "time": now_ms(),
        "account": {"order_id": "missing"},
    })

    assert response.json()["error"]["code"] == -31050


# -------------------------
# PerformTransaction
# -------------------------

def test_perform_unknown_transaction(client):
    response = perform(client, "nope")

    assert response.status_code == 200
    assert response.json()["error"]["code"] == -31003


def test_perform_pays_and_grants_subscription(client, session, purchase, user, course, telegram):
    create(client, purchase)

    response = perform(client)

    assert response.status_code == 200
    result = response.json()["result"]
    assert result["transaction"] == "txn-1"
    assert result["state"] == 2
    assert result["perform_time"] > 0

    session.refresh(purchase)
    assert purchase.status == PurchaseStatus.PAID
    assert purchase.perform_time is not None

    [subscription] = subscriptions_of(session, user, course)
    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.ends_at - purchase.perform_time == timedelta(days=30)

    # side effects
    notifications = session.exec(select(Notification).where(Notification.user_id == user.id)).all()
    assert len(notifications) == 1
    assert notifications[0].related_id == purchase.id

    assert [chat_id for chat_id, _ in telegram.sent] == ["1001"]

    members = session.exec(select(ChatMember).where(ChatMember.user_id == user.id)).all()
    assert len(members) == 1


def test_perform_retry_does_not_grant_twice(client, session, purchase, user, course, telegram):
    create(client, purchase)
    first = perform(client).json()
    [subscription] = subscriptions_of(session, user, course)
    ends_at = subscription.ends_at

    second = perform(client).json()

    assert second == first

    [subscription] = subscriptions_of(session, user, course)
    assert subscription.ends_at == ends_at

    assert len(session.exec(select(Notification)).all()) == 1
    assert len(telegram.sent) == 1


def test_perform_extends_active_subscription(client, session, purchase, user, course):
    current_end = datetime.utcnow() + timedelta(days=10)
    session.add(Subscription(
        user_id=user.id,
        course_id=course.id,
        starts_at=datetime.utcnow() - timedelta(days=20),
        ends_at=current_end,
    ))
    session.commit()

    create(client, purchase)
    perform(client)

    [subscription] = subscriptions_of(session, user, course)
    assert subscription.ends_at == current_end + timedelta(days=30)


def test_perform_after_cancel_conflicts(client, session, purchase):
    create(client, purchase)
    cancel(client)

    response = perform(client)

    assert response.json()["error"]["code"] == -31008
    session.refresh(purchase)
    assert purchase.status == PurchaseStatus.FAILED


def test_grant_failure_rolls_back_payment(client, session, purchase, user, course, monkeypatch):
    create(client, purchase)

    def broken_grant(*args, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr("app.services.payme_transactions.grant_subscription", broken_grant)

    response = perform(client)

    assert response.status_code == 500
    assert response.json()["error"]["code"] == -32400

    session.refresh(purchase)
    assert purchase.status == PurchaseStatus.PENDING
    assert subscriptions_of(session, user, course) == []

    # Payme retries once the fault is gone
    monkeypatch.undo()
    monkeypatch.setattr(
        "app.notifications.telegram_handlers.send_telegram_message",
        lambda *args, **kwargs: True,
    )

    assert perform(client).json()["result"]["state"] == 2
    session.refresh(purchase)
    assert purchase.status == PurchaseStatus.PAID


def test_side_effect_failure_does_not_affect_payment(client, session, purchase, user, course, telegram):
    telegram.raise_error = requests.ConnectionError("telegram unreachable")
    create(client, purchase)

    response = perform(client)

    assert response.status_code == 200
    assert response.json()["result"]["state"] == 2

    session.refresh(purchase)
    assert purchase.status == PurchaseStatus.PAID
    assert len(subscriptions_of(session, user, course)) == 1

    # the remaining channels still ran
    assert len(session.exec(select(Notification)).all()) == 1
    assert len(session.exec(select(ChatMember)).all()) == 1


# -------------------------
# CancelTransaction
# -------------------------

def test_cancel_pending_transaction(client, session, purchase):
    create(client, purchase)

    response = cancel(client, reason=5)

    result = response.json()["result"]
    assert result["transaction"] == "txn-1"
    assert result["state"] == -1
    assert result["cancel_time"] > 0

    session.refresh(purchase)
    assert purchase.status == PurchaseStatus.FAILED
    assert purchase.cancel_reason == 5


def test_cancel_is_idempotent(client, purchase):
    create(client, purchase)

    first = cancel(client).json()
    second = cancel(client).json()

    assert first == second


def test_cancel_unknown_transaction_is_a_no_op(client):
    response = cancel(client, txn_id="ghost")

    assert response.status_code == 200
    result = response.json()["result"]
    assert result["transaction"] == "ghost"
    assert result["state"] == -1


def test_cancel_after_perform_keeps_purchase_paid(client, session, purchase, user, course):
    create(client, purchase)
    perform(client)

    response = cancel(client)

    assert response.json()["result"] == {"transaction": "txn-1", "cancel_time": 0, "state": 2}

    session.refresh(purchase)
    assert purchase.status == PurchaseStatus.PAID
    [subscription] = subscriptions_of(session, user, course)
    assert subscription.status == SubscriptionStatus.ACTIVE


@pytest.mark.parametrize("method", ["PerformTransaction", "CancelTransaction"])
def test_terminal_purchase_never_returns_to_pending(client, session, purchase, method):
    create(client, purchase)
    rpc(client, method, {"id": "txn-1", "reason": 1})

    # every later call leaves the terminal status alone
    perform(client)
    cancel(client)
    create(client, purchase)

    session.refresh(purchase)
    assert purchase.status != PurchaseStatus.PENDING
