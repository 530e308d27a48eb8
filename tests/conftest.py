from __future__ import annotations

import base64
import os
from datetime import datetime

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENV", "test")
os.environ["PAYME_LOGIN"] = "Paycom"
os.environ["PAYME_MERCHANT_ID"] = "mock_merchant_id"
os.environ["PAYME_SECRET_KEY"] = "test-payme-key"
os.environ["TELEGRAM_BOT_TOKEN"] = "test-bot-token"
os.environ["ADMIN_TELEGRAM_ID"] = ""
os.environ["CRON_SECRET"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app import models  # noqa: F401
from app.database import get_session
from app.main import app
from app.models.course import Course
from app.models.purchase import Purchase, PurchaseStatus
from app.models.user import User
from app.services.payme_transactions import to_millis
from app.utils.token import issue_user_token

PAYME_KEY = "test-payme-key"


class FakeTelegram:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.raise_error: Exception | None = None

    def send(self, chat_id, text, parse_mode="HTML", bot_token=None) -> bool:
        if self.raise_error is not None:
            raise self.raise_error
        self.sent.append((str(chat_id), text))
        return True


@pytest.fixture(autouse=True)
def telegram(monkeypatch) -> FakeTelegram:
    fake = FakeTelegram()
    monkeypatch.setattr("app.notifications.telegram_handlers.send_telegram_message", fake.send)
    return fake


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def _add(session: Session, obj):
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return obj


@pytest.fixture
def user(session) -> User:
    return _add(session, User(first_name="Aziz", last_name="Karimov", username="aziz", telegram_id="1001"))


@pytest.fixture
def admin(session) -> User:
    return _add(session, User(first_name="Admin", role="admin"))


@pytest.fixture
def course(session) -> Course:
    return _add(session, Course(title="Python asoslari", title_ru="Основы Python", price=150000, duration_days=30))


@pytest.fixture
def make_purchase(session):
    def _make(user: User, course: Course, **fields) -> Purchase:
        fields.setdefault("amount", course.price)
        fields.setdefault("status", PurchaseStatus.PENDING)
        return _add(session, Purchase(user_id=user.id, course_id=course.id, **fields))

    return _make


@pytest.fixture
def purchase(make_purchase, user, course) -> Purchase:
    return make_purchase(user, course)


def bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {issue_user_token(user)}"}


def basic_auth(login: str = "Paycom", key: str = PAYME_KEY) -> dict:
    token = base64.b64encode(f"{login}:{key}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


def now_ms() -> int:
    return to_millis(datetime.utcnow())
