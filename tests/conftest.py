"""
Pytest configuration: environment first, then the app.

Settings are read at import time, so every variable must be in place
before anything under ``app`` is imported.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import os
import tempfile
import time
from datetime import date
from typing import Any, Dict, List, Optional

_test_dir = tempfile.mkdtemp(prefix="moodboard_test_")
os.environ["DATABASE_URL"] = f"sqlite:///{_test_dir}/unused.db"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_PRICE_ID_BASIC"] = "price_basic"
os.environ["STRIPE_PRICE_ID_PRO"] = "price_pro"
os.environ["STRIPE_PRICE_ID_YEARLY"] = "price_yearly"
os.environ["UPLOADS_DIR"] = os.path.join(_test_dir, "uploads")
os.environ["ADMIN_API_KEY"] = "admin-test-key"
os.environ["CELERY_BROKER_URL"] = "redis://localhost:6399/0"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.dependencies import get_db
from app.core.moodboards.models import MoodBoard  # noqa: F401  registers table
from app.core.users.models import User
from app.database.base import Base
from app.main import app
from app.utils.redis_client import reset_redis


WEBHOOK_SECRET = "whsec_test_secret"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeRedis:
    """In-memory stand-in covering the list commands the app uses."""

    def __init__(self) -> None:
        self.lists: Dict[str, List[str]] = {}

    def ping(self) -> bool:
        return True

    def lpush(self, key: str, value: str) -> int:
        self.lists.setdefault(key, []).insert(0, value)
        return len(self.lists[key])

    def ltrim(self, key: str, start: int, end: int) -> bool:
        items = self.lists.get(key, [])
        self.lists[key] = items[start : end + 1]
        return True

    def lrange(self, key: str, start: int, end: int) -> List[str]:
        items = self.lists.get(key, [])
        return items[start : end + 1]


class BrokenRedis:
    def __getattr__(self, name: str) -> Any:
        def fail(*args: Any, **kwargs: Any) -> Any:
            raise ConnectionError("redis is down")

        return fail


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def fake_redis(monkeypatch):
    redis = FakeRedis()
    monkeypatch.setattr("app.core.billing.failures.get_redis", lambda: redis)
    yield redis
    reset_redis()


@pytest.fixture
def make_user(db_session):
    def _make_user(
        user_id: str = "u1",
        *,
        email: Optional[str] = "u1@example.com",
        subscription_id: Optional[str] = None,
        status: str = "inactive",
        tier: str = "free",
        used: int = 0,
        limit: int = 0,
        last_reset: Optional[date] = None,
    ) -> User:
        user = User(
            user_id=user_id,
            email=email,
            subscription_id=subscription_id,
            subscription_status=status,
            subscription_tier=tier,
            images_used_this_month=used,
            images_limit_per_month=limit,
            last_reset_date=last_reset or date.today(),
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    ts = timestamp if timestamp is not None else int(time.time())
    signed = f"{ts}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={signature}"


def stripe_event(event_type: str, obj: Dict[str, Any], event_id: str = "evt_1") -> str:
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "data": {"object": obj},
        }
    )


@pytest.fixture
def post_event(client):
    def _post_event(event_type: str, obj: Dict[str, Any], event_id: str = "evt_1"):
        body = stripe_event(event_type, obj, event_id)
        return client.post(
            "/api/v1/webhooks/stripe",
            content=body,
            headers={
                "Stripe-Signature": sign_payload(body),
                "Content-Type": "application/json",
            },
        )

    return _post_event
