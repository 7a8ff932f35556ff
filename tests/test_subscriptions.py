from __future__ import annotations

import json

import pytest
from sqlalchemy.exc import OperationalError

from app.core.billing.stripe_client import (
    BillingProviderError,
    CreatedCheckoutSession,
    RemoteCheckoutSession,
    RemoteSubscription,
)
from app.core.config import settings
from app.core.subscriptions import services as subscription_services
from app.core.subscriptions.tiers import PRICE_TABLE
from app.core.users.models import User


SERVICES = "app.core.subscriptions.services"


def _get_user(db_session, user_id: str = "u1") -> User:
    db_session.expire_all()
    return db_session.query(User).filter(User.user_id == user_id).first()


def _remote(status: str, sub_id: str = "sub_abc", price_id: str = "price_basic", **kwargs):
    return RemoteSubscription(id=sub_id, status=status, price_id=price_id, **kwargs)


@pytest.fixture
def stripe_down(monkeypatch):
    def fail(*args, **kwargs):
        raise BillingProviderError("connection error")

    monkeypatch.setattr(f"{SERVICES}.fetch_subscription", fail)
    monkeypatch.setattr(f"{SERVICES}.fetch_checkout_session", fail)
    monkeypatch.setattr(f"{SERVICES}.fetch_product_name", fail)


def test_check_without_record(client, db_session):
    resp = client.post("/api/v1/check-subscription", json={"userId": "ghost"})

    assert resp.status_code == 200
    result = resp.json()["result"]
    assert result["hasSubscription"] is False
    assert result["subscriptionStatus"] == "inactive"
    assert result["message"] == "No subscription found"


def test_check_syncs_drifted_status(client, db_session, make_user, monkeypatch):
    make_user(subscription_id="sub_abc", status="active", tier="basic", limit=3)
    monkeypatch.setattr(f"{SERVICES}.fetch_subscription", lambda sub_id: _remote("canceled"))

    resp = client.post("/api/v1/check-subscription", json={"userId": "u1"})

    result = resp.json()["result"]
    assert result["hasSubscription"] is False
    assert result["subscriptionStatus"] == "cancelled"
    assert result["stripeStatus"] == "canceled"
    assert result["verified"] is True
    assert result["source"] == "stripe"
    assert _get_user(db_session).subscription_status == "cancelled"


def test_check_falls_back_when_stripe_is_down(client, db_session, make_user, stripe_down):
    make_user(subscription_id="sub_abc", status="active", tier="basic", limit=3)

    resp = client.post("/api/v1/check-subscription", json={"userId": "u1"})

    assert resp.status_code == 200
    result = resp.json()["result"]
    assert result["hasSubscription"] is True
    assert result["subscriptionStatus"] == "active"
    assert result["verified"] is False
    assert result["source"] == "local"
    assert _get_user(db_session).subscription_status == "active"


def test_check_cleans_serialized_id(client, db_session, make_user, monkeypatch):
    stored = json.dumps({"id": "sub_abc", "object": "subscription", "status": "active"})
    make_user(subscription_id=stored, status="inactive")
    monkeypatch.setattr(f"{SERVICES}.fetch_subscription", lambda sub_id: _remote("active"))

    resp = client.post("/api/v1/check-subscription", json={"userId": "u1"})

    assert resp.json()["result"]["hasSubscription"] is True
    user = _get_user(db_session)
    assert user.subscription_id == "sub_abc"
    assert user.subscription_status == "active"


def test_check_unparsable_serialized_id_uses_local(client, db_session, make_user):
    make_user(subscription_id="{not json", status="inactive")

    resp = client.post("/api/v1/check-subscription", json={"userId": "u1"})

    result = resp.json()["result"]
    assert result["verified"] is False
    assert result["subscriptionStatus"] == "inactive"
    assert _get_user(db_session).subscription_id == "{not json"


def test_check_resolves_checkout_session_id(client, db_session, make_user, monkeypatch):
    make_user(subscription_id="cs_test_1", status="inactive")
    monkeypatch.setattr(
        f"{SERVICES}.fetch_checkout_session",
        lambda session_id: RemoteCheckoutSession(
            id=session_id,
            payment_status="paid",
            subscription_id="sub_resolved",
        ),
    )
    monkeypatch.setattr(
        f"{SERVICES}.fetch_subscription",
        lambda sub_id: _remote("trialing", sub_id=sub_id),
    )

    resp = client.post("/api/v1/check-subscription", json={"userId": "u1"})

    assert resp.json()["result"]["subscriptionStatus"] == "active"
    user = _get_user(db_session)
    assert user.subscription_id == "sub_resolved"
    assert user.subscription_status == "active"


def test_check_unresolved_checkout_keeps_local(client, db_session, make_user, monkeypatch):
    make_user(subscription_id="cs_test_2", status="inactive")
    monkeypatch.setattr(
        f"{SERVICES}.fetch_checkout_session",
        lambda session_id: RemoteCheckoutSession(id=session_id, payment_status="unpaid"),
    )

    resp = client.post("/api/v1/check-subscription", json={"userId": "u1"})

    result = resp.json()["result"]
    assert result["verified"] is False
    assert _get_user(db_session).subscription_id == "cs_test_2"


def test_check_requires_user_id(client, db_session):
    resp = client.post("/api/v1/check-subscription", json={})

    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "Missing userId"


def test_cancel_marks_active_subscription_cancelled(client, db_session, make_user):
    make_user(subscription_id="sub_abc", status="active", tier="basic", limit=3)

    resp = client.post("/api/v1/cancel-subscription", json={"userId": "u1"})

    assert resp.status_code == 200
    assert resp.json()["result"]["message"] == "Subscription cancelled successfully"
    assert _get_user(db_session).subscription_status == "cancelled"


def test_cancel_without_subscription_is_noop(client, db_session, make_user):
    make_user()

    resp = client.post("/api/v1/cancel-subscription", json={"userId": "u1"})

    assert resp.status_code == 200
    assert _get_user(db_session).subscription_status == "inactive"


def test_verify_session_activates(client, db_session, make_user, monkeypatch):
    make_user(used=1)
    monkeypatch.setattr(
        f"{SERVICES}.fetch_checkout_session",
        lambda session_id: RemoteCheckoutSession(
            id=session_id,
            payment_status="paid",
            subscription_id="sub_new",
            subscription_status="active",
            customer_email="u1@example.com",
            metadata={"user_id": "u1", "billing_interval": "pro"},
        ),
    )
    monkeypatch.setattr(
        f"{SERVICES}.fetch_subscription",
        lambda sub_id: _remote("active", sub_id=sub_id, price_id="price_pro"),
    )

    resp = client.post("/api/v1/verify-session", json={"sessionId": "cs_test_9"})

    assert resp.status_code == 200
    result = resp.json()["result"]
    assert result["session"]["subscriptionId"] == "sub_new"
    assert result["user"]["subscriptionTier"] == "pro"
    assert result["user"]["imagesLimitPerMonth"] == 25
    assert result["user"]["imagesUsedThisMonth"] == 0

    user = _get_user(db_session)
    assert user.subscription_status == "active"
    assert user.subscription_id == "sub_new"


def test_verify_session_unpaid(client, db_session, monkeypatch):
    monkeypatch.setattr(
        f"{SERVICES}.fetch_checkout_session",
        lambda session_id: RemoteCheckoutSession(
            id=session_id,
            payment_status="unpaid",
            metadata={"user_id": "u1"},
        ),
    )

    resp = client.post("/api/v1/verify-session", json={"sessionId": "cs_test_9"})

    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "CHECKOUT_NOT_PAID"
    assert error["message"] == "Payment not completed"


def test_verify_session_without_user_metadata(client, db_session, monkeypatch):
    monkeypatch.setattr(
        f"{SERVICES}.fetch_checkout_session",
        lambda session_id: RemoteCheckoutSession(id=session_id, payment_status="paid"),
    )

    resp = client.post("/api/v1/verify-session", json={"sessionId": "cs_test_9"})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "CHECKOUT_NO_USER"


def test_verify_session_inactive_subscription(client, db_session, make_user, monkeypatch):
    make_user()
    monkeypatch.setattr(
        f"{SERVICES}.fetch_checkout_session",
        lambda session_id: RemoteCheckoutSession(
            id=session_id,
            payment_status="paid",
            subscription_id="sub_new",
            metadata={"user_id": "u1"},
        ),
    )
    monkeypatch.setattr(
        f"{SERVICES}.fetch_subscription",
        lambda sub_id: _remote("incomplete", sub_id=sub_id),
    )

    resp = client.post("/api/v1/verify-session", json={"sessionId": "cs_test_9"})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "SUBSCRIPTION_NOT_ACTIVE"
    assert _get_user(db_session).subscription_status == "inactive"


def test_verify_session_provider_down(client, db_session, stripe_down):
    resp = client.post("/api/v1/verify-session", json={"sessionId": "cs_test_9"})

    assert resp.status_code == 502
    assert resp.json()["error"]["code"] == "BILLING_PROVIDER_UNAVAILABLE"


def test_diagnose_reports_mismatch(client, db_session, make_user, monkeypatch):
    make_user(subscription_id="sub_abc", status="active", tier="basic", limit=3)
    monkeypatch.setattr(
        f"{SERVICES}.fetch_subscription",
        lambda sub_id: _remote("active", price_id="price_pro", product_id="prod_pro"),
    )
    monkeypatch.setattr(f"{SERVICES}.fetch_product_name", lambda product_id: "Pro")

    resp = client.post("/api/v1/diagnose-subscription", json={"userId": "u1"})

    result = resp.json()["result"]
    assert result["stripe"]["price_id"] == "price_pro"
    assert result["stripe"]["product_name"] == "Pro"
    assert result["recommendation"]["recommended_tier"] == "pro"
    assert result["recommendation"]["needs_update"] is True
    assert result["environmentVariables"]["has_pro_price_id"] is True
    # Diagnosis never writes.
    assert _get_user(db_session).subscription_tier == "basic"


def test_diagnose_with_stripe_down(client, db_session, make_user, stripe_down):
    make_user(subscription_id="sub_abc", status="active", tier="basic", limit=3)

    resp = client.post("/api/v1/diagnose-subscription", json={"userId": "u1"})

    assert resp.status_code == 200
    assert "error" in resp.json()["result"]["stripe"]


def test_diagnose_unknown_user(client, db_session):
    resp = client.post("/api/v1/diagnose-subscription", json={"userId": "ghost"})

    assert resp.status_code == 404
    assert resp.json()["error"]["message"] == "User not found"


def test_fix_tier_applies_price_mapping(client, db_session, make_user, monkeypatch):
    make_user(subscription_id="sub_abc", status="active", tier="basic", limit=3)
    monkeypatch.setattr(
        f"{SERVICES}.fetch_subscription",
        lambda sub_id: _remote("active", price_id="price_yearly"),
    )

    resp = client.post("/api/v1/fix-subscription-tier", json={"userId": "u1"})

    assert resp.status_code == 200
    result = resp.json()["result"]
    assert result["changes"]["subscriptionTier"] == {"from": "basic", "to": "yearly"}
    assert result["changes"]["imagesLimitPerMonth"] == {"from": 3, "to": 50}
    assert result["updatedUser"]["imagesLimitPerMonth"] == 50

    user = _get_user(db_session)
    assert user.subscription_tier == "yearly"
    assert user.images_limit_per_month == 50


def test_fix_tier_unknown_price_is_rejected(client, db_session, make_user, monkeypatch):
    make_user(subscription_id="sub_abc", status="active", tier="pro", limit=25)
    monkeypatch.setattr(
        f"{SERVICES}.fetch_subscription",
        lambda sub_id: _remote("active", price_id="price_gift"),
    )

    resp = client.post("/api/v1/fix-subscription-tier", json={"userId": "u1"})

    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "SUBSCRIPTION_TIER_UNKNOWN"
    user = _get_user(db_session)
    assert user.subscription_tier == "pro"
    assert user.images_limit_per_month == 25


def test_fix_tier_without_subscription(client, db_session, make_user):
    make_user()

    resp = client.post("/api/v1/fix-subscription-tier", json={"userId": "u1"})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "SUBSCRIPTION_MISSING"


def test_plan_for_checkout_prefers_billing_interval():
    plan = subscription_services.plan_for_checkout(
        {"billing_interval": "yearly"},
        price_id="price_basic",
    )
    assert plan.images_limit == 50


def test_plan_for_checkout_defaults_to_basic():
    assert subscription_services.plan_for_checkout({}).images_limit == 3
    assert subscription_services.plan_for_checkout(
        {"billing_interval": "free"}
    ).images_limit == 3


def test_check_returns_mapped_status_when_sync_write_fails(
    client, db_session, make_user, monkeypatch
):
    make_user(subscription_id="sub_abc", status="inactive", tier="basic", limit=3)
    monkeypatch.setattr(f"{SERVICES}.fetch_subscription", lambda sub_id: _remote("active"))

    def failing_write(db, user_id, **values):
        raise OperationalError("UPDATE users", {}, Exception("database is locked"))

    monkeypatch.setattr(f"{SERVICES}._set_user_fields", failing_write)

    resp = client.post("/api/v1/check-subscription", json={"userId": "u1"})

    assert resp.status_code == 200
    result = resp.json()["result"]
    assert result["hasSubscription"] is True
    assert result["subscriptionStatus"] == "active"
    assert result["verified"] is True
    assert _get_user(db_session).subscription_status == "inactive"


@pytest.fixture
def checkout_calls(monkeypatch):
    calls = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return CreatedCheckoutSession(
            id="cs_test_new",
            url="https://checkout.stripe.com/c/pay/cs_test_new",
        )

    monkeypatch.setattr(f"{SERVICES}.create_checkout_session", fake_create)
    return calls


def test_create_checkout_session(client, db_session, checkout_calls):
    resp = client.post(
        "/api/v1/create-checkout-session",
        json={"userId": "u1", "billingInterval": "pro", "email": "u1@example.com"},
    )

    assert resp.status_code == 200
    assert resp.json()["result"] == {
        "sessionId": "cs_test_new",
        "url": "https://checkout.stripe.com/c/pay/cs_test_new",
    }
    assert len(checkout_calls) == 1
    call = checkout_calls[0]
    assert call["price_id"] == "price_pro"
    assert call["metadata"] == {"user_id": "u1", "billing_interval": "pro"}
    assert call["success_url"] == settings.checkout_success_url
    assert call["cancel_url"] == settings.checkout_cancel_url
    assert call["customer_email"] == "u1@example.com"


def test_create_checkout_accepts_year_interval(client, db_session, checkout_calls):
    resp = client.post(
        "/api/v1/create-checkout-session",
        json={"userId": "u1", "billingInterval": "year"},
    )

    assert resp.status_code == 200
    assert checkout_calls[0]["price_id"] == "price_yearly"
    assert checkout_calls[0]["metadata"]["billing_interval"] == "yearly"


def test_created_checkout_metadata_drives_activation(client, db_session, checkout_calls):
    client.post(
        "/api/v1/create-checkout-session",
        json={"userId": "u1", "billingInterval": "yearly"},
    )

    plan = subscription_services.plan_for_checkout(checkout_calls[0]["metadata"])
    assert plan.images_limit == 50


@pytest.mark.parametrize(
    "body, message",
    [
        ({"billingInterval": "basic"}, "Missing userId"),
        ({"userId": "u1"}, "Missing billingInterval"),
    ],
)
def test_create_checkout_missing_fields(client, db_session, checkout_calls, body, message):
    resp = client.post("/api/v1/create-checkout-session", json=body)

    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == message
    assert checkout_calls == []


@pytest.mark.parametrize("interval", ["free", "weekly"])
def test_create_checkout_rejects_unknown_interval(client, db_session, checkout_calls, interval):
    resp = client.post(
        "/api/v1/create-checkout-session",
        json={"userId": "u1", "billingInterval": interval},
    )

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "CHECKOUT_INVALID_INTERVAL"
    assert checkout_calls == []


def test_create_checkout_provider_down(client, db_session, monkeypatch):
    def fail(**kwargs):
        raise BillingProviderError("connection error")

    monkeypatch.setattr(f"{SERVICES}.create_checkout_session", fail)

    resp = client.post(
        "/api/v1/create-checkout-session",
        json={"userId": "u1", "billingInterval": "basic"},
    )

    assert resp.status_code == 502
    assert resp.json()["error"]["code"] == "BILLING_PROVIDER_UNAVAILABLE"


def test_create_checkout_without_configured_price(client, db_session, checkout_calls, monkeypatch):
    monkeypatch.delitem(PRICE_TABLE, "price_basic")

    resp = client.post(
        "/api/v1/create-checkout-session",
        json={"userId": "u1", "billingInterval": "basic"},
    )

    assert resp.status_code == 500
    assert resp.json()["error"]["code"] == "SERVER_MISCONFIGURED"
    assert checkout_calls == []
