from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import stripe

from app.core.config import settings


logger = logging.getLogger(__name__)


class BillingProviderError(Exception):
    """Any failure talking to Stripe, with the SDK error kept as ``__cause__``."""


class WebhookVerificationError(Exception):
    pass


@dataclass
class RemoteSubscription:
    id: str
    status: Optional[str]
    price_id: Optional[str] = None
    product_id: Optional[str] = None
    current_period_end: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RemoteCheckoutSession:
    id: str
    payment_status: Optional[str]
    subscription_id: Optional[str] = None
    subscription_status: Optional[str] = None
    customer_email: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def _field(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, TypeError, AttributeError):
        return None


def _metadata(obj: Any) -> Dict[str, Any]:
    raw = _field(obj, "metadata")
    if not raw:
        return {}
    return {key: raw[key] for key in raw.keys()}


def _configure() -> None:
    if not settings.stripe_secret_key:
        raise BillingProviderError("Stripe secret key is not configured")
    stripe.api_key = settings.stripe_secret_key


def _first_item_price(subscription: Any) -> Any:
    items = _field(_field(subscription, "items"), "data") or []
    if not items:
        return None
    return _field(items[0], "price")


def _to_remote_subscription(subscription: Any) -> RemoteSubscription:
    price = _first_item_price(subscription)
    product = _field(price, "product")
    if product is not None and not isinstance(product, str):
        product = _field(product, "id")

    period_end = _field(subscription, "current_period_end")
    if period_end is None:
        items = _field(_field(subscription, "items"), "data") or []
        if items:
            period_end = _field(items[0], "current_period_end")

    return RemoteSubscription(
        id=_field(subscription, "id"),
        status=_field(subscription, "status"),
        price_id=_field(price, "id"),
        product_id=product,
        current_period_end=period_end,
        metadata=_metadata(subscription),
    )


def remote_subscription_from_event(obj: Dict[str, Any]) -> RemoteSubscription:
    """Same projection, applied to the plain dict carried by a webhook event."""
    return _to_remote_subscription(obj)


def fetch_subscription(subscription_id: str) -> RemoteSubscription:
    _configure()
    try:
        subscription = stripe.Subscription.retrieve(subscription_id)
    except stripe.StripeError as exc:
        logger.warning(
            "stripe subscription lookup failed for %s: %r",
            subscription_id,
            exc,
        )
        raise BillingProviderError(str(exc)) from exc
    return _to_remote_subscription(subscription)


def fetch_checkout_session(session_id: str) -> RemoteCheckoutSession:
    _configure()
    try:
        session = stripe.checkout.Session.retrieve(
            session_id,
            expand=["subscription"],
        )
    except stripe.StripeError as exc:
        logger.warning(
            "stripe checkout session lookup failed for %s: %r",
            session_id,
            exc,
        )
        raise BillingProviderError(str(exc)) from exc

    subscription = _field(session, "subscription")
    subscription_status = None
    if subscription is not None and not isinstance(subscription, str):
        subscription_status = _field(subscription, "status")
        subscription = _field(subscription, "id")

    customer_details = _field(session, "customer_details")
    email = _field(session, "customer_email") or _field(customer_details, "email")

    return RemoteCheckoutSession(
        id=_field(session, "id"),
        payment_status=_field(session, "payment_status"),
        subscription_id=subscription,
        subscription_status=subscription_status,
        customer_email=email,
        metadata=_metadata(session),
    )


@dataclass
class CreatedCheckoutSession:
    id: str
    url: Optional[str]


def create_checkout_session(
    *,
    price_id: str,
    metadata: Dict[str, str],
    success_url: str,
    cancel_url: str,
    customer_email: Optional[str] = None,
) -> CreatedCheckoutSession:
    """
    Open a subscription-mode Checkout Session. ``metadata`` is written on
    both the session and the subscription it creates, so webhooks for
    either object can be matched back to the user.
    """
    _configure()
    params: Dict[str, Any] = {
        "mode": "subscription",
        "payment_method_types": ["card"],
        "line_items": [{"price": price_id, "quantity": 1}],
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": dict(metadata),
        "subscription_data": {"metadata": dict(metadata)},
    }
    if customer_email:
        params["customer_email"] = customer_email
    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as exc:
        logger.warning("stripe checkout session creation failed: %r", exc)
        raise BillingProviderError(str(exc)) from exc
    return CreatedCheckoutSession(id=_field(session, "id"), url=_field(session, "url"))


def fetch_product_name(product_id: str) -> Optional[str]:
    _configure()
    try:
        product = stripe.Product.retrieve(product_id)
    except stripe.StripeError as exc:
        raise BillingProviderError(str(exc)) from exc
    return _field(product, "name")


def verify_webhook(payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """
    Check the ``Stripe-Signature`` header against the raw body and decode
    the event. The caller must make sure the signing secret is configured.
    """
    if not signature:
        raise WebhookVerificationError("Missing Stripe-Signature header")

    try:
        body = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise WebhookVerificationError("Body is not valid UTF-8") from exc

    try:
        stripe.WebhookSignature.verify_header(
            body,
            signature,
            settings.stripe_webhook_secret,
            settings.stripe_webhook_tolerance_seconds,
        )
    except stripe.SignatureVerificationError as exc:
        raise WebhookVerificationError(str(exc)) from exc

    try:
        event = json.loads(body)
    except ValueError as exc:
        raise WebhookVerificationError("Body is not valid JSON") from exc

    if not isinstance(event, dict) or not isinstance(event.get("type"), str):
        raise WebhookVerificationError("Body is not a Stripe event")
    return event


__all__ = [
    "BillingProviderError",
    "WebhookVerificationError",
    "RemoteSubscription",
    "RemoteCheckoutSession",
    "CreatedCheckoutSession",
    "remote_subscription_from_event",
    "fetch_subscription",
    "fetch_checkout_session",
    "fetch_product_name",
    "create_checkout_session",
    "verify_webhook",
]
