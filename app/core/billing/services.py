from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.billing.failures import record_webhook_failure
from app.core.billing.stripe_client import remote_subscription_from_event
from app.core.subscriptions.identifiers import is_subscription_id
from app.core.subscriptions.services import activate_subscription, plan_for_checkout
from app.core.subscriptions.status import SubscriptionStatus, map_stripe_status
from app.core.subscriptions.tiers import resolve_plan
from app.core.users.models import User
from app.core.users.services import get_user


logger = logging.getLogger(__name__)


OUTCOME_APPLIED = "applied"
OUTCOME_UNCHANGED = "unchanged"
OUTCOME_SKIPPED = "skipped"
OUTCOME_IGNORED = "ignored"
OUTCOME_FAILED = "failed"


def _object_id(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("id")
    return value if isinstance(value, str) and value else None


def _find_subscriber(
    db: Session,
    subscription_id: Optional[str],
    fallback_user_id: Optional[str] = None,
) -> Optional[User]:
    """
    Look the record up by stored subscription id, then by the user id
    carried in Stripe metadata. A metadata match whose record already
    points at a different subscription belongs to an older subscription
    and is not returned.
    """
    if subscription_id:
        user = (
            db.query(User)
            .filter(User.subscription_id == subscription_id)
            .first()
        )
        if user is not None:
            return user

    if not fallback_user_id:
        return None
    user = get_user(db, fallback_user_id)
    if user is None:
        return None
    if (
        subscription_id
        and is_subscription_id(user.subscription_id)
        and user.subscription_id != subscription_id
    ):
        logger.info(
            "event for %s ignored: user %s is on %s",
            subscription_id,
            fallback_user_id,
            user.subscription_id,
        )
        return None
    return user


def _force_status(
    db: Session,
    user: User,
    status: SubscriptionStatus,
    subscription_id: Optional[str],
) -> str:
    changed = False
    if is_subscription_id(subscription_id) and user.subscription_id != subscription_id:
        user.subscription_id = subscription_id
        changed = True
    if user.subscription_status != status.value:
        logger.info(
            "subscription status for %s: %s -> %s",
            user.user_id,
            user.subscription_status,
            status.value,
        )
        user.subscription_status = status.value
        changed = True
    if not changed:
        return OUTCOME_UNCHANGED
    db.add(user)
    db.flush()
    return OUTCOME_APPLIED


def _on_checkout_completed(db: Session, session: Dict[str, Any]) -> str:
    metadata = session.get("metadata") or {}
    user_id = metadata.get("user_id")
    if not user_id:
        logger.warning(
            "checkout session %s completed without metadata.user_id",
            session.get("id"),
        )
        return OUTCOME_SKIPPED

    subscription_id = _object_id(session.get("subscription")) or session.get("id")
    if not subscription_id:
        logger.warning("checkout session for %s carries no id", user_id)
        return OUTCOME_SKIPPED

    customer_details = session.get("customer_details") or {}
    email = session.get("customer_email") or customer_details.get("email")

    activate_subscription(
        db,
        user_id=user_id,
        subscription_id=subscription_id,
        plan=plan_for_checkout(metadata),
        email=email,
    )
    return OUTCOME_APPLIED


def _on_subscription_updated(db: Session, subscription: Dict[str, Any]) -> str:
    remote = remote_subscription_from_event(subscription)
    user = _find_subscriber(db, remote.id, remote.metadata.get("user_id"))
    if user is None:
        logger.info("no user for subscription %s", remote.id)
        return OUTCOME_SKIPPED

    outcome = _force_status(db, user, map_stripe_status(remote.status), remote.id)

    plan = resolve_plan(remote.price_id)
    if plan is not None and (
        user.subscription_tier != plan.tier.value
        or user.images_limit_per_month != plan.images_limit
    ):
        user.subscription_tier = plan.tier.value
        user.images_limit_per_month = plan.images_limit
        db.add(user)
        db.flush()
        outcome = OUTCOME_APPLIED
    return outcome


def _on_subscription_deleted(db: Session, subscription: Dict[str, Any]) -> str:
    subscription_id = _object_id(subscription)
    metadata = subscription.get("metadata") or {}
    user = _find_subscriber(db, subscription_id, metadata.get("user_id"))
    if user is None:
        logger.info("no user for deleted subscription %s", subscription_id)
        return OUTCOME_SKIPPED
    return _force_status(db, user, SubscriptionStatus.CANCELLED, subscription_id)


def _invoice_subscription(invoice: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """(subscription id, metadata user id) from either invoice layout."""
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    legacy_details = invoice.get("subscription_details") or {}
    subscription_id = _object_id(invoice.get("subscription")) or _object_id(
        details.get("subscription")
    )
    metadata = details.get("metadata") or legacy_details.get("metadata") or {}
    return subscription_id, metadata.get("user_id")


def _on_invoice(status: SubscriptionStatus) -> Callable[[Session, Dict[str, Any]], str]:
    def handler(db: Session, invoice: Dict[str, Any]) -> str:
        subscription_id, user_id = _invoice_subscription(invoice)
        if not subscription_id:
            logger.info("invoice %s has no subscription", invoice.get("id"))
            return OUTCOME_SKIPPED
        user = _find_subscriber(db, subscription_id, user_id)
        if user is None:
            logger.info("no user for invoice subscription %s", subscription_id)
            return OUTCOME_SKIPPED
        return _force_status(db, user, status, subscription_id)

    return handler


EVENT_HANDLERS: Dict[str, Callable[[Session, Dict[str, Any]], str]] = {
    "checkout.session.completed": _on_checkout_completed,
    "customer.subscription.updated": _on_subscription_updated,
    "customer.subscription.deleted": _on_subscription_deleted,
    "invoice.payment_failed": _on_invoice(SubscriptionStatus.CANCELLED),
    "invoice.payment_succeeded": _on_invoice(SubscriptionStatus.ACTIVE),
}


def handle_stripe_event(db: Session, event: Dict[str, Any]) -> str:
    """
    Apply a verified Stripe event to the user records and commit.

    Datastore failures are rolled back, logged and pushed to the webhook
    failure channel; they are not raised, so Stripe always gets a 200.
    """
    event_id = event.get("id")
    event_type = event.get("type")
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.debug("ignoring stripe event %s (%s)", event_id, event_type)
        return OUTCOME_IGNORED

    obj = (event.get("data") or {}).get("object") or {}
    try:
        outcome = handler(db, obj)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "stripe event %s (%s) not applied: %r",
            event_id,
            event_type,
            exc,
        )
        record_webhook_failure(event_id=event_id, event_type=event_type, error=exc)
        return OUTCOME_FAILED

    logger.info("stripe event %s (%s): %s", event_id, event_type, outcome)
    return outcome


__all__ = [
    "EVENT_HANDLERS",
    "handle_stripe_event",
]
