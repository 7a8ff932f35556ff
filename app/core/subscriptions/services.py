from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.billing.stripe_client import (
    BillingProviderError,
    CreatedCheckoutSession,
    RemoteCheckoutSession,
    RemoteSubscription,
    create_checkout_session,
    fetch_checkout_session,
    fetch_product_name,
    fetch_subscription,
)
from app.core.config import settings
from app.core.subscriptions.identifiers import (
    clean_subscription_id,
    extract_embedded_id,
    is_checkout_session_id,
    is_subscription_id,
    looks_serialized,
)
from app.core.subscriptions.status import (
    SubscriptionStatus,
    is_active_status,
    map_stripe_status,
)
from app.core.subscriptions.tiers import (
    DEFAULT_PAID_PLAN,
    TIER_CATALOG,
    SubscriptionTier,
    TierPlan,
    configured_price_ids,
    plan_for_tier_name,
    price_id_for_tier,
    resolve_plan,
)
from app.core.users.models import User
from app.core.users.services import get_user, get_user_or_404
from app.response.response import APIError, server_misconfigured


logger = logging.getLogger(__name__)


@dataclass
class SubscriptionCheck:
    has_subscription: bool
    status: str
    message: str
    stripe_status: Optional[str] = None
    verified: bool = False
    source: str = "local"


@dataclass
class SessionVerification:
    session_id: str
    payment_status: Optional[str]
    subscription_id: str
    stripe_status: Optional[str]
    user: User


@dataclass
class TierFix:
    user: User
    tier_from: Optional[str]
    tier_to: str
    limit_from: Optional[int]
    limit_to: int


@dataclass
class SubscriptionDiagnosis:
    user_id: str
    database: Dict[str, Any]
    stripe: Optional[Dict[str, Any]]
    recommendation: Dict[str, Any]
    environment: Dict[str, bool] = field(default_factory=dict)


def _set_user_fields(db: Session, user_id: str, **values: Any) -> None:
    # Single UPDATE statement, so concurrent reconcilers do not lose writes.
    db.execute(
        update(User)
        .where(User.user_id == user_id)
        .values(**values)
    )


def _local_fallback(user: User, message: str) -> SubscriptionCheck:
    status = user.subscription_status or SubscriptionStatus.INACTIVE.value
    return SubscriptionCheck(
        has_subscription=is_active_status(status),
        status=status,
        message=message,
        verified=False,
        source="local",
    )


def check_subscription(db: Session, user_id: str) -> SubscriptionCheck:
    """
    Re-derive the user's status from Stripe and store it if it drifted.

    Never fails because of Stripe: when the remote lookup is impossible
    the stored status is returned with ``verified=False``.
    """
    user = get_user(db, user_id)
    if user is None or not user.subscription_id:
        return SubscriptionCheck(
            has_subscription=False,
            status=SubscriptionStatus.INACTIVE.value,
            message="No subscription found",
        )

    stored_id = user.subscription_id
    candidate = stored_id

    if looks_serialized(stored_id):
        try:
            candidate = extract_embedded_id(stored_id)
        except ValueError:
            logger.warning("unreadable subscription_id stored for %s", user_id)
            return _local_fallback(user, "Using database status")

    if is_checkout_session_id(candidate):
        try:
            session = fetch_checkout_session(candidate)
        except BillingProviderError:
            return _local_fallback(user, "Using database status")
        if not is_subscription_id(session.subscription_id):
            return _local_fallback(user, "Checkout not yet resolved to a subscription")
        candidate = session.subscription_id

    if not is_subscription_id(candidate):
        return _local_fallback(user, "Using database status")

    try:
        remote = fetch_subscription(candidate)
    except BillingProviderError:
        return _local_fallback(user, "Using database status")

    mapped = map_stripe_status(remote.status)
    values: Dict[str, Any] = {}
    if candidate != stored_id:
        values["subscription_id"] = candidate
    if mapped.value != user.subscription_status:
        logger.info(
            "subscription status for %s: %s -> %s (stripe=%s)",
            user_id,
            user.subscription_status,
            mapped.value,
            remote.status,
        )
        values["subscription_status"] = mapped.value
    if values:
        try:
            _set_user_fields(db, user_id, **values)
            db.commit()
        except SQLAlchemyError as exc:
            # The mapped status is still returned; the next check retries the write.
            db.rollback()
            logger.error("subscription sync write failed for %s: %r", user_id, exc)

    return SubscriptionCheck(
        has_subscription=mapped == SubscriptionStatus.ACTIVE,
        status=mapped.value,
        stripe_status=remote.status,
        message="Subscription status checked and synced",
        verified=True,
        source="stripe",
    )


def cancel_subscription(db: Session, user_id: str) -> bool:
    """Mark an active subscription cancelled locally. Stripe is not called."""
    user = get_user(db, user_id)
    if user is None or not user.subscription_id:
        return False
    if not is_active_status(user.subscription_status):
        return False
    _set_user_fields(
        db,
        user_id,
        subscription_status=SubscriptionStatus.CANCELLED.value,
    )
    logger.info("subscription cancelled locally for %s", user_id)
    return True


def plan_for_checkout(
    metadata: Dict[str, Any] | None,
    price_id: Optional[str] = None,
) -> TierPlan:
    plan = plan_for_tier_name((metadata or {}).get("billing_interval"))
    if plan is not None and plan.tier != SubscriptionTier.FREE:
        return plan
    plan = resolve_plan(price_id)
    if plan is not None:
        return plan
    return DEFAULT_PAID_PLAN


def activate_subscription(
    db: Session,
    *,
    user_id: str,
    subscription_id: str,
    plan: TierPlan,
    email: Optional[str] = None,
) -> Tuple[User, bool]:
    """
    Upsert the record as an active subscription on ``plan``.

    Usage counters are reset only when the stored subscription id
    changes, so a redelivered checkout event is a no-op.
    Returns the user and whether the subscription id changed.
    """
    user = get_user(db, user_id)
    if user is None:
        user = User(
            user_id=user_id,
            email=email,
            images_used_this_month=0,
            last_reset_date=date.today(),
        )
        db.add(user)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            user = get_user_or_404(db, user_id)

    changed = user.subscription_id != subscription_id

    user.subscription_id = subscription_id
    user.subscription_status = SubscriptionStatus.ACTIVE.value
    user.subscription_tier = plan.tier.value
    user.images_limit_per_month = plan.images_limit
    if changed:
        user.images_used_this_month = 0
        user.last_reset_date = date.today()
    if email and not user.email:
        user.email = email

    db.add(user)
    db.flush()
    logger.info(
        "subscription %s active for %s (tier=%s, new=%s)",
        subscription_id,
        user_id,
        plan.tier.value,
        changed,
    )
    return user, changed


# Interval names sent by older clients.
_INTERVAL_ALIASES: Dict[str, SubscriptionTier] = {
    "month": SubscriptionTier.BASIC,
    "monthly": SubscriptionTier.BASIC,
    "year": SubscriptionTier.YEARLY,
}


def _plan_for_interval(billing_interval: str) -> Optional[TierPlan]:
    alias = _INTERVAL_ALIASES.get(billing_interval.strip().lower())
    if alias is not None:
        return TIER_CATALOG[alias]
    plan = plan_for_tier_name(billing_interval)
    if plan is None or plan.tier == SubscriptionTier.FREE:
        return None
    return plan


def start_checkout(
    *,
    user_id: str,
    billing_interval: str,
    email: Optional[str] = None,
) -> CreatedCheckoutSession:
    plan = _plan_for_interval(billing_interval)
    if plan is None:
        raise APIError(
            code="CHECKOUT_INVALID_INTERVAL",
            http_code=400,
            message="Invalid billingInterval",
            details={"billingInterval": billing_interval},
        )

    price_id = price_id_for_tier(plan.tier)
    if not price_id:
        logger.error("no stripe price configured for tier %s", plan.tier.value)
        raise server_misconfigured()

    try:
        session = create_checkout_session(
            price_id=price_id,
            metadata={"user_id": user_id, "billing_interval": plan.tier.value},
            success_url=settings.checkout_success_url,
            cancel_url=settings.checkout_cancel_url,
            customer_email=email,
        )
    except BillingProviderError:
        raise APIError(
            code="BILLING_PROVIDER_UNAVAILABLE",
            http_code=502,
            message="Failed to create checkout session",
        )

    logger.info(
        "checkout session %s opened for %s (tier=%s)",
        session.id,
        user_id,
        plan.tier.value,
    )
    return session


def _resolve_checkout_subscription(
    session: RemoteCheckoutSession,
) -> Tuple[str, Optional[str]]:
    subscription_id = session.subscription_id or session.id
    stripe_status = session.subscription_status or "active"

    if not is_subscription_id(subscription_id):
        return subscription_id, stripe_status

    try:
        remote = fetch_subscription(subscription_id)
    except BillingProviderError:
        raise APIError(
            code="BILLING_PROVIDER_UNAVAILABLE",
            http_code=502,
            message="Failed to verify subscription with Stripe",
        )
    if map_stripe_status(remote.status) != SubscriptionStatus.ACTIVE:
        raise APIError(
            code="SUBSCRIPTION_NOT_ACTIVE",
            http_code=400,
            message="Subscription is not active",
            details={"stripeStatus": remote.status},
        )
    return subscription_id, remote.status


def verify_checkout_session(db: Session, session_id: str) -> SessionVerification:
    """Polling-based activation after the checkout redirect."""
    try:
        session = fetch_checkout_session(session_id)
    except BillingProviderError:
        raise APIError(
            code="BILLING_PROVIDER_UNAVAILABLE",
            http_code=502,
            message="Failed to retrieve checkout session",
        )

    if session.payment_status != "paid":
        raise APIError(
            code="CHECKOUT_NOT_PAID",
            http_code=400,
            message="Payment not completed",
            details={"paymentStatus": session.payment_status},
        )

    user_id = session.metadata.get("user_id")
    if not user_id:
        raise APIError(
            code="CHECKOUT_NO_USER",
            http_code=400,
            message="No user ID found in session metadata",
        )

    subscription_id, stripe_status = _resolve_checkout_subscription(session)
    user, _ = activate_subscription(
        db,
        user_id=user_id,
        subscription_id=subscription_id,
        plan=plan_for_checkout(session.metadata),
        email=session.customer_email,
    )
    return SessionVerification(
        session_id=session.id,
        payment_status=session.payment_status,
        subscription_id=subscription_id,
        stripe_status=stripe_status,
        user=user,
    )


def _fetch_with_product(subscription_id: str) -> Tuple[RemoteSubscription, Optional[str]]:
    remote = fetch_subscription(subscription_id)
    product_name = None
    if remote.product_id:
        product_name = fetch_product_name(remote.product_id)
    return remote, product_name


def _stripe_snapshot(
    remote: RemoteSubscription,
    product_name: Optional[str],
) -> Dict[str, Any]:
    return {
        "id": remote.id,
        "status": remote.status,
        "current_period_end": remote.current_period_end,
        "price_id": remote.price_id,
        "product_id": remote.product_id,
        "product_name": product_name,
        "metadata": remote.metadata,
    }


def diagnose_subscription(db: Session, user_id: str) -> SubscriptionDiagnosis:
    user = get_user_or_404(db, user_id)

    stripe_data: Optional[Dict[str, Any]] = None
    recommended = TIER_CATALOG[SubscriptionTier.FREE]

    subscription_id = clean_subscription_id(user.subscription_id)
    if subscription_id and not is_subscription_id(subscription_id):
        stripe_data = {"error": "Stored id is not a subscription id"}
    elif subscription_id:
        try:
            remote, product_name = _fetch_with_product(subscription_id)
        except BillingProviderError as exc:
            stripe_data = {"error": str(exc) or "Stripe lookup failed"}
        else:
            stripe_data = _stripe_snapshot(remote, product_name)
            recommended = resolve_plan(remote.price_id, product_name) or recommended

    return SubscriptionDiagnosis(
        user_id=user.user_id,
        database={
            "subscription_id": user.subscription_id,
            "subscription_status": user.subscription_status,
            "subscription_tier": user.subscription_tier,
            "images_limit_per_month": user.images_limit_per_month,
            "images_used_this_month": user.images_used_this_month,
            "last_reset_date": user.last_reset_date,
        },
        stripe=stripe_data,
        recommendation={
            "current_tier": user.subscription_tier,
            "recommended_tier": recommended.tier.value,
            "current_image_limit": user.images_limit_per_month,
            "recommended_image_limit": recommended.images_limit,
            "needs_update": (
                user.subscription_tier != recommended.tier.value
                or user.images_limit_per_month != recommended.images_limit
            ),
        },
        environment=configured_price_ids(),
    )


def fix_subscription_tier(db: Session, user_id: str) -> TierFix:
    user = get_user_or_404(db, user_id)
    subscription_id = clean_subscription_id(user.subscription_id)
    if not subscription_id:
        raise APIError(
            code="SUBSCRIPTION_MISSING",
            http_code=400,
            message="User has no subscription ID",
        )

    try:
        remote, product_name = _fetch_with_product(subscription_id)
    except BillingProviderError:
        raise APIError(
            code="BILLING_PROVIDER_UNAVAILABLE",
            http_code=502,
            message="Failed to fetch Stripe subscription",
        )

    plan = resolve_plan(remote.price_id, product_name)
    if plan is None:
        raise APIError(
            code="SUBSCRIPTION_TIER_UNKNOWN",
            http_code=422,
            message="Could not determine subscription tier",
            details={"priceId": remote.price_id, "productName": product_name},
        )

    tier_from = user.subscription_tier
    limit_from = user.images_limit_per_month
    user.subscription_tier = plan.tier.value
    user.images_limit_per_month = plan.images_limit
    db.add(user)
    db.flush()

    logger.info(
        "tier for %s corrected %s/%s -> %s/%s",
        user_id,
        tier_from,
        limit_from,
        plan.tier.value,
        plan.images_limit,
    )
    return TierFix(
        user=user,
        tier_from=tier_from,
        tier_to=plan.tier.value,
        limit_from=limit_from,
        limit_to=plan.images_limit,
    )


__all__ = [
    "SubscriptionCheck",
    "SessionVerification",
    "TierFix",
    "SubscriptionDiagnosis",
    "check_subscription",
    "cancel_subscription",
    "plan_for_checkout",
    "activate_subscription",
    "start_checkout",
    "verify_checkout_session",
    "diagnose_subscription",
    "fix_subscription_tier",
]
