from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.dependencies import get_db
from app.core.subscriptions.schemas import (
    CancelSubscriptionResponse,
    CheckoutSessionCreated,
    CheckoutSessionSummary,
    CreateCheckoutRequest,
    FieldChange,
    FixSubscriptionTierResponse,
    SubscriptionCheckResponse,
    SubscriptionDiagnosisResponse,
    TierChanges,
    VerifySessionRequest,
    VerifySessionResponse,
)
from app.core.subscriptions.services import (
    cancel_subscription,
    check_subscription,
    diagnose_subscription,
    fix_subscription_tier,
    start_checkout,
    verify_checkout_session,
)
from app.core.users.schemas import UserIdRequest, UserSnapshot
from app.response import StandardResponse, make_success_response


router = APIRouter(tags=["subscriptions"])


@router.post(
    "/check-subscription",
    response_model=StandardResponse,
    summary="Reconcile the user's subscription status with Stripe",
)
def check_user_subscription(
    payload: UserIdRequest,
    db: Session = Depends(get_db),
) -> StandardResponse:
    check = check_subscription(db, payload.user_id)
    result = SubscriptionCheckResponse(
        has_subscription=check.has_subscription,
        subscription_status=check.status,
        stripe_status=check.stripe_status,
        verified=check.verified,
        source=check.source,
        message=check.message,
    )
    return make_success_response(result=result.to_result())


@router.post(
    "/cancel-subscription",
    response_model=StandardResponse,
    summary="Cancel the user's subscription locally",
)
def cancel_user_subscription(
    payload: UserIdRequest,
    db: Session = Depends(get_db),
) -> StandardResponse:
    cancel_subscription(db, payload.user_id)
    db.commit()
    result = CancelSubscriptionResponse(message="Subscription cancelled successfully")
    return make_success_response(result=result.to_result())


@router.post(
    "/create-checkout-session",
    response_model=StandardResponse,
    summary="Open a Stripe Checkout Session for a subscription",
)
def create_checkout(
    payload: CreateCheckoutRequest,
) -> StandardResponse:
    session = start_checkout(
        user_id=payload.user_id,
        billing_interval=payload.billing_interval,
        email=payload.email,
    )
    result = CheckoutSessionCreated(session_id=session.id, url=session.url)
    return make_success_response(result=result.to_result())


@router.post(
    "/verify-session",
    response_model=StandardResponse,
    summary="Activate a subscription from a paid checkout session",
)
def verify_session(
    payload: VerifySessionRequest,
    db: Session = Depends(get_db),
) -> StandardResponse:
    verification = verify_checkout_session(db, payload.session_id)
    db.commit()
    db.refresh(verification.user)
    result = VerifySessionResponse(
        session=CheckoutSessionSummary(
            id=verification.session_id,
            payment_status=verification.payment_status,
            subscription_id=verification.subscription_id,
            stripe_status=verification.stripe_status,
        ),
        user=UserSnapshot.model_validate(verification.user),
    )
    return make_success_response(result=result.to_result())


@router.post(
    "/diagnose-subscription",
    response_model=StandardResponse,
    summary="Compare the stored subscription with Stripe (read-only)",
)
def diagnose_user_subscription(
    payload: UserIdRequest,
    db: Session = Depends(get_db),
) -> StandardResponse:
    diagnosis = diagnose_subscription(db, payload.user_id)
    result = SubscriptionDiagnosisResponse(
        user_id=diagnosis.user_id,
        database=diagnosis.database,
        stripe=diagnosis.stripe,
        recommendation=diagnosis.recommendation,
        environment_variables=diagnosis.environment,
    )
    return make_success_response(result=result.to_result())


@router.post(
    "/fix-subscription-tier",
    response_model=StandardResponse,
    summary="Recompute tier and image limit from the Stripe price",
)
def fix_user_subscription_tier(
    payload: UserIdRequest,
    db: Session = Depends(get_db),
) -> StandardResponse:
    fix = fix_subscription_tier(db, payload.user_id)
    db.commit()
    db.refresh(fix.user)
    result = FixSubscriptionTierResponse(
        user_id=fix.user.user_id,
        changes=TierChanges(
            subscription_tier=FieldChange(from_value=fix.tier_from, to=fix.tier_to),
            images_limit_per_month=FieldChange(
                from_value=fix.limit_from,
                to=fix.limit_to,
            ),
        ),
        updated_user=UserSnapshot.model_validate(fix.user),
    )
    return make_success_response(result=result.to_result())


__all__ = ["router"]
