from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import Field

from app.core.users.schemas import UserSnapshot
from app.response import CamelModel


class VerifySessionRequest(CamelModel):
    session_id: str = Field(min_length=1)


class CreateCheckoutRequest(CamelModel):
    user_id: str = Field(min_length=1)
    billing_interval: str = Field(min_length=1)
    email: Optional[str] = None


class CheckoutSessionCreated(CamelModel):
    session_id: str
    url: Optional[str] = None


class SubscriptionCheckResponse(CamelModel):
    has_subscription: bool
    subscription_status: str
    stripe_status: Optional[str] = None
    verified: bool
    source: str
    message: str


class CancelSubscriptionResponse(CamelModel):
    success: bool = True
    message: str


class CheckoutSessionSummary(CamelModel):
    id: str
    payment_status: Optional[str] = None
    subscription_id: str
    stripe_status: Optional[str] = None


class VerifySessionResponse(CamelModel):
    success: bool = True
    session: CheckoutSessionSummary
    user: UserSnapshot
    message: str = "Session verified and subscription activated successfully"


class SubscriptionDiagnosisResponse(CamelModel):
    user_id: str
    database: Dict[str, Any]
    stripe: Optional[Dict[str, Any]] = None
    recommendation: Dict[str, Any]
    environment_variables: Dict[str, bool]


class FieldChange(CamelModel):
    from_value: Any = Field(default=None, alias="from")
    to: Any = None


class TierChanges(CamelModel):
    subscription_tier: FieldChange
    images_limit_per_month: FieldChange


class FixSubscriptionTierResponse(CamelModel):
    success: bool = True
    message: str = "Subscription tier fixed successfully"
    user_id: str
    changes: TierChanges
    updated_user: UserSnapshot


__all__ = [
    "VerifySessionRequest",
    "CreateCheckoutRequest",
    "CheckoutSessionCreated",
    "SubscriptionCheckResponse",
    "CancelSubscriptionResponse",
    "CheckoutSessionSummary",
    "VerifySessionResponse",
    "SubscriptionDiagnosisResponse",
    "FieldChange",
    "TierChanges",
    "FixSubscriptionTierResponse",
]
