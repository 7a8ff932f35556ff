"""
Mapping from Stripe subscription statuses to the local three-value status.

Every component that derives a local status (webhook ingestor, reconciler,
checkout verification, repair jobs) goes through ``map_stripe_status``.
Stripe spells it ``canceled``; locally it is ``cancelled``.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"


_STRIPE_TO_LOCAL: Dict[str, SubscriptionStatus] = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.ACTIVE,
    "canceled": SubscriptionStatus.CANCELLED,
    "unpaid": SubscriptionStatus.CANCELLED,
    "past_due": SubscriptionStatus.CANCELLED,
    "incomplete_expired": SubscriptionStatus.CANCELLED,
    "incomplete": SubscriptionStatus.INACTIVE,
}

_DESCRIPTIONS: Dict[SubscriptionStatus, str] = {
    SubscriptionStatus.ACTIVE: "Active subscription",
    SubscriptionStatus.INACTIVE: "No active subscription",
    SubscriptionStatus.CANCELLED: "Subscription cancelled",
}


def map_stripe_status(remote_status: Optional[str]) -> SubscriptionStatus:
    """Total, case-sensitive: unknown or missing statuses are ``inactive``."""
    if not isinstance(remote_status, str):
        return SubscriptionStatus.INACTIVE
    return _STRIPE_TO_LOCAL.get(remote_status, SubscriptionStatus.INACTIVE)


def is_valid_local_status(value: Optional[str]) -> bool:
    return value in {status.value for status in SubscriptionStatus}


def is_active_status(value: Optional[str]) -> bool:
    return value == SubscriptionStatus.ACTIVE.value


def describe_status(value: Optional[str]) -> str:
    if not is_valid_local_status(value):
        return "Unknown status"
    return _DESCRIPTIONS[SubscriptionStatus(value)]


__all__ = [
    "SubscriptionStatus",
    "map_stripe_status",
    "is_valid_local_status",
    "is_active_status",
    "describe_status",
]
