from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from app.core.config import Settings, settings


logger = logging.getLogger(__name__)


class SubscriptionTier(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PRO = "pro"
    YEARLY = "yearly"


@dataclass(frozen=True)
class TierPlan:
    tier: SubscriptionTier
    images_limit: int


TIER_CATALOG: Dict[SubscriptionTier, TierPlan] = {
    SubscriptionTier.FREE: TierPlan(tier=SubscriptionTier.FREE, images_limit=0),
    SubscriptionTier.BASIC: TierPlan(tier=SubscriptionTier.BASIC, images_limit=3),
    SubscriptionTier.PRO: TierPlan(tier=SubscriptionTier.PRO, images_limit=25),
    SubscriptionTier.YEARLY: TierPlan(tier=SubscriptionTier.YEARLY, images_limit=50),
}

DEFAULT_PAID_PLAN = TIER_CATALOG[SubscriptionTier.BASIC]

# Order matters: a product called "Pro Yearly" resolves to pro.
_LEGACY_NAME_ORDER = (
    SubscriptionTier.BASIC,
    SubscriptionTier.PRO,
    SubscriptionTier.YEARLY,
)


def build_price_table(config: Settings) -> Dict[str, TierPlan]:
    table: Dict[str, TierPlan] = {}
    configured = (
        (config.stripe_price_id_basic, SubscriptionTier.BASIC),
        (config.stripe_price_id_pro, SubscriptionTier.PRO),
        (config.stripe_price_id_yearly, SubscriptionTier.YEARLY),
    )
    for price_id, tier in configured:
        if price_id:
            table[price_id] = TIER_CATALOG[tier]
    return table


PRICE_TABLE: Dict[str, TierPlan] = build_price_table(settings)


def reload_price_table(config: Settings | None = None) -> Dict[str, TierPlan]:
    PRICE_TABLE.clear()
    PRICE_TABLE.update(build_price_table(config or settings))
    return PRICE_TABLE


def price_id_for_tier(tier: SubscriptionTier) -> Optional[str]:
    for price_id, plan in PRICE_TABLE.items():
        if plan.tier == tier:
            return price_id
    return None


def plan_for_tier_name(name: Optional[str]) -> Optional[TierPlan]:
    if not name:
        return None
    try:
        return TIER_CATALOG[SubscriptionTier(name.strip().lower())]
    except ValueError:
        return None


def _legacy_plan_from_product_name(product_name: str) -> Optional[TierPlan]:
    """
    Legacy path for subscriptions created before the price ids were
    configured: match the tier by substring of the Stripe product name.
    """
    lowered = product_name.lower()
    for tier in _LEGACY_NAME_ORDER:
        if tier.value in lowered:
            logger.warning(
                "tier resolved from product name (legacy path): %r -> %s",
                product_name,
                tier.value,
            )
            return TIER_CATALOG[tier]
    return None


def resolve_plan(
    price_id: Optional[str],
    product_name: Optional[str] = None,
) -> Optional[TierPlan]:
    if price_id and price_id in PRICE_TABLE:
        return PRICE_TABLE[price_id]
    if product_name:
        return _legacy_plan_from_product_name(product_name)
    return None


def configured_price_ids() -> Dict[str, bool]:
    return {
        "has_basic_price_id": bool(settings.stripe_price_id_basic),
        "has_pro_price_id": bool(settings.stripe_price_id_pro),
        "has_yearly_price_id": bool(settings.stripe_price_id_yearly),
    }


__all__ = [
    "SubscriptionTier",
    "TierPlan",
    "TIER_CATALOG",
    "DEFAULT_PAID_PLAN",
    "PRICE_TABLE",
    "build_price_table",
    "reload_price_table",
    "price_id_for_tier",
    "plan_for_tier_name",
    "resolve_plan",
    "configured_price_ids",
]
