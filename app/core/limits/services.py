from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.subscriptions.status import SubscriptionStatus, is_active_status
from app.core.users.models import User
from app.core.users.services import get_user_or_404
from app.response.response import APIError


logger = logging.getLogger(__name__)


@dataclass
class UsageSnapshot:
    tier: str
    status: str
    images_used: int
    images_limit: int
    is_new_month: bool

    @property
    def remaining(self) -> int:
        return max(0, self.images_limit - self.images_used)

    @property
    def can_generate(self) -> bool:
        return is_active_status(self.status) and self.remaining > 0


@dataclass
class UsageIncrement:
    images_used: int
    images_limit: int

    @property
    def remaining(self) -> int:
        return max(0, self.images_limit - self.images_used)


def _is_new_month(last_reset: Optional[date], today: date) -> bool:
    if last_reset is None:
        return True
    return (last_reset.year, last_reset.month) != (today.year, today.month)


def _subscription_required() -> APIError:
    return APIError(
        code="USAGE_SUBSCRIPTION_REQUIRED",
        http_code=403,
        message="Subscription required",
        details={"reason": "You need an active subscription to generate images"},
    )


def _limit_reached(user: User) -> APIError:
    return APIError(
        code="USAGE_IMAGE_LIMIT_REACHED",
        http_code=403,
        message="Image limit reached",
        details={
            "imagesUsed": user.images_used_this_month,
            "imagesLimit": user.images_limit_per_month,
            "remainingImages": 0,
        },
    )


def _maybe_reset_period(db: Session, user: User, today: date) -> bool:
    """
    Reset the monthly counter when ``today`` is in a later month than the
    last reset. The update is guarded by the previously read reset date,
    so two concurrent requests reset at most once. If the write fails the
    stored counter is kept.
    """
    previous = user.last_reset_date
    if not _is_new_month(previous, today):
        return False

    stmt = update(User).where(User.user_id == user.user_id)
    if previous is None:
        stmt = stmt.where(User.last_reset_date.is_(None))
    else:
        stmt = stmt.where(User.last_reset_date == previous)

    try:
        db.execute(
            stmt.values(images_used_this_month=0, last_reset_date=today),
            execution_options={"synchronize_session": False},
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("monthly usage reset failed for %s: %r", user.user_id, exc)
        return True

    db.refresh(user)
    logger.info("monthly usage reset for %s", user.user_id)
    return True


def check_usage(
    db: Session,
    user_id: str,
    *,
    today: date | None = None,
) -> UsageSnapshot:
    user = get_user_or_404(db, user_id)
    is_new_month = _maybe_reset_period(db, user, today or date.today())
    # A new month counts as zero usage even when the reset write failed.
    return UsageSnapshot(
        tier=user.subscription_tier,
        status=user.subscription_status,
        images_used=0 if is_new_month else user.images_used_this_month,
        images_limit=user.images_limit_per_month,
        is_new_month=is_new_month,
    )


def increment_usage(
    db: Session,
    user_id: str,
    *,
    today: date | None = None,
) -> UsageIncrement:
    """
    Spend one image from the monthly quota.

    The quota check and the increment are one conditional UPDATE, so
    concurrent calls can never push the counter past the limit.
    """
    user = get_user_or_404(db, user_id)
    _maybe_reset_period(db, user, today or date.today())

    if not is_active_status(user.subscription_status):
        raise _subscription_required()

    stmt = (
        update(User)
        .where(
            User.user_id == user_id,
            User.subscription_status == SubscriptionStatus.ACTIVE.value,
            User.images_used_this_month < User.images_limit_per_month,
        )
        .values(images_used_this_month=User.images_used_this_month + 1)
    )
    try:
        result = db.execute(stmt, execution_options={"synchronize_session": False})
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("image usage update failed for %s: %r", user_id, exc)
        raise APIError(
            code="USAGE_UPDATE_FAILED",
            http_code=500,
            message="Failed to update image usage",
        )

    db.refresh(user)
    if result.rowcount == 0:
        if not is_active_status(user.subscription_status):
            raise _subscription_required()
        raise _limit_reached(user)

    logger.info(
        "image usage for %s: %s/%s",
        user_id,
        user.images_used_this_month,
        user.images_limit_per_month,
    )
    return UsageIncrement(
        images_used=user.images_used_this_month,
        images_limit=user.images_limit_per_month,
    )


__all__ = [
    "UsageSnapshot",
    "UsageIncrement",
    "check_usage",
    "increment_usage",
]
