from __future__ import annotations

import logging
import shutil
from datetime import date
from pathlib import Path
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.moodboards.models import MoodBoard
from app.core.subscriptions.status import SubscriptionStatus
from app.core.subscriptions.tiers import TIER_CATALOG, SubscriptionTier
from app.core.users.models import User
from app.response.response import APIError


logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.user_id == user_id).first()


def get_user_or_404(db: Session, user_id: str) -> User:
    user = get_user(db, user_id)
    if user is None:
        raise APIError(
            code="USER_NOT_FOUND",
            http_code=404,
            message="User not found",
        )
    return user


def user_uploads_dir(user_id: str) -> Path:
    # user_id ends up in a filesystem path; it must be a single path segment.
    if (
        not user_id
        or user_id in {".", ".."}
        or Path(user_id).name != user_id
        or "\\" in user_id
    ):
        raise APIError(
            code="USER_INVALID_ID",
            http_code=400,
            message="Invalid userId",
        )
    return Path(settings.uploads_dir) / user_id


def ensure_user_record(
    db: Session,
    *,
    user_id: str,
    email: Optional[str] = None,
) -> Tuple[User, bool]:
    """
    First-login creation of the default record (inactive, free tier,
    zero usage). Existing records are left alone apart from filling in a
    missing email.
    """
    user = get_user(db, user_id)
    if user is not None:
        if email and not user.email:
            user.email = email
            db.add(user)
            db.flush()
        return user, False

    free_plan = TIER_CATALOG[SubscriptionTier.FREE]
    user = User(
        user_id=user_id,
        email=email,
        subscription_status=SubscriptionStatus.INACTIVE.value,
        subscription_tier=free_plan.tier.value,
        images_used_this_month=0,
        images_limit_per_month=free_plan.images_limit,
        last_reset_date=date.today(),
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        # Concurrent first login created it in between.
        db.rollback()
        return get_user_or_404(db, user_id), False

    logger.info("created user record for %s", user_id)
    return user, True


def delete_account(db: Session, user_id: str) -> bool:
    uploads = user_uploads_dir(user_id)

    boards_deleted = (
        db.query(MoodBoard)
        .filter(MoodBoard.user_id == user_id)
        .delete(synchronize_session=False)
    )
    users_deleted = (
        db.query(User)
        .filter(User.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()

    if uploads.exists():
        try:
            shutil.rmtree(uploads)
        except OSError as exc:
            logger.error("failed to remove uploads for %s: %r", user_id, exc)

    logger.info(
        "deleted account %s (users=%s, mood_boards=%s)",
        user_id,
        users_deleted,
        boards_deleted,
    )
    return bool(users_deleted)


__all__ = [
    "get_user",
    "get_user_or_404",
    "user_uploads_dir",
    "ensure_user_record",
    "delete_account",
]
