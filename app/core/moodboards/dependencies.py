from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.dependencies import get_db
from app.core.limits.services import increment_usage
from app.core.moodboards.schemas import MoodBoardGenerateIn


def consume_image_quota(
    payload: MoodBoardGenerateIn,
    db: Session = Depends(get_db),
) -> MoodBoardGenerateIn:
    """Spend one image from the caller's monthly quota, then pass the request on."""
    increment_usage(db, payload.user_id)
    return payload


__all__ = ["consume_image_quota"]
