from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.dependencies import get_db
from app.core.limits.schemas import (
    ImageUsageIncrement,
    ImageUsageRequest,
    ImageUsageSnapshot,
)
from app.core.limits.services import check_usage, increment_usage
from app.response import StandardResponse, make_success_response


router = APIRouter(tags=["limits"])


@router.post(
    "/image-usage",
    response_model=StandardResponse,
    summary="Check or spend the monthly image quota",
)
def image_usage(
    payload: ImageUsageRequest,
    db: Session = Depends(get_db),
) -> StandardResponse:
    if payload.action == "increment":
        spent = increment_usage(db, payload.user_id)
        result = ImageUsageIncrement(
            images_used=spent.images_used,
            images_limit=spent.images_limit,
            remaining_images=spent.remaining,
            message=(
                f"Image usage updated. {spent.remaining} images remaining "
                "this month."
            ),
        )
        return make_success_response(result=result.to_result())

    snapshot = check_usage(db, payload.user_id)
    result = ImageUsageSnapshot(
        subscription_tier=snapshot.tier,
        subscription_status=snapshot.status,
        images_used=snapshot.images_used,
        images_limit=snapshot.images_limit,
        remaining_images=snapshot.remaining,
        can_generate_image=snapshot.can_generate,
        is_new_month=snapshot.is_new_month,
    )
    return make_success_response(result=result.to_result())


__all__ = ["router"]
