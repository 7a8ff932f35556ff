from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.dependencies import get_db
from app.core.repairs.schemas import (
    CorruptedIdRepairResponse,
    CorruptedIdRepairResults,
    StaleStatusRepairResponse,
    StaleStatusRepairResults,
)
from app.core.repairs.services import fix_corrupted_subscription_ids, fix_stale_statuses
from app.response import StandardResponse, make_success_response


router = APIRouter(tags=["repairs"])


@router.post(
    "/fix-corrupted-subscriptions",
    response_model=StandardResponse,
    summary="Replace serialized subscription objects with their ids",
)
def fix_corrupted_subscriptions(
    db: Session = Depends(get_db),
) -> StandardResponse:
    report = fix_corrupted_subscription_ids(db)
    result = CorruptedIdRepairResponse(
        message=f"Processed {report.processed} users, fixed {report.changed}",
        results=CorruptedIdRepairResults(
            processed=report.processed,
            fixed=report.changed,
            errors=report.errors,
            details=report.details,
        ),
    )
    return make_success_response(result=result.to_result())


@router.post(
    "/fix-subscription-status",
    response_model=StandardResponse,
    summary="Re-sync inactive users that still have a subscription id",
)
def fix_subscription_status(
    db: Session = Depends(get_db),
) -> StandardResponse:
    report = fix_stale_statuses(db)
    result = StaleStatusRepairResponse(
        message=f"Processed {report.processed} users, updated {report.changed}",
        results=StaleStatusRepairResults(
            processed=report.processed,
            updated=report.changed,
            errors=report.errors,
            details=report.details,
        ),
    )
    return make_success_response(result=result.to_result())


__all__ = ["router"]
