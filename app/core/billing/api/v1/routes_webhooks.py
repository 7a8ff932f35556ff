from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.orm import Session

from app.core.billing.failures import list_webhook_failures
from app.core.billing.schemas import (
    WebhookFailureItem,
    WebhookFailureList,
    WebhookReceipt,
)
from app.core.billing.services import handle_stripe_event
from app.core.billing.stripe_client import WebhookVerificationError, verify_webhook
from app.core.config import settings
from app.core.dependencies import get_db
from app.response import StandardResponse, make_success_response, server_misconfigured
from app.response.response import APIError


logger = logging.getLogger(__name__)

router = APIRouter(tags=["billing"])


async def _raw_body(request: Request) -> bytes:
    return await request.body()


def _require_webhook_secret() -> None:
    if not settings.stripe_webhook_secret:
        logger.error("stripe webhook received but no signing secret is configured")
        raise server_misconfigured()


def _require_admin_key(
    admin_key: str | None = Header(default=None, alias="X-Admin-Key"),
) -> None:
    if not admin_key or admin_key != settings.admin_api_key:
        raise APIError(
            code="ADMIN_FORBIDDEN",
            http_code=403,
            message="Access denied",
        )


@router.post(
    "/webhooks/stripe",
    response_model=StandardResponse,
    summary="Receive Stripe webhook events",
)
def stripe_webhook(
    _: None = Depends(_require_webhook_secret),
    payload: bytes = Depends(_raw_body),
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
) -> StandardResponse:
    try:
        event = verify_webhook(payload, stripe_signature)
    except WebhookVerificationError as exc:
        logger.warning("stripe webhook rejected: %s", exc)
        raise APIError(
            code="WEBHOOK_SIGNATURE_INVALID",
            http_code=400,
            message="Webhook signature verification failed",
        )

    handle_stripe_event(db, event)
    return make_success_response(result=WebhookReceipt().to_result())


@router.get(
    "/admin/webhook-failures",
    response_model=StandardResponse,
    summary="Recent webhook events that could not be applied",
)
def webhook_failures(
    limit: int = Query(50, ge=1, le=500),
    _: None = Depends(_require_admin_key),
) -> StandardResponse:
    try:
        entries = list_webhook_failures(limit)
    except Exception as exc:
        logger.warning("webhook failure channel unavailable: %r", exc)
        raise APIError(
            code="FAILURE_CHANNEL_UNAVAILABLE",
            http_code=503,
            message="Failure channel unavailable",
        )
    items = [WebhookFailureItem.model_validate(entry) for entry in entries]
    result = WebhookFailureList(items=items, total=len(items))
    return make_success_response(result=result.to_result())


__all__ = ["router"]
