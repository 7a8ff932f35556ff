from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from app.response import CamelModel


class WebhookReceipt(CamelModel):
    received: bool = True


class WebhookFailureItem(CamelModel):
    event_id: Optional[str] = None
    event_type: Optional[str] = None
    error: str
    message: Optional[str] = None
    failed_at: datetime


class WebhookFailureList(CamelModel):
    items: List[WebhookFailureItem]
    total: int


__all__ = [
    "WebhookReceipt",
    "WebhookFailureItem",
    "WebhookFailureList",
]
