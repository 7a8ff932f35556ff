from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.utils.redis_client import get_redis


logger = logging.getLogger(__name__)

WEBHOOK_FAILURES_KEY = "billing:webhook:failures"


def record_webhook_failure(
    *,
    event_id: Optional[str],
    event_type: Optional[str],
    error: BaseException,
) -> None:
    entry = {
        "event_id": event_id,
        "event_type": event_type,
        "error": type(error).__name__,
        "message": str(error)[:500],
        "failed_at": datetime.now(timezone.utc).isoformat(),
    }
    try:
        redis = get_redis()
        redis.lpush(WEBHOOK_FAILURES_KEY, json.dumps(entry))
        redis.ltrim(WEBHOOK_FAILURES_KEY, 0, settings.webhook_failures_max - 1)
    except Exception as exc:
        # Redis down: the error log written by the caller is all we have.
        logger.warning("webhook failure channel unavailable: %r", exc)


def list_webhook_failures(limit: int = 50) -> List[Dict[str, Any]]:
    redis = get_redis()
    raw_items = redis.lrange(WEBHOOK_FAILURES_KEY, 0, max(limit, 1) - 1)
    items: List[Dict[str, Any]] = []
    for raw in raw_items:
        try:
            items.append(json.loads(raw))
        except (TypeError, ValueError):
            continue
    return items


__all__ = [
    "WEBHOOK_FAILURES_KEY",
    "record_webhook_failure",
    "list_webhook_failures",
]
