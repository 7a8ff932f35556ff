from __future__ import annotations

import json
from typing import Any, Optional


SUBSCRIPTION_PREFIX = "sub_"
CHECKOUT_SESSION_PREFIX = "cs_"


def is_subscription_id(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(SUBSCRIPTION_PREFIX)


def is_checkout_session_id(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(CHECKOUT_SESSION_PREFIX)


def looks_serialized(value: Optional[str]) -> bool:
    return isinstance(value, str) and value.startswith("{")


def extract_embedded_id(value: str) -> str:
    """
    Pull the ``id`` field out of a subscription object that was stored
    as JSON instead of its identifier.

    Raises ValueError if the value cannot be parsed or carries no id.
    """
    parsed = json.loads(value)
    if not isinstance(parsed, dict):
        raise ValueError("serialized subscription is not an object")
    embedded = parsed.get("id")
    if not isinstance(embedded, str) or not embedded:
        raise ValueError("serialized subscription has no id field")
    return embedded


def clean_subscription_id(value: Optional[str]) -> Optional[str]:
    """Best-effort normalisation used on read paths; never raises."""
    if not looks_serialized(value):
        return value
    try:
        return extract_embedded_id(value)
    except ValueError:
        return value


__all__ = [
    "SUBSCRIPTION_PREFIX",
    "CHECKOUT_SESSION_PREFIX",
    "is_subscription_id",
    "is_checkout_session_id",
    "looks_serialized",
    "extract_embedded_id",
    "clean_subscription_id",
]
