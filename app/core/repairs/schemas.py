from __future__ import annotations

from typing import Any, Dict, List

from app.response import CamelModel


class CorruptedIdRepairResults(CamelModel):
    processed: int
    fixed: int
    errors: List[Dict[str, Any]]
    details: List[Dict[str, Any]]


class StaleStatusRepairResults(CamelModel):
    processed: int
    updated: int
    errors: List[Dict[str, Any]]
    details: List[Dict[str, Any]]


class CorruptedIdRepairResponse(CamelModel):
    success: bool = True
    message: str
    results: CorruptedIdRepairResults


class StaleStatusRepairResponse(CamelModel):
    success: bool = True
    message: str
    results: StaleStatusRepairResults


__all__ = [
    "CorruptedIdRepairResults",
    "StaleStatusRepairResults",
    "CorruptedIdRepairResponse",
    "StaleStatusRepairResponse",
]
