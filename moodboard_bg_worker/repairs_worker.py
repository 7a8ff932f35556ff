from __future__ import annotations

from typing import Any, Dict

from loguru import logger

from app.core.repairs.services import (
    RepairReport,
    fix_corrupted_subscription_ids,
    fix_stale_statuses,
)
from app.database.session import SessionLocal
from moodboard_bg_worker.celery_app import celery_app


def _summary(report: RepairReport, changed_key: str) -> Dict[str, Any]:
    return {
        "processed": report.processed,
        changed_key: report.changed,
        "errors": report.errors,
        "details": report.details,
    }


@celery_app.task(name="repairs.fix_corrupted_subscriptions")
def fix_corrupted_subscriptions_task() -> Dict[str, Any]:
    logger.info("Running fix_corrupted_subscriptions task")
    db = SessionLocal()
    try:
        report = fix_corrupted_subscription_ids(db)
    finally:
        db.close()

    if report.errors:
        logger.warning(
            "Serialized id repair left {} rows unfixed",
            len(report.errors),
        )
    logger.info(
        "Serialized id repair done: processed={} fixed={}",
        report.processed,
        report.changed,
    )
    return _summary(report, "fixed")


@celery_app.task(name="repairs.fix_subscription_status")
def fix_subscription_status_task() -> Dict[str, Any]:
    logger.info("Running fix_subscription_status task")
    db = SessionLocal()
    try:
        report = fix_stale_statuses(db)
    finally:
        db.close()

    if report.errors:
        logger.warning(
            "Stale status repair could not check {} rows",
            len(report.errors),
        )
    logger.info(
        "Stale status repair done: processed={} updated={}",
        report.processed,
        report.changed,
    )
    return _summary(report, "updated")


__all__ = [
    "fix_corrupted_subscriptions_task",
    "fix_subscription_status_task",
]
