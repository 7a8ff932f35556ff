"""
Idempotent batch repairs over the users table.

Both procedures scan once, then handle each row independently: a failing
row is reported in ``errors`` and the batch carries on. Every write is a
conditional UPDATE guarded by the value that was scanned, so re-running a
repair (or racing a webhook) never overwrites newer data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.billing.stripe_client import BillingProviderError, fetch_subscription
from app.core.subscriptions.identifiers import extract_embedded_id, is_subscription_id
from app.core.subscriptions.status import SubscriptionStatus, map_stripe_status
from app.core.users.models import User
from app.response.response import APIError


logger = logging.getLogger(__name__)


@dataclass
class RepairReport:
    processed: int = 0
    changed: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    details: List[Dict[str, Any]] = field(default_factory=list)

    def add_error(self, user_id: str, error: str, details: str | None = None) -> None:
        self.errors.append({"userId": user_id, "error": error, "details": details})

    def skip_concurrent(self, user_id: str, email: str | None) -> None:
        # The guarded UPDATE matched nothing: the row changed after the scan.
        logger.info("repair skipped for %s: row changed concurrently", user_id)
        self.details.append(
            {
                "userId": user_id,
                "email": email,
                "note": "Changed concurrently, skipped",
            }
        )


def _scan(db: Session, *criteria: Any) -> List[Any]:
    try:
        return (
            db.query(
                User.user_id,
                User.email,
                User.subscription_id,
                User.subscription_status,
            )
            .filter(User.subscription_id.isnot(None), *criteria)
            .order_by(User.user_id)
            .all()
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("repair scan failed: %r", exc)
        raise APIError(
            code="REPAIR_SCAN_FAILED",
            http_code=500,
            message="Failed to fetch users",
        )


def _guarded_update(db: Session, user_id: str, guard: Any, **values: Any) -> int:
    result = db.execute(
        update(User).where(User.user_id == user_id, guard).values(**values),
        execution_options={"synchronize_session": False},
    )
    db.commit()
    return result.rowcount


def fix_corrupted_subscription_ids(db: Session) -> RepairReport:
    """Rewrite serialized subscription objects to their ``sub_`` id."""
    report = RepairReport()
    rows = _scan(db, User.subscription_id.like("{%"))
    logger.info("found %s users with serialized subscription ids", len(rows))

    for row in rows:
        try:
            clean_id = extract_embedded_id(row.subscription_id)
        except ValueError as exc:
            report.add_error(row.user_id, "Failed to parse subscription_id", str(exc))
            continue

        if not is_subscription_id(clean_id):
            report.add_error(
                row.user_id,
                "Invalid subscription ID extracted",
                f"Extracted: {clean_id}",
            )
            continue

        try:
            updated = _guarded_update(
                db,
                row.user_id,
                User.subscription_id == row.subscription_id,
                subscription_id=clean_id,
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("repair update failed for %s: %r", row.user_id, exc)
            report.add_error(row.user_id, "Failed to update database", type(exc).__name__)
            continue

        report.processed += 1
        if not updated:
            report.skip_concurrent(row.user_id, row.email)
            continue

        report.changed += 1
        report.details.append(
            {
                "userId": row.user_id,
                "email": row.email,
                "oldSubscriptionId": row.subscription_id,
                "newSubscriptionId": clean_id,
            }
        )

    logger.info(
        "serialized id repair: processed=%s fixed=%s errors=%s",
        report.processed,
        report.changed,
        len(report.errors),
    )
    return report


def fix_stale_statuses(db: Session) -> RepairReport:
    """Re-derive the status of inactive rows that still carry a subscription id."""
    report = RepairReport()
    rows = _scan(db, User.subscription_status == SubscriptionStatus.INACTIVE.value)
    logger.info("found %s inactive users with a subscription id", len(rows))

    for row in rows:
        stripe_status = None
        if is_subscription_id(row.subscription_id):
            try:
                stripe_status = fetch_subscription(row.subscription_id).status
            except BillingProviderError as exc:
                report.add_error(
                    row.user_id,
                    "Failed to fetch Stripe subscription",
                    str(exc),
                )
                continue

        correct = map_stripe_status(stripe_status).value
        if correct == row.subscription_status:
            report.processed += 1
            report.details.append(
                {
                    "userId": row.user_id,
                    "email": row.email,
                    "status": correct,
                    "stripeStatus": stripe_status,
                    "note": "Status already correct",
                }
            )
            continue

        try:
            updated = _guarded_update(
                db,
                row.user_id,
                User.subscription_status == row.subscription_status,
                subscription_status=correct,
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("repair update failed for %s: %r", row.user_id, exc)
            report.add_error(row.user_id, "Failed to update database", type(exc).__name__)
            continue

        report.processed += 1
        if not updated:
            report.skip_concurrent(row.user_id, row.email)
            continue

        report.changed += 1
        report.details.append(
            {
                "userId": row.user_id,
                "email": row.email,
                "oldStatus": row.subscription_status,
                "newStatus": correct,
                "stripeStatus": stripe_status,
            }
        )

    logger.info(
        "stale status repair: processed=%s updated=%s errors=%s",
        report.processed,
        report.changed,
        len(report.errors),
    )
    return report


__all__ = [
    "RepairReport",
    "fix_corrupted_subscription_ids",
    "fix_stale_statuses",
]
