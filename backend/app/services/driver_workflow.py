"""
Driver review workflow.

Status transitions, document completeness and the per-period statistics
shown on the dashboard.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ResourceNotFoundError, ValidationFailedError
from backend.app.core.logging import get_logger
from backend.app.models.document import Document
from backend.app.models.driver import Driver
from backend.app.models.enums import DocumentStatus, DriverStatus, REQUIRED_DOCUMENT_TYPES

logger = get_logger(__name__)

async def get_driver_or_404(db: AsyncSession, driver_id: int) -> Driver:
    result = await db.execute(select(Driver).where(Driver.id == driver_id))
    driver = result.scalar_one_or_none()
    if not driver:
        raise ResourceNotFoundError("Driver")
    return driver


def parse_driver_status(value: Optional[str]) -> DriverStatus:
    try:
        return DriverStatus(value)
    except ValueError:
        raise ValidationFailedError("Invalid status")


def apply_status_change(
    driver: Driver,
    new_status: DriverStatus,
    rejection_reason: Optional[str],
    reviewer_id: int,
) -> DriverStatus:
    """
    Move a driver to ``new_status`` on behalf of a reviewer.

    Any status may be set directly. Rejection requires a reason; approval
    stamps ``approved_at`` and clears an earlier rejection reason.

    Returns:
        The status the driver had before the change
    """
    if new_status == DriverStatus.REJECTED and not rejection_reason:
        raise ValidationFailedError("Rejection reason is required")

    previous_status = driver.status
    now = datetime.now(timezone.utc)

    driver.status = new_status
    driver.reviewed_by_id = reviewer_id
    driver.reviewed_at = now

    if new_status == DriverStatus.REJECTED:
        driver.rejection_reason = rejection_reason
    elif new_status == DriverStatus.APPROVED:
        driver.approved_at = now
        driver.rejection_reason = None

    return previous_status


async def refresh_documents_complete(db: AsyncSession, driver: Driver) -> bool:
    """Recompute ``documents_complete``: true while every required document type is on file."""
    result = await db.execute(
        select(Document.type).where(Document.driver_id == driver.id).distinct()
    )
    uploaded = set(result.scalars().all())
    complete = all(doc_type in uploaded for doc_type in REQUIRED_DOCUMENT_TYPES)
    driver.documents_complete = complete
    return complete


async def advance_if_documents_approved(db: AsyncSession, driver: Driver, reviewer_id: int) -> bool:
    """
    Move a pending driver to under_review when all of its documents are approved.

    Returns:
        True if the driver was advanced
    """
    if driver.status != DriverStatus.PENDING:
        return False

    result = await db.execute(select(Document.status).where(Document.driver_id == driver.id))
    statuses = result.scalars().all()
    if not statuses or any(s != DocumentStatus.APPROVED for s in statuses):
        return False

    driver.status = DriverStatus.UNDER_REVIEW
    driver.reviewed_by_id = reviewer_id
    logger.info(f"Driver {driver.id} moved to under_review after document approval")
    return True


def period_start(period: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Lower bound of ``created_at`` for a stats period.

    ``day`` starts at midnight UTC today; ``week`` and ``month`` are rolling
    7 and 30 day windows; ``all`` has no bound.
    """
    now = now or datetime.now(timezone.utc)
    if period == "day":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return now - timedelta(days=30)
    if period == "all":
        return None
    raise ValidationFailedError("Invalid period. Use day, week, month or all.")


async def get_driver_stats(
    db: AsyncSession,
    period: str = "month",
    registered_by_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Status counts and daily registrations for a period.

    Args:
        period: ``day``, ``week``, ``month`` or ``all``
        registered_by_id: Restrict to one agent's registrations

    Returns:
        ``{"summary": {"total", <status>: count}, "daily": [{"date", "count"}]}``
    """
    conditions = []
    since = period_start(period)
    if since is not None:
        conditions.append(Driver.created_at >= since)
    if registered_by_id is not None:
        conditions.append(Driver.registered_by_id == registered_by_id)

    status_rows = (await db.execute(
        select(Driver.status, func.count(Driver.id)).where(*conditions).group_by(Driver.status)
    )).all()

    summary: Dict[str, int] = {"total": 0}
    summary.update({status.value: 0 for status in DriverStatus})
    for status, count in status_rows:
        summary[status.value] = count
        summary["total"] += count

    day = func.date(Driver.created_at)
    daily_rows = (await db.execute(
        select(day.label("day"), func.count(Driver.id)).where(*conditions).group_by(day).order_by(day)
    )).all()

    daily: List[Dict[str, Any]] = [
        {"date": str(day_value), "count": count} for day_value, count in daily_rows
    ]
    return {"summary": summary, "daily": daily}
