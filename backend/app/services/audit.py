"""
Audit logging service.

Writes happen after the response has been sent (FastAPI background tasks)
on their own session, so a failed audit write never fails the request.
Delivery is best effort: failures are logged, not retried.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi import BackgroundTasks, Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy import select, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.logging import get_logger
from backend.app.db.session import AsyncSessionLocal
from backend.app.models.audit_log import AuditLog
from backend.app.models.enums import AuditAction, AuditEntity

logger = get_logger(__name__)

MAX_DESCRIPTION_LENGTH = 500


@dataclass
class AuditEntry:
    """Everything needed to write one audit row, captured while the request is alive."""
    action: AuditAction
    entity_type: AuditEntity
    entity_id: Optional[int]
    description: str
    performed_by_id: int
    performed_by_name: str
    performed_by_role: str
    previous_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class AuditFilters:
    action: Optional[AuditAction] = None
    entity_type: Optional[AuditEntity] = None
    performed_by: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


def build_entry(
    request: Request,
    actor: dict,
    action: AuditAction,
    entity_type: AuditEntity,
    entity_id: Optional[int],
    description: str,
    previous_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
) -> AuditEntry:
    """Capture actor, request metadata and JSON-safe snapshots."""
    return AuditEntry(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description[:MAX_DESCRIPTION_LENGTH],
        performed_by_id=actor["user_id"],
        performed_by_name=actor["name"],
        performed_by_role=actor["role"],
        previous_values=jsonable_encoder(previous_values) if previous_values is not None else None,
        new_values=jsonable_encoder(new_values) if new_values is not None else None,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


async def record_audit_event(entry: AuditEntry) -> None:
    """
    Persist one audit row on a dedicated session.

    Never raises: audit logging is best effort.
    """
    try:
        async with AsyncSessionLocal() as session:
            session.add(AuditLog(
                action=entry.action,
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                description=entry.description,
                performed_by_id=entry.performed_by_id,
                performed_by_name=entry.performed_by_name,
                performed_by_role=entry.performed_by_role,
                previous_values=entry.previous_values,
                new_values=entry.new_values,
                ip_address=entry.ip_address,
                user_agent=entry.user_agent,
            ))
            await session.commit()
    except Exception:
        logger.exception(
            "Error creating audit log",
            extra={"action": entry.action.value, "entity_type": entry.entity_type.value, "entity_id": entry.entity_id},
        )


def schedule_audit(
    background_tasks: BackgroundTasks,
    request: Request,
    actor: dict,
    action: AuditAction,
    entity_type: AuditEntity,
    entity_id: Optional[int],
    description: str,
    previous_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Queue an audit write to run once the response has been sent.

    Background tasks only run for responses that were actually produced,
    so a handler that raises leaves no audit trace.
    """
    entry = build_entry(
        request, actor, action, entity_type, entity_id, description,
        previous_values=previous_values, new_values=new_values,
    )
    background_tasks.add_task(record_audit_event, entry)


def _apply_filters(query, filters: AuditFilters):
    if filters.action:
        query = query.where(AuditLog.action == filters.action)
    if filters.entity_type:
        query = query.where(AuditLog.entity_type == filters.entity_type)
    if filters.performed_by:
        query = query.where(AuditLog.performed_by_id == filters.performed_by)
    if filters.start_date:
        query = query.where(AuditLog.created_at >= filters.start_date)
    if filters.end_date:
        query = query.where(AuditLog.created_at <= filters.end_date)
    return query


async def get_audit_trail(
    db: AsyncSession,
    filters: AuditFilters,
    page: int = 1,
    limit: int = 50,
) -> Tuple[List[AuditLog], int]:
    """
    Retrieve a page of audit logs, most recent first.

    Returns:
        (logs, total matching rows)
    """
    total = (await db.execute(_apply_filters(select(func.count(AuditLog.id)), filters))).scalar() or 0

    query = _apply_filters(select(AuditLog), filters)
    query = query.order_by(desc(AuditLog.created_at), desc(AuditLog.id)).offset((page - 1) * limit).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def get_entity_history(
    db: AsyncSession,
    entity_type: AuditEntity,
    entity_id: int,
    limit: int = 100,
) -> List[AuditLog]:
    """Latest audit entries for a single entity."""
    query = select(AuditLog).where(
        AuditLog.entity_type == entity_type,
        AuditLog.entity_id == entity_id,
    ).order_by(desc(AuditLog.created_at), desc(AuditLog.id)).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_audit_stats(db: AsyncSession, days: int = 7) -> Dict[str, Any]:
    """
    Action counts over the last ``days`` days.

    Returns:
        ``{"daily": [{"action", "date", "count"}], "by_action": {action: count}}``
    """
    since = datetime.now(timezone.utc) - timedelta(days=days)
    day = func.date(AuditLog.created_at)

    daily_query = (
        select(AuditLog.action, day.label("day"), func.count(AuditLog.id))
        .where(AuditLog.created_at >= since)
        .group_by(AuditLog.action, day)
        .order_by(day)
    )
    daily_rows = (await db.execute(daily_query)).all()

    by_action_query = (
        select(AuditLog.action, func.count(AuditLog.id))
        .where(AuditLog.created_at >= since)
        .group_by(AuditLog.action)
    )
    by_action_rows = (await db.execute(by_action_query)).all()

    return {
        "daily": [
            {"action": action, "date": str(day_value), "count": count}
            for action, day_value, count in daily_rows
        ],
        "by_action": {action.value: count for action, count in by_action_rows},
    }
