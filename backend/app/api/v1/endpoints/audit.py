"""
Audit log API endpoints (admin only, read only).
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.db.session import get_db
from backend.app.models.enums import AuditAction, AuditEntity
from backend.app.schemas.audit import AuditLogResponse, AuditStats
from backend.app.schemas.common import DataResponse, ListResponse, Pagination
from backend.app.core.guards import require_admin
from backend.app.services.audit import AuditFilters, get_audit_stats, get_audit_trail, get_entity_history

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("", response_model=ListResponse[AuditLogResponse])
async def list_audit_logs(
    action: Optional[AuditAction] = Query(None),
    entity_type: Optional[AuditEntity] = Query(None),
    performed_by: Optional[int] = Query(None, description="Acting user ID"),
    start_date: Optional[datetime] = Query(None, description="Inclusive lower bound on created_at"),
    end_date: Optional[datetime] = Query(None, description="Inclusive upper bound on created_at"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Audit trail, newest first."""
    filters = AuditFilters(
        action=action,
        entity_type=entity_type,
        performed_by=performed_by,
        start_date=start_date,
        end_date=end_date,
    )
    logs, total = await get_audit_trail(db, filters, page=page, limit=limit)

    return ListResponse(
        data=[AuditLogResponse.model_validate(log) for log in logs],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/stats", response_model=DataResponse[AuditStats])
async def audit_stats(
    days: int = Query(7, ge=1, le=365),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    stats = await get_audit_stats(db, days=days)
    return DataResponse(data=AuditStats.model_validate(stats))


@router.get("/entity/{entity_type}/{entity_id}", response_model=DataResponse[List[AuditLogResponse]])
async def entity_audit_history(
    entity_type: AuditEntity,
    entity_id: int,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Latest 100 entries recorded against a single entity."""
    logs = await get_entity_history(db, entity_type, entity_id)
    return DataResponse(data=[AuditLogResponse.model_validate(log) for log in logs])
