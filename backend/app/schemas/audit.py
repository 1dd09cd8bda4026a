"""
Audit log Pydantic schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, List, Optional
from backend.app.models.enums import AuditAction, AuditEntity


class AuditLogResponse(BaseModel):
    """Schema for audit log entry."""
    id: int
    action: AuditAction
    entity_type: AuditEntity
    entity_id: Optional[int]
    description: str
    performed_by_id: int
    performed_by_name: str
    performed_by_role: str
    previous_values: Optional[Any]
    new_values: Optional[Any]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class AuditDailyCount(BaseModel):
    action: AuditAction
    date: str
    count: int


class AuditStats(BaseModel):
    daily: List[AuditDailyCount]
    by_action: Dict[str, int]
