"""
Audit Log Database Model.

Append-only history of who did what to which entity, for compliance and
traceability.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON, Enum, event
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import AuditAction, AuditEntity


class AuditLog(Base):
    """
    Audit log entry.

    ``entity_id`` is empty only for ``system`` entries. ``previous_values``
    and ``new_values`` hold JSON snapshots of the fields an action touched.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # What happened, and to which entity
    action = Column(Enum(AuditAction), nullable=False, index=True)
    entity_type = Column(Enum(AuditEntity), nullable=False, index=True)
    entity_id = Column(Integer, nullable=True, index=True)
    description = Column(String(500), nullable=False)

    # Who did it
    performed_by_id = Column(Integer, index=True, nullable=False)
    performed_by_name = Column(String(100), nullable=False)
    performed_by_role = Column(String(50), nullable=False)

    # What changed
    previous_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    # Request metadata
    ip_address = Column(String(50), nullable=True)
    user_agent = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action.value}', entity={self.entity_type.value}:{self.entity_id})>"


@event.listens_for(AuditLog, "before_update")
def _refuse_update(mapper, connection, target):
    raise ValueError("Audit log entries are append-only and cannot be modified")


@event.listens_for(AuditLog, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise ValueError("Audit log entries are append-only and cannot be deleted")
