"""
Driver database model.

A driver application registered by a sales agent and reviewed by operations.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey, Text
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import DriverStatus, RegistrationStatus


class Driver(Base):
    """
    Driver application.

    Status moves pending -> under_review -> approved | rejected, with
    operations/admin allowed to set any status directly.
    """
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Driver information
    name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    code = Column(String(10), nullable=True)
    plate_number = Column(String(20), nullable=False, index=True)
    registration_status = Column(
        Enum(RegistrationStatus), default=RegistrationStatus.REGISTRATION, nullable=False
    )
    tin_no = Column(String(20), nullable=True)

    # Application status
    status = Column(Enum(DriverStatus), default=DriverStatus.PENDING, nullable=False, index=True)
    rejection_reason = Column(String(500), nullable=True)
    documents_complete = Column(Boolean, default=False, nullable=False)

    # Relationships
    registered_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reviewed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Workflow timestamps
    submitted_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)

    internal_notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Driver(id={self.id}, name='{self.name}', status='{self.status.value}')>"
