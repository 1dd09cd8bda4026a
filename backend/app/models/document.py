"""
Document database model.

Metadata for a file uploaded for a driver. The file itself lives on disk
under ``<upload_dir>/<driver_id>/``.
"""

from datetime import date
from sqlalchemy import Column, Integer, String, Date, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import DocumentType, DocumentStatus


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("drivers.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Enum(DocumentType), nullable=False)

    # File information
    filename = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=False)
    size = Column(Integer, nullable=False)
    path = Column(String(1024), nullable=False)

    # Approval
    status = Column(Enum(DocumentStatus), default=DocumentStatus.PENDING, nullable=False, index=True)
    rejection_reason = Column(String(500), nullable=True)

    expiry_date = Column(Date, nullable=True)
    document_number = Column(String(100), nullable=True)

    uploaded_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reviewed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def is_expired(self) -> bool:
        if self.expiry_date is None:
            return False
        return date.today() > self.expiry_date

    def __repr__(self):
        return f"<Document(id={self.id}, driver_id={self.driver_id}, type='{self.type.value}', status='{self.status.value}')>"
