"""
Document Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Optional
from backend.app.models.enums import DocumentStatus, DocumentType, DriverStatus
from backend.app.schemas.common import Pagination


class DocumentStatusUpdate(BaseModel):
    """Approve or reject a document; rejection needs a reason."""
    status: Optional[str] = None
    rejection_reason: Optional[str] = Field(None, max_length=500)


class DocumentResponse(BaseModel):
    id: int
    driver_id: int
    type: DocumentType
    filename: str
    original_name: str
    mime_type: str
    size: int
    status: DocumentStatus
    rejection_reason: Optional[str]
    expiry_date: Optional[date]
    document_number: Optional[str]
    is_expired: bool
    uploaded_by_id: int
    reviewed_by_id: Optional[int]
    reviewed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DriverBrief(BaseModel):
    """Driver fields shown next to a queued document."""
    id: int
    name: str
    phone: str
    plate_number: str
    status: DriverStatus

    class Config:
        from_attributes = True


class QueuedDocument(DocumentResponse):
    driver: DriverBrief


class DocumentStatusCounts(BaseModel):
    pending: int = 0
    approved: int = 0
    rejected: int = 0


class DocumentQueueResponse(BaseModel):
    """Review queue envelope: paginated documents plus per-status counts."""
    success: bool = True
    data: List[QueuedDocument]
    counts: DocumentStatusCounts
    pagination: Pagination
