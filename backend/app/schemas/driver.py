"""
Driver Pydantic schemas.

Defines request and response models for driver registration and review.
"""

import re
from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from typing import List, Optional
from backend.app.models.enums import DriverStatus, RegistrationStatus
from backend.app.schemas.document import DocumentResponse

PHONE_PATTERN = re.compile(r"^(251)?[79]\d{8}$")


def _validate_phone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not PHONE_PATTERN.match(v):
        raise ValueError("Please enter a valid phone number (e.g., 251912345678)")
    return v


class DriverFieldsMixin(BaseModel):
    """Normalisation shared by create and update payloads."""

    @field_validator("phone", check_fields=False)
    @classmethod
    def validate_phone(cls, v):
        return _validate_phone(v)

    @field_validator("plate_number", check_fields=False)
    @classmethod
    def upper_plate(cls, v):
        return v.strip().upper() if v is not None else v

    @field_validator("email", check_fields=False)
    @classmethod
    def lower_email(cls, v):
        return v.lower() if v is not None else v

    @field_validator("name", "code", "tin_no", check_fields=False)
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class DriverCreate(DriverFieldsMixin):
    """Schema for registering a new driver."""
    name: str = Field(..., min_length=1, max_length=100, description="Driver name")
    phone: str = Field(..., description="Phone number, e.g. 251912345678")
    email: Optional[EmailStr] = None
    code: Optional[str] = Field(None, max_length=10)
    plate_number: str = Field(..., min_length=1, max_length=20)
    registration_status: RegistrationStatus = RegistrationStatus.REGISTRATION
    tin_no: Optional[str] = Field(None, max_length=20)
    internal_notes: Optional[str] = Field(None, max_length=1000)


class DriverUpdate(DriverFieldsMixin):
    """Schema for updating driver details (operations/admin)."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    code: Optional[str] = Field(None, max_length=10)
    plate_number: Optional[str] = Field(None, min_length=1, max_length=20)
    registration_status: Optional[RegistrationStatus] = None
    tin_no: Optional[str] = Field(None, max_length=20)
    internal_notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("name", "phone", "plate_number", "registration_status", mode="before")
    @classmethod
    def reject_null(cls, v):
        # These columns are NOT NULL; omit the field to leave it unchanged
        if v is None:
            raise ValueError("Field cannot be empty")
        return v


class DriverStatusUpdate(BaseModel):
    """
    Schema for a status transition.

    ``status`` is a plain string so an unknown value is answered with the
    handler's "Invalid status" message.
    """
    status: Optional[str] = None
    rejection_reason: Optional[str] = Field(None, max_length=500)


class DriverResponse(BaseModel):
    """Schema for driver response."""
    id: int
    name: str
    phone: str
    email: Optional[str]
    code: Optional[str]
    plate_number: str
    registration_status: RegistrationStatus
    tin_no: Optional[str]
    status: DriverStatus
    rejection_reason: Optional[str]
    documents_complete: bool
    registered_by_id: int
    reviewed_by_id: Optional[int]
    submitted_at: datetime
    reviewed_at: Optional[datetime]
    approved_at: Optional[datetime]
    internal_notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DriverDetail(BaseModel):
    """A driver together with its documents."""
    driver: DriverResponse
    documents: List[DocumentResponse]


class DriverStatsSummary(BaseModel):
    total: int = 0
    pending: int = 0
    under_review: int = 0
    approved: int = 0
    rejected: int = 0


class DailyCount(BaseModel):
    date: str
    count: int


class DriverStats(BaseModel):
    summary: DriverStatsSummary
    daily: List[DailyCount]
