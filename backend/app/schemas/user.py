"""
User management Pydantic schemas.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from typing import Optional
from backend.app.models.enums import UserRole


class UserCreate(BaseModel):
    """Schema for an admin creating a staff account."""
    email: EmailStr = Field(..., description="Login email (unique)")
    password: str = Field(..., min_length=6, description="Password (min 6 characters)")
    name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = Field(default=UserRole.SALES_AGENT, description="Defaults to sales_agent")
    phone: Optional[str] = Field(None, max_length=30)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class UserUpdate(BaseModel):
    """Schema for updating a staff account (all fields optional)."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[UserRole] = None
    phone: Optional[str] = Field(None, max_length=30)
    is_active: Optional[bool] = None


class PasswordResetRequest(BaseModel):
    password: Optional[str] = None


class UserResponse(BaseModel):
    """Public view of a user; never exposes password hash or refresh token."""
    id: int
    email: str
    name: str
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
