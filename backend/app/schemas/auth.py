"""
Authentication Pydantic schemas.

Defines request and response schemas for authentication endpoints.
"""

from pydantic import BaseModel, Field
from typing import Optional
from backend.app.schemas.user import UserResponse


class LoginRequest(BaseModel):
    """
    Schema for user login.

    Used by POST /auth/login. Missing fields are reported as 400 by the
    handler, so both are optional at the schema level.
    """
    email: Optional[str] = Field(None, description="Account email")
    password: Optional[str] = Field(None, description="Password")


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = Field(None, description="Refresh token issued at login")


class ChangePasswordRequest(BaseModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class LoginData(BaseModel):
    """Returned by a successful login."""
    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AccessTokenData(BaseModel):
    """Returned by a successful refresh."""
    access_token: str
    token_type: str = "bearer"
