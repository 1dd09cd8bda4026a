"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.core.exceptions import AuthenticationError, TokenRevokedError
from backend.app.core.jwt import decode_access_token
from backend.app.core.token_revocation import is_token_revoked, are_user_tokens_revoked
from backend.app.db.session import get_db
from backend.app.models.user import User

# HTTP Bearer security scheme; a missing header is reported by get_current_user
security = HTTPBearer(auto_error=False)


async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """Extract the raw bearer token or fail with 401."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access denied. No token provided.")
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Checks, in order:
    1. Token signature, type and expiry (expired -> 401 TOKEN_EXPIRED)
    2. Token not revoked at logout
    3. User's tokens not revoked by deactivation
    4. User still exists and is active (real-time database check)

    Returns:
        Request identity: ``{"user_id", "sub", "name", "role"}``. The role
        comes from the database so role changes apply without re-login.

    Raises:
        AppException subclasses rendered as 401 by the global handler
    """
    payload = decode_access_token(token)
    user_id = payload["user_id"]

    if await is_token_revoked(token):
        raise TokenRevokedError()

    if await are_user_tokens_revoked(user_id):
        raise AuthenticationError("User access has been revoked")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise AuthenticationError("User not found.")

    if not user.is_active:
        raise AuthenticationError("Account is deactivated. Please contact administrator.")

    return {
        "user_id": user.id,
        "sub": user.email,
        "name": user.name,
        "role": user.role.value,
    }
