"""
JWT token utilities for authentication.

Access and refresh tokens are signed with separate secrets so a leaked
refresh secret cannot mint access tokens and vice versa.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import ExpiredSignatureError, JWTError, jwt
from backend.app.core.config import settings
from backend.app.core.exceptions import InvalidTokenError, TokenExpiredError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def _encode(data: Dict[str, Any], secret: str, token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    to_encode.update({
        "type": token_type,
        "exp": datetime.now(timezone.utc) + expires_delta,
    })
    return jwt.encode(to_encode, secret, algorithm=settings.algorithm)


def _decode(token: str, secret: str, token_type: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.algorithm])
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise InvalidTokenError()

    if payload.get("type") != token_type or not payload.get("user_id"):
        raise InvalidTokenError()
    return payload


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload to encode (should include: sub, user_id, role)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string

    Example payload:
        {
            "sub": "agent@example.com",
            "user_id": 12,
            "role": "sales_agent",
            "type": "access",
            "exp": 1234567890
        }
    """
    return _encode(
        data,
        settings.jwt_secret,
        ACCESS_TOKEN_TYPE,
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create a long-lived refresh token (payload should include user_id)."""
    return _encode(
        data,
        settings.jwt_refresh_secret,
        REFRESH_TOKEN_TYPE,
        expires_delta or timedelta(days=settings.refresh_token_expire_days),
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Raises:
        TokenExpiredError: signature valid but token expired (code TOKEN_EXPIRED)
        InvalidTokenError: any other decoding failure or a non-access token
    """
    return _decode(token, settings.jwt_secret, ACCESS_TOKEN_TYPE)


def decode_refresh_token(token: str) -> Dict[str, Any]:
    """Decode and validate a refresh token; raises like ``decode_access_token``."""
    return _decode(token, settings.jwt_refresh_secret, REFRESH_TOKEN_TYPE)
