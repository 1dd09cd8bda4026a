"""
Authentication API endpoints.

Login issues an access token and a refresh token; only the latest refresh
token of a user is accepted.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.models.enums import AuditAction, AuditEntity
from backend.app.schemas.auth import (
    LoginRequest, RefreshRequest, ChangePasswordRequest, LoginData, AccessTokenData,
)
from backend.app.schemas.common import DataResponse, MessageResponse
from backend.app.schemas.user import UserResponse
from backend.app.core.security import get_password_hash, verify_password
from backend.app.core.jwt import create_access_token, create_refresh_token, decode_refresh_token
from backend.app.core.dependencies import get_current_user, get_bearer_token
from backend.app.core.exceptions import (
    AuthenticationError, InvalidTokenError, ResourceNotFoundError, TokenExpiredError, ValidationFailedError,
)
from backend.app.core.token_revocation import revoke_token
from backend.app.core.logging import get_logger
from backend.app.services.audit import schedule_audit

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


def _identity(user: User) -> dict:
    return {"user_id": user.id, "sub": user.email, "name": user.name, "role": user.role.value}


def _access_token_for(user: User) -> str:
    return create_access_token(data={
        "sub": user.email,
        "user_id": user.id,
        "role": user.role.value,
    })


async def _load_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise ResourceNotFoundError("User")
    return user


@router.post("/login", response_model=DataResponse[LoginData])
async def login(
    credentials: LoginRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db)
):
    """
    Exchange email and password for an access and a refresh token.

    Unknown email and wrong password produce the same message.
    """
    if not credentials.email or not credentials.password:
        raise ValidationFailedError("Please provide email and password")

    result = await db.execute(select(User).where(User.email == credentials.email.strip().lower()))
    user = result.scalar_one_or_none()

    if not user:
        logger.info("Login failed: unknown email")
        raise AuthenticationError("Invalid credentials")

    if not user.is_active:
        raise AuthenticationError("Account is deactivated. Please contact administrator.")

    if not verify_password(credentials.password, user.hashed_password):
        logger.info(f"Login failed: bad password for user {user.id}")
        raise AuthenticationError("Invalid credentials")

    access_token = _access_token_for(user)
    refresh_token = create_refresh_token(data={"user_id": user.id})

    user.refresh_token = refresh_token
    user.last_login = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(user)

    schedule_audit(
        background_tasks, request, _identity(user),
        AuditAction.LOGIN, AuditEntity.USER, user.id,
        f"User {user.name} logged in",
    )

    return DataResponse(data=LoginData(
        user=UserResponse.model_validate(user),
        access_token=access_token,
        refresh_token=refresh_token,
    ))


@router.post("/refresh", response_model=DataResponse[AccessTokenData])
async def refresh(
    payload: RefreshRequest,
    db: AsyncSession = Depends(get_db)
):
    """Issue a new access token from the refresh token stored at login."""
    if not payload.refresh_token:
        raise ValidationFailedError("Refresh token is required")

    try:
        claims = decode_refresh_token(payload.refresh_token)
    except TokenExpiredError:
        raise TokenExpiredError("Refresh token expired. Please login again.")
    except InvalidTokenError:
        raise InvalidTokenError("Invalid refresh token")

    result = await db.execute(select(User).where(User.id == claims["user_id"]))
    user = result.scalar_one_or_none()

    if not user or user.refresh_token != payload.refresh_token:
        raise InvalidTokenError("Invalid refresh token")

    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    return DataResponse(data=AccessTokenData(access_token=_access_token_for(user)))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    background_tasks: BackgroundTasks,
    token: str = Depends(get_bearer_token),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Log out the current session.

    Clears the stored refresh token and blacklists the presented access token.
    """
    user = await _load_user(db, current_user["user_id"])
    user.refresh_token = None
    await db.commit()

    await revoke_token(token, user.id)

    schedule_audit(
        background_tasks, request, current_user,
        AuditAction.LOGOUT, AuditEntity.USER, user.id,
        f"User {current_user['name']} logged out",
    )

    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=DataResponse[UserResponse])
async def get_current_user_info(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get current authenticated user information.

    Returns:
        UserResponse with complete user information
    """
    user = await _load_user(db, current_user["user_id"])
    return DataResponse(data=UserResponse.model_validate(user))


@router.put("/password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not payload.current_password or not payload.new_password:
        raise ValidationFailedError("Please provide current and new password")

    if len(payload.new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailedError(f"New password must be at least {MIN_PASSWORD_LENGTH} characters")

    user = await _load_user(db, current_user["user_id"])

    if not verify_password(payload.current_password, user.hashed_password):
        raise AuthenticationError("Current password is incorrect")

    user.hashed_password = get_password_hash(payload.new_password)
    await db.commit()

    schedule_audit(
        background_tasks, request, current_user,
        AuditAction.PASSWORD_CHANGE, AuditEntity.USER, user.id,
        f"User {user.name} changed their password",
    )

    return MessageResponse(message="Password changed successfully")
