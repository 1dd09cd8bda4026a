"""
User management API endpoints (admin only).

Accounts are never hard-deleted: DELETE deactivates the account and
revokes every token it holds.
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from backend.app.db.session import contains_pattern, get_db
from backend.app.models.user import User
from backend.app.models.enums import AuditAction, AuditEntity, UserRole
from backend.app.schemas.common import DataResponse, ListResponse, MessageResponse, Pagination
from backend.app.schemas.user import UserCreate, UserUpdate, UserResponse, PasswordResetRequest
from backend.app.core.exceptions import ResourceNotFoundError, ValidationFailedError
from backend.app.core.guards import require_admin
from backend.app.core.security import get_password_hash
from backend.app.core.token_revocation import revoke_all_user_tokens, clear_user_token_revocation
from backend.app.core.logging import get_logger
from backend.app.services.audit import schedule_audit

router = APIRouter(prefix="/users", tags=["Users"])
logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise ResourceNotFoundError("User")
    return user


@router.get("", response_model=ListResponse[UserResponse])
async def list_users(
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    is_active: Optional[bool] = Query(None, description="Filter by active status"),
    search: Optional[str] = Query(None, description="Matches name or email"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List staff accounts, newest first."""
    conditions = []
    if role:
        conditions.append(User.role == role)
    if is_active is not None:
        conditions.append(User.is_active == is_active)
    if search:
        pattern = contains_pattern(search)
        conditions.append(or_(User.name.ilike(pattern, escape="\\"), User.email.ilike(pattern, escape="\\")))

    total = (await db.execute(select(func.count(User.id)).where(*conditions))).scalar() or 0

    query = (
        select(User)
        .where(*conditions)
        .order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    users = (await db.execute(query)).scalars().all()

    return ListResponse(
        data=[UserResponse.model_validate(u) for u in users],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("", response_model=DataResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a staff account.

    Raises:
        400: Email already registered or invalid payload
    """
    existing = await db.execute(select(User.id).where(User.email == user_data.email))
    if existing.scalar_one_or_none() is not None:
        raise ValidationFailedError("User with this email already exists")

    new_user = User(
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        name=user_data.name,
        role=user_data.role,
        phone=user_data.phone,
        is_active=True,
    )

    db.add(new_user)
    await db.commit()
    await db.refresh(new_user)

    schedule_audit(
        background_tasks, request, current_user,
        AuditAction.CREATE, AuditEntity.USER, new_user.id,
        f"Created new user: {new_user.name} ({new_user.role.value})",
        new_values={"email": new_user.email, "name": new_user.name, "role": new_user.role},
    )

    return DataResponse(data=UserResponse.model_validate(new_user))


@router.get("/{user_id}", response_model=DataResponse[UserResponse])
async def get_user(
    user_id: int,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await _get_user_or_404(db, user_id)
    return DataResponse(data=UserResponse.model_validate(user))


@router.put("/{user_id}", response_model=DataResponse[UserResponse])
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Update name, role, phone or active flag.

    Deactivation revokes the user's outstanding tokens; reactivation lifts
    the revocation.
    """
    user = await _get_user_or_404(db, user_id)

    changes = user_data.model_dump(exclude_unset=True)
    previous_values = {"name": user.name, "role": user.role, "is_active": user.is_active}
    role_changed = "role" in changes and changes["role"] is not None and changes["role"] != user.role
    was_active = user.is_active

    for field, value in changes.items():
        if value is None and field != "phone":
            continue
        setattr(user, field, value)

    if was_active and not user.is_active:
        user.refresh_token = None

    await db.commit()
    await db.refresh(user)

    if was_active and not user.is_active:
        await revoke_all_user_tokens(user.id)
        logger.info(f"User {user.id} deactivated; tokens revoked")
    elif not was_active and user.is_active:
        await clear_user_token_revocation(user.id)

    schedule_audit(
        background_tasks, request, current_user,
        AuditAction.ROLE_CHANGE if role_changed else AuditAction.UPDATE,
        AuditEntity.USER, user.id,
        f"Updated user: {user.name}",
        previous_values=previous_values,
        new_values=changes,
    )

    return DataResponse(data=UserResponse.model_validate(user))


@router.put("/{user_id}/reset-password", response_model=MessageResponse)
async def reset_password(
    user_id: int,
    payload: PasswordResetRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    if not payload.password or len(payload.password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailedError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    user = await _get_user_or_404(db, user_id)
    user.hashed_password = get_password_hash(payload.password)
    await db.commit()

    schedule_audit(
        background_tasks, request, current_user,
        AuditAction.PASSWORD_CHANGE, AuditEntity.USER, user.id,
        f"Admin reset password for user: {user.name}",
    )

    return MessageResponse(message="Password reset successfully")


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Deactivate a user (soft delete).

    Raises:
        404: User not found
        400: Admin attempting to delete their own account
    """
    user = await _get_user_or_404(db, user_id)

    if user.id == current_user["user_id"]:
        raise ValidationFailedError("Cannot delete your own account")

    user.is_active = False
    user.refresh_token = None
    await db.commit()

    await revoke_all_user_tokens(user.id)

    schedule_audit(
        background_tasks, request, current_user,
        AuditAction.DELETE, AuditEntity.USER, user.id,
        f"Deactivated user: {user.name}",
        previous_values={"is_active": True},
        new_values={"is_active": False},
    )

    return MessageResponse(message="User deactivated")
