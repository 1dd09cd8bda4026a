"""
Driver API endpoints.

Sales agents register drivers and see only their own registrations.
Operations and admins review, update and change status of any driver.
"""

from typing import Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, delete
from backend.app.db.session import contains_pattern, get_db
from backend.app.models.driver import Driver
from backend.app.models.document import Document
from backend.app.models.enums import AuditAction, AuditEntity, DriverStatus
from backend.app.schemas.common import DataResponse, ListResponse, MessageResponse, Pagination
from backend.app.schemas.document import DocumentResponse
from backend.app.schemas.driver import (
    DriverCreate, DriverUpdate, DriverStatusUpdate, DriverResponse, DriverDetail, DriverStats,
)
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import OwnershipGuard, require_admin, require_operations_or_admin, require_sales_agent
from backend.app.core.logging import get_logger
from backend.app.services.audit import schedule_audit
from backend.app.services.driver_workflow import (
    apply_status_change, get_driver_or_404, get_driver_stats, parse_driver_status,
)
from backend.app.services.file_storage import delete_stored_file

router = APIRouter(prefix="/drivers", tags=["Drivers"])
ownership_guard = OwnershipGuard()
logger = get_logger(__name__)

SORT_COLUMNS = {
    "created_at": Driver.created_at,
    "updated_at": Driver.updated_at,
    "name": Driver.name,
    "status": Driver.status,
}


@router.post("", response_model=DataResponse[DriverResponse], status_code=status.HTTP_201_CREATED)
async def create_driver(
    driver_data: DriverCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_sales_agent),
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new driver.

    The driver starts as ``pending`` and is owned by the registering user.
    """
    new_driver = Driver(
        **driver_data.model_dump(),
        status=DriverStatus.PENDING,
        registered_by_id=current_user["user_id"],
    )

    db.add(new_driver)
    await db.commit()
    await db.refresh(new_driver)

    schedule_audit(
        background_tasks, request, current_user,
        AuditAction.CREATE, AuditEntity.DRIVER, new_driver.id,
        f"Registered new driver: {new_driver.name}",
        new_values=driver_data.model_dump(),
    )

    return DataResponse(data=DriverResponse.model_validate(new_driver))


@router.get("", response_model=ListResponse[DriverResponse])
async def list_drivers(
    status_filter: Optional[str] = Query(None, alias="status", description="Driver status or 'all'"),
    search: Optional[str] = Query(None, description="Matches name, phone or plate number"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: Literal["created_at", "updated_at", "name", "status"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List drivers, scoped to the caller's registrations for sales agents."""
    conditions = []

    owner_id = ownership_guard.filter_by_ownership(current_user)
    if owner_id is not None:
        conditions.append(Driver.registered_by_id == owner_id)

    if status_filter and status_filter != "all":
        conditions.append(Driver.status == parse_driver_status(status_filter))

    if search:
        pattern = contains_pattern(search)
        conditions.append(or_(
            Driver.name.ilike(pattern, escape="\\"),
            Driver.phone.ilike(pattern, escape="\\"),
            Driver.plate_number.ilike(pattern, escape="\\"),
        ))

    total = (await db.execute(select(func.count(Driver.id)).where(*conditions))).scalar() or 0

    column = SORT_COLUMNS[sort_by]
    ordering = column.asc() if sort_order == "asc" else column.desc()
    query = (
        select(Driver)
        .where(*conditions)
        .order_by(ordering, Driver.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    drivers = (await db.execute(query)).scalars().all()

    return ListResponse(
        data=[DriverResponse.model_validate(d) for d in drivers],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/stats", response_model=DataResponse[DriverStats])
async def driver_stats(
    period: Literal["day", "week", "month", "all"] = Query("month"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Dashboard counts for a period; sales agents get their own numbers."""
    stats = await get_driver_stats(
        db,
        period=period,
        registered_by_id=ownership_guard.filter_by_ownership(current_user),
    )
    return DataResponse(data=DriverStats.model_validate(stats))


@router.get("/{driver_id}", response_model=DataResponse[DriverDetail])
async def get_driver(
    driver_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    driver = await get_driver_or_404(db, driver_id)
    ownership_guard.enforce(driver.registered_by_id, current_user, "driver")

    result = await db.execute(
        select(Document).where(Document.driver_id == driver.id).order_by(Document.created_at.desc())
    )
    documents = result.scalars().all()

    return DataResponse(data=DriverDetail(
        driver=DriverResponse.model_validate(driver),
        documents=[DocumentResponse.model_validate(doc) for doc in documents],
    ))


@router.put("/{driver_id}", response_model=DataResponse[DriverResponse])
async def update_driver(
    driver_id: int,
    driver_data: DriverUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_operations_or_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Partially update driver details.

    Only the fields present in the request body are touched; the audit
    entry records their previous and new values.
    """
    driver = await get_driver_or_404(db, driver_id)

    changes = driver_data.model_dump(exclude_unset=True)
    previous_values = {field: getattr(driver, field) for field in changes}

    for field, value in changes.items():
        setattr(driver, field, value)

    await db.commit()
    await db.refresh(driver)

    schedule_audit(
        background_tasks, request, current_user,
        AuditAction.UPDATE, AuditEntity.DRIVER, driver.id,
        f"Updated driver: {driver.name}",
        previous_values=previous_values,
        new_values=changes,
    )

    return DataResponse(data=DriverResponse.model_validate(driver))


@router.put("/{driver_id}/status", response_model=DataResponse[DriverResponse])
async def update_driver_status(
    driver_id: int,
    payload: DriverStatusUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_operations_or_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Change a driver's review status.

    Raises:
        400: Unknown status, or rejection without a reason
        404: Driver not found
    """
    new_status = parse_driver_status(payload.status)
    driver = await get_driver_or_404(db, driver_id)

    previous_status = apply_status_change(driver, new_status, payload.rejection_reason, current_user["user_id"])

    await db.commit()
    await db.refresh(driver)

    if new_status == DriverStatus.APPROVED:
        action = AuditAction.APPROVE
    elif new_status == DriverStatus.REJECTED:
        action = AuditAction.REJECT
    else:
        action = AuditAction.STATUS_CHANGE

    schedule_audit(
        background_tasks, request, current_user,
        action, AuditEntity.DRIVER, driver.id,
        f"Changed driver status from {previous_status.value} to {new_status.value}: {driver.name}",
        previous_values={"status": previous_status},
        new_values={"status": new_status, "rejection_reason": payload.rejection_reason},
    )

    return DataResponse(data=DriverResponse.model_validate(driver))


@router.delete("/{driver_id}", response_model=MessageResponse)
async def delete_driver(
    driver_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Remove a driver together with its document records and stored files (admin only)."""
    driver = await get_driver_or_404(db, driver_id)
    snapshot = {"name": driver.name, "status": driver.status, "plate_number": driver.plate_number}

    result = await db.execute(select(Document.path).where(Document.driver_id == driver.id))
    paths = result.scalars().all()

    await db.execute(delete(Document).where(Document.driver_id == driver.id))
    await db.delete(driver)
    await db.commit()

    for path in paths:
        try:
            delete_stored_file(path)
        except OSError as e:
            logger.warning(f"Could not remove stored file {path}: {e}")

    schedule_audit(
        background_tasks, request, current_user,
        AuditAction.DELETE, AuditEntity.DRIVER, driver_id,
        f"Deleted driver: {snapshot['name']}",
        previous_values=snapshot,
    )

    return MessageResponse(message="Driver deleted successfully")
