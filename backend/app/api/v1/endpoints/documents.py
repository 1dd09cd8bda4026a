"""
Driver document endpoints.

Sales agents upload documents for their own drivers; operations and admins
work through the review queue.
"""

from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from backend.app.db.session import get_db
from backend.app.models.document import Document
from backend.app.models.driver import Driver
from backend.app.models.enums import AuditAction, AuditEntity, DocumentStatus, DocumentType
from backend.app.schemas.common import DataResponse, MessageResponse, Pagination
from backend.app.schemas.document import (
    DocumentStatusUpdate, DocumentResponse, DriverBrief, QueuedDocument,
    DocumentStatusCounts, DocumentQueueResponse,
)
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import ResourceNotFoundError, ValidationFailedError
from backend.app.core.guards import OwnershipGuard, require_admin, require_operations_or_admin, require_sales_agent
from backend.app.core.logging import get_logger
from backend.app.services.audit import schedule_audit
from backend.app.services.driver_workflow import (
    advance_if_documents_approved, get_driver_or_404, refresh_documents_complete,
)
from backend.app.services.file_storage import delete_stored_file, save_upload, stored_file_exists

router = APIRouter(prefix="/documents", tags=["Documents"])
ownership_guard = OwnershipGuard()
logger = get_logger(__name__)


async def _get_document_or_404(db: AsyncSession, document_id: int) -> Document:
    result = await db.execute(select(Document).where(Document.id == document_id))
    document = result.scalar_one_or_none()
    if not document:
        raise ResourceNotFoundError("Document")
    return document


def _parse_document_type(value: Optional[str]) -> DocumentType:
    try:
        return DocumentType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in DocumentType)
        raise ValidationFailedError(f"Invalid document type. Allowed types: {allowed}")


@router.post("/{driver_id}", response_model=DataResponse[DocumentResponse], status_code=status.HTTP_201_CREATED)
async def upload_document(
    driver_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    file: Optional[UploadFile] = File(None),
    type: Optional[str] = Form(None),
    document_number: Optional[str] = Form(None),
    expiry_date: Optional[date] = Form(None),
    current_user: dict = Depends(require_sales_agent),
    db: AsyncSession = Depends(get_db)
):
    """
    Upload a document for a driver (multipart form).

    Raises:
        404: Driver not found
        403: Sales agent uploading for someone else's driver
        400: Missing file, unknown type, disallowed MIME type or oversize file
    """
    driver = await get_driver_or_404(db, driver_id)
    ownership_guard.enforce(driver.registered_by_id, current_user, "driver")

    if file is None or not file.filename:
        raise ValidationFailedError("Please upload a file")

    document_type = _parse_document_type(type)
    stored = save_upload(driver.id, document_type.value, file)

    document = Document(
        driver_id=driver.id,
        type=document_type,
        filename=stored.filename,
        original_name=stored.original_name,
        mime_type=stored.mime_type,
        size=stored.size,
        path=stored.path,
        document_number=document_number,
        expiry_date=expiry_date,
        uploaded_by_id=current_user["user_id"],
        status=DocumentStatus.PENDING,
    )
    try:
        db.add(document)
        await db.flush()

        await refresh_documents_complete(db, driver)
        await db.commit()
    except Exception:
        await db.rollback()
        delete_stored_file(stored.path)
        logger.error(f"Discarded upload {stored.filename} after failed save for driver {driver_id}")
        raise
    await db.refresh(document)

    schedule_audit(
        background_tasks, request, current_user,
        AuditAction.CREATE, AuditEntity.DOCUMENT, document.id,
        f"Uploaded {document_type.value} document for driver: {driver.name}",
        new_values={"driver_id": driver.id, "type": document_type, "original_name": stored.original_name},
    )

    return DataResponse(data=DocumentResponse.model_validate(document))


@router.get("/queue", response_model=DocumentQueueResponse)
async def document_queue(
    status_filter: str = Query("pending", alias="status", description="Document status or 'all'"),
    type: Optional[DocumentType] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(require_operations_or_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Review queue, newest uploads first.

    ``counts`` covers every document regardless of the filters.
    """
    conditions = []
    if status_filter != "all":
        try:
            conditions.append(Document.status == DocumentStatus(status_filter))
        except ValueError:
            raise ValidationFailedError("Invalid status")
    if type:
        conditions.append(Document.type == type)

    total = (await db.execute(select(func.count(Document.id)).where(*conditions))).scalar() or 0

    query = (
        select(Document, Driver)
        .join(Driver, Document.driver_id == Driver.id)
        .where(*conditions)
        .order_by(Document.created_at.desc(), Document.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = (await db.execute(query)).all()

    items = [
        QueuedDocument(
            **DocumentResponse.model_validate(document).model_dump(),
            driver=DriverBrief.model_validate(driver),
        )
        for document, driver in rows
    ]

    count_rows = (await db.execute(
        select(Document.status, func.count(Document.id)).group_by(Document.status)
    )).all()
    counts = DocumentStatusCounts(**{doc_status.value: count for doc_status, count in count_rows})

    return DocumentQueueResponse(
        data=items,
        counts=counts,
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/{document_id}/file")
async def get_document_file(
    document_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Send the stored file with its recorded MIME type."""
    document = await _get_document_or_404(db, document_id)
    driver = await get_driver_or_404(db, document.driver_id)
    ownership_guard.enforce(driver.registered_by_id, current_user, "document")

    if not stored_file_exists(document.path):
        raise ResourceNotFoundError("File")

    return FileResponse(
        document.path,
        media_type=document.mime_type,
        filename=document.original_name,
        content_disposition_type="inline",
    )


@router.put("/{document_id}/status", response_model=DataResponse[DocumentResponse])
async def update_document_status(
    document_id: int,
    payload: DocumentStatusUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_operations_or_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Approve or reject a document.

    Approving the last outstanding document of a pending driver moves the
    driver to ``under_review``.
    """
    if payload.status not in (DocumentStatus.APPROVED.value, DocumentStatus.REJECTED.value):
        raise ValidationFailedError("Status must be approved or rejected")

    new_status = DocumentStatus(payload.status)
    if new_status == DocumentStatus.REJECTED and not payload.rejection_reason:
        raise ValidationFailedError("Rejection reason is required")

    document = await _get_document_or_404(db, document_id)
    driver = await get_driver_or_404(db, document.driver_id)
    previous_status = document.status

    document.status = new_status
    document.reviewed_by_id = current_user["user_id"]
    document.reviewed_at = datetime.now(timezone.utc)
    document.rejection_reason = payload.rejection_reason if new_status == DocumentStatus.REJECTED else None
    await db.flush()

    if new_status == DocumentStatus.APPROVED:
        await advance_if_documents_approved(db, driver, current_user["user_id"])

    await db.commit()
    await db.refresh(document)

    verb = "Approved" if new_status == DocumentStatus.APPROVED else "Rejected"
    schedule_audit(
        background_tasks, request, current_user,
        AuditAction.APPROVE if new_status == DocumentStatus.APPROVED else AuditAction.REJECT,
        AuditEntity.DOCUMENT, document.id,
        f"{verb} {document.type.value} document for driver: {driver.name}",
        previous_values={"status": previous_status},
        new_values={"status": new_status, "rejection_reason": payload.rejection_reason},
    )

    return DataResponse(data=DocumentResponse.model_validate(document))


@router.delete("/{document_id}", response_model=MessageResponse)
async def delete_document(
    document_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Delete a document record and its stored file (admin only)."""
    document = await _get_document_or_404(db, document_id)
    driver = await get_driver_or_404(db, document.driver_id)
    snapshot = {"type": document.type, "original_name": document.original_name, "status": document.status}
    stored_path = document.path

    await db.delete(document)
    await db.flush()
    await refresh_documents_complete(db, driver)
    await db.commit()

    try:
        delete_stored_file(stored_path)
    except OSError as e:
        logger.warning(f"Could not remove stored file {stored_path}: {e}")

    schedule_audit(
        background_tasks, request, current_user,
        AuditAction.DELETE, AuditEntity.DOCUMENT, document_id,
        f"Deleted {snapshot['type'].value} document for driver: {driver.name}",
        previous_values=snapshot,
    )

    return MessageResponse(message="Document deleted successfully")
