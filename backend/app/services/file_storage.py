"""
Local disk storage for uploaded driver documents.

Layout: ``<upload_dir>/<driver_id>/<type>-<epoch_ms>-<rand>.<ext>``.
Writes are synchronous; there is no protection against concurrent writers
beyond the unique file name.
"""

import os
import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from backend.app.core.config import settings
from backend.app.core.exceptions import ValidationFailedError
from backend.app.core.logging import get_logger

logger = get_logger(__name__)

ALLOWED_MIME_TYPES = (
    "image/jpeg",
    "image/png",
    "image/webp",
    "application/pdf",
)

CHUNK_SIZE = 64 * 1024


@dataclass
class StoredFile:
    filename: str
    original_name: str
    mime_type: str
    size: int
    path: str


def driver_upload_dir(driver_id: int) -> Path:
    return Path(settings.upload_dir) / str(driver_id)


def build_filename(document_type: str, original_name: Optional[str]) -> str:
    """``<type>-<epoch_ms>-<rand><ext>``, keeping the client's extension."""
    ext = os.path.splitext(original_name or "")[1].lower()
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{document_type}-{unique_suffix}{ext}"


def validate_upload(upload: UploadFile) -> None:
    """Reject files whose declared MIME type is not accepted."""
    if upload.content_type not in ALLOWED_MIME_TYPES:
        raise ValidationFailedError("Invalid file type. Only JPEG, PNG, WebP, and PDF are allowed.")


def save_upload(driver_id: int, document_type: str, upload: UploadFile) -> StoredFile:
    """
    Validate and write an uploaded file to the driver's directory.

    Args:
        driver_id: Owner driver; becomes the sub-directory name
        document_type: Document type value, used as the file name prefix
        upload: Multipart file from the request

    Returns:
        StoredFile describing what was written

    Raises:
        ValidationFailedError (400): bad MIME type or file over the size limit
    """
    validate_upload(upload)

    target_dir = driver_upload_dir(driver_id)
    target_dir.mkdir(parents=True, exist_ok=True)

    filename = build_filename(document_type, upload.filename)
    target = target_dir / filename

    size = 0
    upload.file.seek(0)
    with open(target, "wb") as out:
        while True:
            chunk = upload.file.read(CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > settings.max_upload_size:
                break
            out.write(chunk)

    if size > settings.max_upload_size:
        target.unlink(missing_ok=True)
        limit_mb = settings.max_upload_size // (1024 * 1024)
        raise ValidationFailedError(f"File size too large. Maximum size is {limit_mb}MB.")

    logger.info(f"Stored {document_type} upload for driver {driver_id} ({size} bytes)")

    return StoredFile(
        filename=filename,
        original_name=upload.filename or filename,
        mime_type=upload.content_type,
        size=size,
        path=str(target),
    )


def delete_stored_file(path: str) -> bool:
    """Remove a stored file; returns False when it was already gone."""
    file_path = Path(path)
    if not file_path.exists():
        return False
    file_path.unlink()
    return True


def stored_file_exists(path: str) -> bool:
    return Path(path).is_file()
