"""
Local file storage for prescription scans and product images.

Files land under UPLOAD_DIR/<folder>/ with a random name that keeps the
original extension. Only the stored name goes into the DB; public URLs are
built with public_url.
"""
import logging
import os
import uuid
from pathlib import Path
from typing import Iterable, List, Optional

from fastapi import UploadFile

from quickmed.core.config import settings
from quickmed.core.exceptions import BusinessError

logger = logging.getLogger(__name__)

PRESCRIPTIONS = "prescriptions"
PRODUCTS = "products"


def _folder(folder: str) -> Path:
    path = Path(settings.UPLOAD_DIR) / folder
    path.mkdir(parents=True, exist_ok=True)
    return path


def public_url(folder: str, stored_name: Optional[str]) -> Optional[str]:
    if not stored_name:
        return None
    return f"/uploads/{folder}/{os.path.basename(stored_name)}"


def _check_extension(filename: str) -> str:
    ext = Path(filename or "").suffix.lower()
    if ext not in settings.ALLOWED_UPLOAD_EXTENSIONS:
        raise BusinessError.bad_request("Only .jpeg, .jpg, .png and .pdf files are allowed")
    return ext


def save_upload(upload: UploadFile, folder: str) -> str:
    """
    Validate and write one uploaded file. Returns the stored file name.

    Raises:
        HTTPException 400 for a disallowed type or a file over MAX_UPLOAD_BYTES
    """
    ext = _check_extension(upload.filename)
    content = upload.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise BusinessError.bad_request(
            f"File {upload.filename} is larger than {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB"
        )
    if not content:
        raise BusinessError.bad_request(f"File {upload.filename} is empty")

    stored_name = f"{folder.rstrip('s')}-{uuid.uuid4().hex}{ext}"
    (_folder(folder) / stored_name).write_bytes(content)
    logger.info(f"Stored upload {upload.filename} as {folder}/{stored_name}")
    return stored_name


def save_uploads(uploads: Iterable[UploadFile], folder: str) -> List[str]:
    """Save several files; if one fails, the ones already written are removed."""
    stored = []
    try:
        for upload in uploads:
            stored.append(save_upload(upload, folder))
    except Exception:
        delete_files(stored, folder)
        raise
    return stored


def delete_files(stored_names: Iterable[str], folder: str) -> None:
    """Best-effort removal; a missing file is not an error."""
    for name in stored_names or []:
        if not name:
            continue
        path = Path(settings.UPLOAD_DIR) / folder / os.path.basename(name)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not delete upload {path}: {e}")
