"""Utilities for storing uploaded attachments and profile images."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Final
from uuid import uuid4

from fastapi import HTTPException, UploadFile, status

from app.config import get_settings
from app.models.enums import AttachmentKind

settings = get_settings()

logger = logging.getLogger(__name__)

_CHUNK_SIZE: Final[int] = 1024 * 1024  # 1 MiB

_ATTACHMENT_NAME: Final = re.compile(r"[0-9a-f]{32}(\.[a-z0-9]{1,8})?")

_EXTENSIONS: Final[dict[str, str]] = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
    "video/x-msvideo": ".avi",
}


@dataclass(slots=True)
class StoredFile:
    """Represents a file persisted by the storage backend."""

    file_name: str
    content_type: str | None
    file_size: int
    absolute_path: Path
    reference: str

    @property
    def kind(self) -> AttachmentKind:
        return attachment_kind_for(self.content_type)


def attachment_kind_for(content_type: str | None) -> AttachmentKind:
    if content_type and content_type.startswith("image/"):
        return AttachmentKind.IMAGE
    return AttachmentKind.VIDEO


def _media_root() -> Path:
    root = settings.media_root
    root.mkdir(parents=True, exist_ok=True)
    return root


def build_reference(file_name: str) -> str:
    base = settings.media_base_url.rstrip("/")
    return f"{base}/{file_name}"


def is_attachment_reference(reference: str) -> bool:
    """Whether *reference* has the shape issued by :func:`store_attachment`."""

    prefix = f"{settings.media_base_url.rstrip('/')}/"
    if not reference.startswith(prefix):
        return False
    return _ATTACHMENT_NAME.fullmatch(reference[len(prefix):]) is not None


def _reference_name(reference: str) -> str:
    # Only the final path component is trusted so a reference can never escape the media root.
    return PurePosixPath(reference.replace("\\", "/")).name


async def _write_upload(upload: UploadFile, file_name: str, *, too_large_detail: str) -> StoredFile:
    absolute_path = _media_root() / file_name
    total_size = 0
    try:
        with absolute_path.open("wb") as buffer:
            while True:
                chunk = await upload.read(_CHUNK_SIZE)
                if not chunk:
                    break
                total_size += len(chunk)
                if total_size > settings.max_upload_size:
                    raise HTTPException(
                        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                        detail=too_large_detail,
                    )
                buffer.write(chunk)
    except HTTPException:
        if absolute_path.exists():
            absolute_path.unlink()
        raise
    finally:
        await upload.close()

    return StoredFile(
        file_name=upload.filename or file_name,
        content_type=upload.content_type,
        file_size=total_size,
        absolute_path=absolute_path,
        reference=build_reference(file_name),
    )


def _ensure_allowed(content_type: str | None, *, images_only: bool = False) -> str:
    if content_type not in settings.allowed_upload_types:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Only images (jpeg, png, gif, webp) and videos (mp4, mov, avi) are allowed",
        )
    if images_only and not content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Profile images must be image files",
        )
    return content_type


async def store_attachment(upload: UploadFile) -> StoredFile:
    """Persist a message attachment and return its storage metadata."""

    content_type = _ensure_allowed(upload.content_type)
    extension = _EXTENSIONS.get(content_type) or Path(upload.filename or "").suffix.lower()
    file_name = f"{uuid4().hex}{extension}"
    if not _ATTACHMENT_NAME.fullmatch(file_name):
        file_name = uuid4().hex
    return await _write_upload(upload, file_name, too_large_detail="Attachment exceeds allowed size")


async def store_profile_image(user_id: int, kind: str, upload: UploadFile) -> StoredFile:
    """Persist an avatar or banner image for a user."""

    content_type = _ensure_allowed(upload.content_type, images_only=True)
    extension = _EXTENSIONS.get(content_type, ".png")
    file_name = f"{kind}-{user_id}-{uuid4().hex[:12]}{extension}"
    return await _write_upload(upload, file_name, too_large_detail=f"{kind.capitalize()} exceeds allowed size")


def delete_stored_file(reference: str | None) -> bool:
    """Remove the blob behind *reference*.

    Returns ``False`` when there was nothing to remove. Filesystem errors are
    propagated to the caller.
    """

    if not reference:
        return False
    name = _reference_name(reference)
    if not name:
        return False
    path = _media_root() / name
    try:
        path.unlink()
    except FileNotFoundError:
        logger.debug("Stored file %s already removed", name)
        return False
    return True


def resolve_path(file_name: str) -> Path:
    """Return the absolute path of a stored file by its name."""

    root = _media_root().resolve()
    candidate = (root / _reference_name(file_name)).resolve()
    if not str(candidate).startswith(str(root)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid file path")
    if not candidate.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return candidate
