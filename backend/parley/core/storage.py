"""Local media storage for avatars and message attachments."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from fastapi import UploadFile

from parley.config import get_settings
from parley.services.errors import ForbiddenError, InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

settings = get_settings()

_CHUNK_SIZE: Final[int] = 1024 * 1024  # 1 MiB

ALLOWED_IMAGE_TYPES: Final[frozenset[str]] = frozenset(
    {"image/jpeg", "image/png", "image/gif", "image/webp"}
)
ALLOWED_FILE_TYPES: Final[frozenset[str]] = ALLOWED_IMAGE_TYPES | {
    "application/pdf",
    "text/plain",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

# Stored files are named from the validated content type, never from the
# client-supplied filename.
CONTENT_TYPE_EXTENSIONS: Final[dict[str, str]] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "application/pdf": "pdf",
    "text/plain": "txt",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
}

UPLOAD_FOLDERS: Final[dict[str, str]] = {
    "avatar": "avatars",
    "group-avatar": "group-avatars",
    "message": "messages",
}


@dataclass(slots=True)
class StoredFile:
    """Represents a file persisted by the storage backend."""

    url: str
    file_name: str
    content_type: str | None
    file_size: int
    relative_path: str


def _media_root() -> Path:
    root = settings.media_root
    root.mkdir(parents=True, exist_ok=True)
    return root


def _public_url(relative_path: str) -> str:
    return f"{settings.media_base_url.rstrip('/')}/{relative_path}"


def _validate_content_type(upload_type: str, content_type: str | None) -> None:
    if upload_type in ("avatar", "group-avatar"):
        if content_type not in ALLOWED_IMAGE_TYPES:
            raise InvalidInputError("Only image files are allowed for avatars")
    elif content_type not in ALLOWED_FILE_TYPES:
        raise InvalidInputError("File type not allowed")


async def store_upload(user_id: int, upload: UploadFile, upload_type: str) -> StoredFile:
    """Persist an uploaded file under ``<folder>/<user id>-<millis>.<ext>``."""

    _validate_content_type(upload_type, upload.content_type)
    folder = UPLOAD_FOLDERS.get(upload_type, "messages")
    target_dir = _media_root() / folder
    target_dir.mkdir(parents=True, exist_ok=True)

    original_name = upload.filename or "upload.bin"
    extension = CONTENT_TYPE_EXTENSIONS[upload.content_type]
    file_name = f"{user_id}-{int(time.time() * 1000)}.{extension}"
    absolute_path = target_dir / file_name

    total_size = 0
    try:
        with absolute_path.open("wb") as buffer:
            while True:
                chunk = await upload.read(_CHUNK_SIZE)
                if not chunk:
                    break
                total_size += len(chunk)
                if total_size > settings.max_upload_size:
                    raise InvalidInputError("File size exceeds 10MB limit")
                buffer.write(chunk)
    except InvalidInputError:
        if absolute_path.exists():
            absolute_path.unlink()
        raise
    finally:
        await upload.close()

    relative_path = f"{folder}/{file_name}"
    logger.info("Stored upload %s (%d bytes) for user %s", relative_path, total_size, user_id)
    return StoredFile(
        url=_public_url(relative_path),
        file_name=original_name,
        content_type=upload.content_type,
        file_size=total_size,
        relative_path=relative_path,
    )


def delete_upload(user_id: int, url: str) -> None:
    """Remove a stored file owned by ``user_id`` given its public URL."""

    base = settings.media_base_url.rstrip("/") + "/"
    relative_path = url.split(base, 1)[1] if base in url else url
    parts = relative_path.strip("/").split("/")
    if len(parts) != 2 or parts[0] not in UPLOAD_FOLDERS.values():
        raise InvalidInputError("Invalid upload URL")
    owner_prefix = parts[1].split("-", 1)[0]
    if owner_prefix != str(user_id):
        raise ForbiddenError("You can only delete your own uploads")

    absolute_path = _media_root() / parts[0] / parts[1]
    if not absolute_path.is_file():
        raise NotFoundError("File not found")
    absolute_path.unlink()
    logger.info("Deleted upload %s for user %s", relative_path, user_id)
