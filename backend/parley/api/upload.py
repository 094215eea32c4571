"""Media upload endpoints."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from parley.api.deps import get_current_user
from parley.core.storage import StoredFile, delete_upload, store_upload
from parley.models import User
from parley.schemas import MessageResponse, UploadDelete, UploadRead

router = APIRouter(prefix="/upload", tags=["upload"])


@router.post("", response_model=UploadRead, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...),
    upload_type: Literal["avatar", "group-avatar", "message"] = Form(default="message", alias="type"),
    current_user: User = Depends(get_current_user),
) -> StoredFile:
    """Store an avatar or attachment and return its public URL."""

    return await store_upload(current_user.id, file, upload_type)


@router.delete("", response_model=MessageResponse)
async def remove_file(
    payload: UploadDelete,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    if not payload.url:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="URL required")
    delete_upload(current_user.id, payload.url)
    return MessageResponse(message="File deleted successfully")
