"""Schemas for media uploads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class UploadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    url: str
    file_name: str
    content_type: str | None = None
    file_size: int


class UploadDelete(BaseModel):
    url: str | None = Field(default=None, description="Public URL returned by the upload")
