"""Schemas for chat requests between users."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from parley.models.enums import ChatRequestStatus

from .users import PublicUser


class ChatRequestCreate(BaseModel):
    """Payload for asking another user to chat."""

    receiver_id: int | None = Field(default=None, description="Target user ID")
    message: str | None = Field(default=None, description="Optional note, truncated to 500 characters")


class ChatRequestRead(BaseModel):
    """Serialized chat request including both parties."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: int
    receiver_id: int
    sender: PublicUser
    receiver: PublicUser
    status: ChatRequestStatus
    message: str | None = None
    created_at: datetime
    responded_at: datetime | None = None


class ChatRequestCreated(BaseModel):
    request: ChatRequestRead
    remaining_requests: int


class ChatRequestAction(BaseModel):
    action: Literal["accept", "reject"]


class ChatRequestResponse(BaseModel):
    request: ChatRequestRead
    conversation_id: int | None = None
