"""Schemas for direct and group conversations."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from parley.models.enums import ConversationRole

from .messages import MessageRead
from .users import PublicUser


class ParticipantRead(BaseModel):
    """A user taking part in a conversation."""

    model_config = ConfigDict(from_attributes=True)

    user: PublicUser
    role: ConversationRole
    joined_at: datetime


class ConversationRead(BaseModel):
    """Conversation as seen by the caller."""

    id: int
    is_group: bool = False
    name: str | None = None
    creator_id: int | None = None
    created_at: datetime
    updated_at: datetime
    participants: list[ParticipantRead]
    last_message: MessageRead | None = None
    unread_count: int = 0
    is_muted: bool = False
    is_archived: bool = False
    is_pinned: bool = False
    cleared_at: datetime | None = None


class ConversationCreate(BaseModel):
    """Payload for opening a conversation."""

    participant_ids: list[int] = Field(..., description="Users to include besides the caller")
    name: str | None = Field(default=None, max_length=100)
    is_group: bool = False


class ConversationSettingsUpdate(BaseModel):
    """Toggle one of the caller's flags; omitting ``value`` flips it."""

    action: Literal["mute", "archive", "pin"]
    value: bool | None = None


class ConversationAction(BaseModel):
    action: Literal["clear"]


class ConversationSettingsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    conversation_id: int
    is_muted: bool
    is_archived: bool
    is_pinned: bool
    cleared_at: datetime | None = None


class ConversationLeft(BaseModel):
    message: str
    deleted: bool
