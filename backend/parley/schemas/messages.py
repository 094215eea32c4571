"""Schemas related to chat messages, reactions, typing and receipts."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from parley.models.enums import MessageType

from .users import PublicUser


class ReplyPreview(BaseModel):
    """Short projection of the message being replied to."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    content: str
    type: MessageType
    sender: PublicUser | None = None


class MessageRead(BaseModel):
    """Serialized representation of a chat message."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int | None = None
    group_id: int | None = None
    sender_id: int
    sender: PublicUser | None = None
    content: str
    type: MessageType
    reply_to_id: int | None = None
    reply_to: ReplyPreview | None = None
    metadata: dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("meta", "metadata")
    )
    is_deleted: bool = False
    is_edited: bool = False
    created_at: datetime
    updated_at: datetime


class MessageCreate(BaseModel):
    """Payload for posting a message."""

    content: str | None = None
    type: MessageType = MessageType.TEXT
    reply_to_id: int | None = None
    metadata: dict[str, Any] | None = None


class MessageUpdate(BaseModel):
    content: str | None = None


class MessagePageRead(BaseModel):
    """One page of history, oldest first."""

    messages: list[MessageRead]
    next_cursor: int | None = None
    has_more: bool = False


class ReactionCreate(BaseModel):
    emoji: str | None = Field(default=None, description="Emoji to toggle")


class ReactionToggleRead(BaseModel):
    emoji: str
    removed: bool
    added: bool


class ReactionSummary(BaseModel):
    """Aggregated reaction information for a message."""

    emoji: str
    count: int = Field(..., ge=0)
    users: list[PublicUser] = Field(default_factory=list)
    has_reacted: bool = False


class TypingUpdate(BaseModel):
    is_typing: bool = True


class TypingRead(BaseModel):
    users: list[PublicUser] = Field(default_factory=list)


class ReadReceiptsCreate(BaseModel):
    message_ids: list[int] = Field(default_factory=list, description="Messages to mark as read")


class ReadReceiptsMarked(BaseModel):
    marked: int


class ReadReceiptRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user: PublicUser
    read_at: datetime


class ReadReceiptsRead(BaseModel):
    receipts: dict[int, list[ReadReceiptRead]] = Field(default_factory=dict)
