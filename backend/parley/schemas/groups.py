"""Schemas for groups and group membership."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from parley.models.enums import GroupRole

from .messages import MessageRead
from .users import PublicUser


class GroupCreate(BaseModel):
    """Payload for creating a group."""

    name: str | None = Field(default=None, description="Group name, up to 100 characters")
    description: str | None = Field(default=None, max_length=1000)
    image: str | None = None
    is_private: bool = False
    max_members: int = Field(default=100, ge=2, le=1000)


class GroupUpdate(BaseModel):
    """Partial update of group settings."""

    name: str | None = None
    description: str | None = Field(default=None, max_length=1000)
    image: str | None = None
    is_private: bool | None = None
    max_members: int | None = Field(default=None, ge=2, le=1000)


class GroupRead(BaseModel):
    """Group with counts relative to the caller."""

    id: int
    name: str
    description: str | None = None
    image: str | None = None
    is_private: bool
    max_members: int
    creator_id: int | None = None
    created_at: datetime
    updated_at: datetime
    member_count: int = 0
    message_count: int = 0
    is_member: bool = False
    user_role: GroupRole | None = None


class GroupMemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    user: PublicUser
    role: GroupRole
    nickname: str | None = None
    muted_until: datetime | None = None
    joined_at: datetime


class GroupDetail(GroupRead):
    """Group page payload including members and the latest messages."""

    members: list[GroupMemberRead] = Field(default_factory=list)
    messages: list[MessageRead] = Field(default_factory=list)


class GroupMemberAdd(BaseModel):
    user_id: int | None = None


class GroupMemberUpdate(BaseModel):
    """Change a member's role, mute window or nickname.

    ``creator`` is accepted as an alias of ``owner``.
    """

    role: GroupRole | None = None
    muted_until: datetime | None = None
    nickname: str | None = None

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value):
        if isinstance(value, str):
            return GroupRole(value.strip().lower())
        return value
