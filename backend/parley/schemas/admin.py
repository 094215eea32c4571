"""Schemas for the admin moderation surface."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from parley.models.enums import PresenceStatus, UserRole

from .groups import GroupRead
from .users import PublicUser


class AdminUserRead(BaseModel):
    id: int
    name: str | None = None
    real_name: str | None = None
    email: str
    image: str | None = None
    role: UserRole
    status: PresenceStatus
    last_seen: datetime | None = None
    created_at: datetime
    message_count: int = 0
    group_message_count: int = 0
    membership_count: int = 0
    created_group_count: int = 0


class AdminStats(BaseModel):
    total_users: int
    online_users: int
    total_groups: int
    total_messages: int


class AdminUserList(BaseModel):
    users: list[AdminUserRead]
    stats: AdminStats


class AdminUserUpdate(BaseModel):
    """Either a moderation ``action`` or whitelisted field changes."""

    action: Literal["removePhoto", "clearMessages"] | None = None
    name: str | None = None
    real_name: str | None = None
    email: str | None = None
    role: UserRole | None = None
    status: PresenceStatus | None = None
    bio: str | None = None
    image: str | None = None


class AdminUserResult(BaseModel):
    message: str | None = None
    user: AdminUserRead


class AdminGroupRead(GroupRead):
    creator: PublicUser | None = None


class AdminGroupUpdate(BaseModel):
    action: Literal["removeMember", "clearMessages"] | None = None
    user_id: int | None = None
    name: str | None = None
    description: str | None = None
    image: str | None = None
    is_private: bool | None = None
    max_members: int | None = Field(default=None, ge=2, le=1000)


class AdminGroupResult(BaseModel):
    message: str | None = None
    group: AdminGroupRead


class DeletedCount(BaseModel):
    message: str
    deleted: int
