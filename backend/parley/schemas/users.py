"""Schemas related to user profiles and presence."""

from __future__ import annotations

from datetime import date, datetime
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, constr, field_validator

from parley.models.enums import PresenceStatus, UserRole


class PublicUser(BaseModel):
    """Minimal public-facing user information."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str | None = None
    email: str | None = None
    image: str | None = None
    status: PresenceStatus = PresenceStatus.OFFLINE
    last_seen: datetime | None = None


class UserRead(PublicUser):
    """Representation of an account returned to its owner."""

    real_name: str | None = None
    role: UserRole = UserRole.USER
    created_at: datetime


class ProfileRead(UserRead):
    """Full profile of the authenticated user."""

    bio: str | None = None
    hobbies: str | None = None
    location: str | None = None
    website: str | None = None
    phone: str | None = None
    date_of_birth: date | None = None
    gender: str | None = None
    occupation: str | None = None
    updated_at: datetime


class ProfileUpdate(BaseModel):
    """Payload for updating profile fields. Blank strings clear a field."""

    name: constr(strip_whitespace=True, max_length=50) | None = Field(
        default=None, description="Display name, 2-50 characters"
    )
    real_name: constr(strip_whitespace=True, max_length=100) | None = None
    bio: constr(strip_whitespace=True, max_length=500) | None = None
    hobbies: constr(strip_whitespace=True, max_length=500) | None = None
    location: constr(strip_whitespace=True, max_length=100) | None = None
    website: constr(strip_whitespace=True, max_length=255) | None = None
    phone: constr(strip_whitespace=True, max_length=30) | None = None
    date_of_birth: date | None = None
    gender: constr(strip_whitespace=True, max_length=30) | None = None
    occupation: constr(strip_whitespace=True, max_length=100) | None = None
    image: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value and len(value) < 2:
            raise ValueError("Name must be at least 2 characters")
        return value

    @field_validator("website")
    @classmethod
    def validate_website(cls, value: str | None) -> str | None:
        if not value:
            return value
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError("Website must be a valid URL")
        return value

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def blank_date(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class StatusUpdate(BaseModel):
    """Payload for changing presence."""

    status: PresenceStatus = Field(default=PresenceStatus.ONLINE, description="New presence status")


class StatusRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: PresenceStatus
    last_seen: datetime | None = None


class ConnectionRead(BaseModel):
    """Relationship between the caller and another user."""

    model_config = ConfigDict(from_attributes=True)

    status: str = Field(..., description="connected, pending or not_connected")
    can_chat: bool
    can_send_request: bool
    conversation_id: int | None = None
    request_id: int | None = None
    is_sender: bool | None = None
    remaining_requests: int | None = None
