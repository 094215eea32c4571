"""Schemas for authentication endpoints."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, constr, field_validator, model_validator

from .users import UserRead

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _sanitize(value: str | None) -> str | None:
    if value is None:
        return None
    return value.replace("<", "").replace(">", "").strip()


def _normalize_email(value: str) -> str:
    email = value.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email address")
    return email


class UserCreate(BaseModel):
    """Payload for creating a new user via registration.

    ``name`` is the legacy single-name field; it fills whichever of
    ``real_name`` and ``nickname`` is missing.
    """

    email: constr(max_length=255) = Field(..., description="Unique account email")
    password: constr(min_length=6, max_length=128) = Field(
        ..., description="Plain text password that will be hashed before storing"
    )
    real_name: str | None = Field(default=None, description="Real name, 2-100 characters")
    nickname: str | None = Field(default=None, description="Display name, 2-50 characters")
    name: str | None = Field(default=None, description="Legacy name field")

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)

    @model_validator(mode="after")
    def resolve_names(self) -> "UserCreate":
        legacy = _sanitize(self.name)
        real_name = _sanitize(self.real_name) or legacy
        nickname = _sanitize(self.nickname) or legacy
        if not real_name or len(real_name) < 2 or len(real_name) > 100:
            raise ValueError("Real name must be between 2 and 100 characters")
        if not nickname or len(nickname) < 2 or len(nickname) > 50:
            raise ValueError("Nickname must be between 2 and 50 characters")
        self.real_name = real_name
        self.nickname = nickname
        self.name = None
        return self


class LoginRequest(BaseModel):
    """Payload for user login."""

    email: constr(min_length=3, max_length=255) = Field(..., description="Account email")
    password: constr(min_length=1, max_length=128) = Field(..., description="User password")


class Token(BaseModel):
    """Tokens returned after successful authentication."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type, always 'bearer'")
    refresh_token: str = Field(..., description="Opaque one-time refresh token")
    expires_in: int = Field(..., description="Number of seconds until the access token expires")
    user: UserRead


class RefreshRequest(BaseModel):
    """Payload for requesting a new access token using a refresh token."""

    refresh_token: constr(min_length=1) = Field(..., description="Refresh token issued at login")


class LogoutRequest(BaseModel):
    refresh_token: str | None = Field(default=None, description="Refresh token to revoke")


class DeleteAccountRequest(BaseModel):
    """Self-service account removal."""

    password: str | None = None
    confirmation: str | None = Field(default=None, description='Must be the literal "DELETE"')
