"""Schemas for call signaling."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from parley.models.enums import CallStatus, CallType

from .users import PublicUser


class CallCreate(BaseModel):
    receiver_id: int | None = None
    type: str | None = Field(default=None, description="audio or video")
    offer: Any = None


class CallUpdate(BaseModel):
    """One signaling step. Only the key matching ``action`` is read."""

    action: str
    offer: Any = None
    answer: Any = None
    ice_candidate: Any = None
    status: str | None = None


class CallRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    initiator_id: int
    receiver_id: int
    initiator: PublicUser
    receiver: PublicUser
    type: CallType
    status: CallStatus
    offer: Any = None
    answer: Any = None
    ice_candidates: dict[str, list[Any]] | None = None
    started_at: datetime
    ended_at: datetime | None = None
    duration: int | None = None


class CallPollRead(BaseModel):
    incoming_call: CallRead | None = None
    active_call: CallRead | None = None


class CallHistoryEntry(CallRead):
    is_outgoing: bool
    other_user: PublicUser
