"""Call signaling endpoints."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from parley.api.deps import get_current_user
from parley.api.serializers import serialize_history_entry
from parley.database import get_db
from parley.models import Call, User
from parley.schemas import CallCreate, CallHistoryEntry, CallPollRead, CallRead, CallUpdate
from parley.services import calls as call_service

router = APIRouter(prefix="/calls", tags=["calls"])


@router.post("", response_model=CallRead, status_code=status.HTTP_201_CREATED)
async def start_call(
    payload: CallCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Call:
    return call_service.start_call(db, current_user, payload.receiver_id, payload.type, payload.offer)


@router.get("", response_model=CallPollRead)
async def poll_calls(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CallPollRead:
    """Return the call ringing for the caller and any call in progress."""

    poll = call_service.poll_calls(db, current_user)
    return CallPollRead(
        incoming_call=CallRead.model_validate(poll.incoming_call) if poll.incoming_call else None,
        active_call=CallRead.model_validate(poll.active_call) if poll.active_call else None,
    )


@router.get("/history", response_model=list[CallHistoryEntry])
async def call_history(
    history_filter: Literal["all", "sent", "received", "missed"] = Query(default="all", alias="filter"),
    limit: int = Query(default=50, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[CallHistoryEntry]:
    calls = call_service.call_history(db, current_user, history_filter, limit)
    return [serialize_history_entry(call, current_user) for call in calls]


@router.get("/{call_id}", response_model=CallRead)
async def read_call(
    call_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Call:
    return call_service.load_call(db, call_id, current_user)


@router.patch("/{call_id}", response_model=CallRead)
async def update_call(
    call_id: int,
    payload: CallUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Call:
    return call_service.update_call(db, call_id, current_user, payload.action, payload.model_dump())


@router.delete("/{call_id}", response_model=CallRead)
async def end_call(
    call_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Call:
    """Hang up, leaving a call summary in the direct conversation."""

    return call_service.end_call(db, call_id, current_user)
