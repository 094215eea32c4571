"""Chat request endpoints."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from parley.api.deps import get_current_user
from parley.database import get_db
from parley.models import User
from parley.schemas import (
    ChatRequestAction,
    ChatRequestCreate,
    ChatRequestCreated,
    ChatRequestRead,
    ChatRequestResponse,
    MessageResponse,
)
from parley.services import contacts

router = APIRouter(prefix="/chat-requests", tags=["chat-requests"])


@router.post("", response_model=ChatRequestCreated, status_code=status.HTTP_201_CREATED)
async def create_chat_request(
    payload: ChatRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ChatRequestCreated:
    request, remaining = contacts.create_request(db, current_user, payload.receiver_id, payload.message)
    request = contacts.load_request(db, request.id)
    return ChatRequestCreated(request=ChatRequestRead.model_validate(request), remaining_requests=remaining)


@router.get("", response_model=list[ChatRequestRead])
async def list_chat_requests(
    request_type: Literal["sent", "received", "all"] = Query(default="all", alias="type"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list:
    """Return up to 50 requests involving the caller, newest first."""

    return contacts.list_requests(db, current_user, request_type)


@router.patch("/{request_id}", response_model=ChatRequestResponse)
async def respond_to_chat_request(
    request_id: int,
    payload: ChatRequestAction,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ChatRequestResponse:
    """Accept or reject a request; accepting opens the direct conversation."""

    request, conversation = contacts.respond(db, request_id, current_user, payload.action)
    request = contacts.load_request(db, request.id)
    return ChatRequestResponse(
        request=ChatRequestRead.model_validate(request),
        conversation_id=conversation.id if conversation is not None else None,
    )


@router.delete("/{request_id}", response_model=MessageResponse)
async def cancel_chat_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    contacts.cancel(db, request_id, current_user)
    return MessageResponse(message="Chat request cancelled")
