"""Conversation and direct messaging endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from parley.api.deps import get_current_user
from parley.api.serializers import parse_id_list, serialize_conversation, serialize_page, serialize_receipts
from parley.database import get_db
from parley.models import Message, User
from parley.schemas import (
    ConversationAction,
    ConversationCreate,
    ConversationLeft,
    ConversationRead,
    ConversationSettingsRead,
    ConversationSettingsUpdate,
    MessageCreate,
    MessagePageRead,
    MessageRead,
    MessageUpdate,
    ReactionCreate,
    ReactionSummary,
    ReactionToggleRead,
    ReadReceiptsCreate,
    ReadReceiptsMarked,
    ReadReceiptsRead,
    TypingRead,
    TypingUpdate,
)
from parley.services import conversations as conversation_service
from parley.services import messaging

router = APIRouter(prefix="/conversations", tags=["conversations"])


def _settings_read(conversation_id: int, participant) -> ConversationSettingsRead:
    return ConversationSettingsRead(
        conversation_id=conversation_id,
        is_muted=participant.is_muted,
        is_archived=participant.is_archived,
        is_pinned=participant.is_pinned,
        cleared_at=participant.cleared_at,
    )


@router.get("", response_model=list[ConversationRead])
async def list_conversations(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[ConversationRead]:
    """Return the caller's conversations, most recently active first."""

    return [serialize_conversation(summary) for summary in conversation_service.list_conversations(db, current_user)]


@router.post("", response_model=ConversationRead, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    payload: ConversationCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ConversationRead:
    """Open a conversation. An existing direct thread is returned with 200."""

    conversation, created = conversation_service.create_conversation(
        db,
        current_user,
        payload.participant_ids,
        name=payload.name,
        is_group=payload.is_group,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return serialize_conversation(conversation_service.summarize(db, conversation, current_user.id))


@router.get("/{conversation_id}", response_model=ConversationRead)
async def read_conversation(
    conversation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ConversationRead:
    thread = messaging.open_conversation(db, conversation_id, current_user)
    return serialize_conversation(conversation_service.summarize(db, thread.conversation, current_user.id))


@router.put("/{conversation_id}", response_model=ConversationSettingsRead)
async def update_conversation_settings(
    conversation_id: int,
    payload: ConversationSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ConversationSettingsRead:
    """Mute, archive or pin the conversation for the caller only."""

    conversation = conversation_service.load_conversation(db, conversation_id)
    participant = conversation_service.update_settings(db, conversation, current_user, payload.action, payload.value)
    return _settings_read(conversation_id, participant)


@router.post("/{conversation_id}", response_model=ConversationSettingsRead)
async def clear_conversation(
    conversation_id: int,
    payload: ConversationAction,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ConversationSettingsRead:
    """Hide the existing history from the caller without deleting it."""

    conversation = conversation_service.load_conversation(db, conversation_id)
    participant = conversation_service.clear_history(db, conversation, current_user)
    return _settings_read(conversation_id, participant)


@router.delete("/{conversation_id}", response_model=ConversationLeft)
async def leave_conversation(
    conversation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ConversationLeft:
    conversation = conversation_service.load_conversation(db, conversation_id)
    deleted = conversation_service.leave_conversation(db, conversation, current_user)
    return ConversationLeft(message="Left conversation", deleted=deleted)


@router.get("/{conversation_id}/media", response_model=list[MessageRead])
async def list_conversation_media(
    conversation_id: int,
    media_type: str = Query(default="image", alias="type"),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[Message]:
    thread = messaging.open_conversation(db, conversation_id, current_user)
    return messaging.list_media(db, thread, media_type, limit=limit)


@router.get("/{conversation_id}/messages/search", response_model=list[MessageRead])
async def search_conversation_messages(
    conversation_id: int,
    q: str | None = Query(default=None),
    date_filter: Literal["today", "week", "month"] | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[Message]:
    thread = messaging.open_conversation(db, conversation_id, current_user)
    return messaging.search_messages(db, thread, q, date_filter=date_filter, limit=limit)


@router.get("/{conversation_id}/messages/read", response_model=ReadReceiptsRead)
async def read_conversation_receipts(
    conversation_id: int,
    message_ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReadReceiptsRead:
    ids = parse_id_list(message_ids)
    thread = messaging.open_conversation(db, conversation_id, current_user)
    return serialize_receipts(messaging.get_read_receipts(db, thread, ids))


@router.post("/{conversation_id}/messages/read", response_model=ReadReceiptsMarked)
async def mark_conversation_read(
    conversation_id: int,
    payload: ReadReceiptsCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReadReceiptsMarked:
    thread = messaging.open_conversation(db, conversation_id, current_user)
    return ReadReceiptsMarked(marked=messaging.mark_read(db, thread, payload.message_ids, current_user))


@router.get("/{conversation_id}/messages", response_model=MessagePageRead)
async def list_conversation_messages(
    conversation_id: int,
    cursor: int | None = Query(default=None),
    before: datetime | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessagePageRead:
    thread = messaging.open_conversation(db, conversation_id, current_user)
    return serialize_page(messaging.list_messages(db, thread, cursor=cursor, before=before, limit=limit))


@router.post("/{conversation_id}/messages", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
async def post_conversation_message(
    conversation_id: int,
    payload: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Message:
    thread = messaging.open_conversation(db, conversation_id, current_user)
    return messaging.post_message(
        db,
        thread,
        current_user,
        payload.content,
        message_type=payload.type,
        reply_to_id=payload.reply_to_id,
        metadata=payload.metadata,
    )


@router.get("/{conversation_id}/messages/{message_id}", response_model=MessageRead)
async def read_conversation_message(
    conversation_id: int,
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Message:
    thread = messaging.open_conversation(db, conversation_id, current_user)
    return messaging.get_message(db, thread, message_id)


@router.patch("/{conversation_id}/messages/{message_id}", response_model=MessageRead)
async def edit_conversation_message(
    conversation_id: int,
    message_id: int,
    payload: MessageUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Message:
    thread = messaging.open_conversation(db, conversation_id, current_user)
    return messaging.edit_message(db, thread, message_id, current_user, payload.content)


@router.delete("/{conversation_id}/messages/{message_id}", response_model=MessageRead)
async def delete_conversation_message(
    conversation_id: int,
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Message:
    thread = messaging.open_conversation(db, conversation_id, current_user)
    return messaging.delete_message(db, thread, message_id, current_user)


@router.get("/{conversation_id}/messages/{message_id}/reactions", response_model=list[ReactionSummary])
async def list_conversation_reactions(
    conversation_id: int,
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[dict]:
    thread = messaging.open_conversation(db, conversation_id, current_user)
    return messaging.list_reactions(db, thread, message_id, current_user)


@router.post("/{conversation_id}/messages/{message_id}/reactions", response_model=ReactionToggleRead)
async def toggle_conversation_reaction(
    conversation_id: int,
    message_id: int,
    payload: ReactionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    thread = messaging.open_conversation(db, conversation_id, current_user)
    return messaging.toggle_reaction(db, thread, message_id, current_user, payload.emoji)


@router.get("/{conversation_id}/typing", response_model=TypingRead)
async def read_conversation_typing(
    conversation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> TypingRead:
    thread = messaging.open_conversation(db, conversation_id, current_user)
    return TypingRead.model_validate({"users": messaging.get_typing(db, thread, current_user)}, from_attributes=True)


@router.post("/{conversation_id}/typing", response_model=TypingRead)
async def update_conversation_typing(
    conversation_id: int,
    payload: TypingUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> TypingRead:
    """Refresh the caller's typing lease and return who else is typing."""

    thread = messaging.open_conversation(db, conversation_id, current_user)
    messaging.set_typing(db, thread, current_user, payload.is_typing)
    return TypingRead.model_validate({"users": messaging.get_typing(db, thread, current_user)}, from_attributes=True)
