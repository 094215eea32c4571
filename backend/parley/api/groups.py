"""Group and group messaging endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from parley.api.deps import get_current_user
from parley.api.serializers import (
    parse_id_list,
    serialize_group,
    serialize_group_detail,
    serialize_page,
    serialize_receipts,
)
from parley.database import get_db
from parley.models import GroupMember, Message, User
from parley.schemas import (
    GroupCreate,
    GroupDetail,
    GroupMemberAdd,
    GroupMemberRead,
    GroupMemberUpdate,
    GroupRead,
    GroupUpdate,
    MessageCreate,
    MessagePageRead,
    MessageRead,
    MessageResponse,
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
from parley.services import groups as group_service
from parley.services import messaging

router = APIRouter(prefix="/groups", tags=["groups"])


def _detail(db: Session, group, user: User) -> GroupDetail:
    summary = group_service.summarize(db, [group], user.id)[0]
    return serialize_group_detail(
        summary,
        group_service.list_members(group, user),
        group_service.recent_messages(db, group),
    )


@router.get("", response_model=list[GroupRead])
async def list_groups(
    group_filter: Literal["my", "public", "all"] = Query(default="all", alias="filter"),
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[GroupRead]:
    return [serialize_group(summary) for summary in group_service.list_groups(db, current_user, group_filter, search)]


@router.post("", response_model=GroupDetail, status_code=status.HTTP_201_CREATED)
async def create_group(
    payload: GroupCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GroupDetail:
    group = group_service.create_group(
        db,
        current_user,
        payload.name,
        description=payload.description,
        image=payload.image,
        is_private=payload.is_private,
        max_members=payload.max_members,
    )
    return _detail(db, group, current_user)


@router.get("/{group_id}", response_model=GroupDetail)
async def read_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GroupDetail:
    """Return the group with its members and the 50 latest messages."""

    group = group_service.load_group(db, group_id)
    group_service.ensure_readable(group, current_user.id)
    return _detail(db, group, current_user)


@router.patch("/{group_id}", response_model=GroupDetail)
async def update_group(
    group_id: int,
    payload: GroupUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GroupDetail:
    group = group_service.load_group(db, group_id)
    group = group_service.update_group(db, group, current_user, payload.model_dump(exclude_unset=True))
    return _detail(db, group, current_user)


@router.delete("/{group_id}", response_model=MessageResponse)
async def delete_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    group = group_service.load_group(db, group_id)
    group_service.delete_group(db, group, current_user)
    return MessageResponse(message="Group deleted")


@router.post("/{group_id}/members", response_model=GroupMemberRead, status_code=status.HTTP_201_CREATED)
async def join_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GroupMember:
    group = group_service.load_group(db, group_id)
    return group_service.join_group(db, group, current_user)


@router.delete("/{group_id}/members", response_model=MessageResponse)
async def leave_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    group = group_service.load_group(db, group_id)
    group_service.leave_group(db, group, current_user)
    return MessageResponse(message="Left group")


@router.put("/{group_id}/members", response_model=GroupMemberRead, status_code=status.HTTP_201_CREATED)
async def add_group_member(
    group_id: int,
    payload: GroupMemberAdd,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GroupMember:
    group = group_service.load_group(db, group_id)
    return group_service.add_member(db, group, current_user, payload.user_id)


@router.get("/{group_id}/members", response_model=list[GroupMemberRead])
async def list_group_members(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[GroupMember]:
    group = group_service.load_group(db, group_id)
    return group_service.list_members(group, current_user)


@router.patch("/{group_id}/members/{user_id}", response_model=GroupMemberRead)
async def update_group_member(
    group_id: int,
    user_id: int,
    payload: GroupMemberUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GroupMember:
    """Change a member's role, mute window or nickname."""

    group = group_service.load_group(db, group_id)
    return group_service.update_member(db, group, current_user, user_id, payload.model_dump(exclude_unset=True))


@router.delete("/{group_id}/members/{user_id}", response_model=MessageResponse)
async def remove_group_member(
    group_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    group = group_service.load_group(db, group_id)
    group_service.remove_member(db, group, current_user, user_id)
    return MessageResponse(message="Member removed")


@router.get("/{group_id}/media", response_model=list[MessageRead])
async def list_group_media(
    group_id: int,
    media_type: str = Query(default="image", alias="type"),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[Message]:
    thread = messaging.open_group(db, group_id, current_user)
    return messaging.list_media(db, thread, media_type, limit=limit)


@router.get("/{group_id}/messages/search", response_model=list[MessageRead])
async def search_group_messages(
    group_id: int,
    q: str | None = Query(default=None),
    date_filter: Literal["today", "week", "month"] | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[Message]:
    thread = messaging.open_group(db, group_id, current_user)
    return messaging.search_messages(db, thread, q, date_filter=date_filter, limit=limit)


@router.get("/{group_id}/messages/read", response_model=ReadReceiptsRead)
async def read_group_receipts(
    group_id: int,
    message_ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReadReceiptsRead:
    ids = parse_id_list(message_ids)
    thread = messaging.open_group(db, group_id, current_user, members_only=True)
    return serialize_receipts(messaging.get_read_receipts(db, thread, ids))


@router.post("/{group_id}/messages/read", response_model=ReadReceiptsMarked)
async def mark_group_read(
    group_id: int,
    payload: ReadReceiptsCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReadReceiptsMarked:
    thread = messaging.open_group(db, group_id, current_user, members_only=True)
    return ReadReceiptsMarked(marked=messaging.mark_read(db, thread, payload.message_ids, current_user))


@router.get("/{group_id}/messages", response_model=MessagePageRead)
async def list_group_messages(
    group_id: int,
    cursor: int | None = Query(default=None),
    before: datetime | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessagePageRead:
    """Page through history. Public groups are readable by non-members."""

    thread = messaging.open_group(db, group_id, current_user)
    return serialize_page(messaging.list_messages(db, thread, cursor=cursor, before=before, limit=limit))


@router.post("/{group_id}/messages", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
async def post_group_message(
    group_id: int,
    payload: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Message:
    thread = messaging.open_group(db, group_id, current_user, write=True)
    return messaging.post_message(
        db,
        thread,
        current_user,
        payload.content,
        message_type=payload.type,
        reply_to_id=payload.reply_to_id,
        metadata=payload.metadata,
    )


@router.get("/{group_id}/messages/{message_id}", response_model=MessageRead)
async def read_group_message(
    group_id: int,
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Message:
    thread = messaging.open_group(db, group_id, current_user)
    return messaging.get_message(db, thread, message_id)


@router.patch("/{group_id}/messages/{message_id}", response_model=MessageRead)
async def edit_group_message(
    group_id: int,
    message_id: int,
    payload: MessageUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Message:
    thread = messaging.open_group(db, group_id, current_user, members_only=True)
    return messaging.edit_message(db, thread, message_id, current_user, payload.content)


@router.delete("/{group_id}/messages/{message_id}", response_model=MessageRead)
async def delete_group_message(
    group_id: int,
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Message:
    thread = messaging.open_group(db, group_id, current_user, members_only=True)
    return messaging.delete_message(db, thread, message_id, current_user)


@router.get("/{group_id}/messages/{message_id}/reactions", response_model=list[ReactionSummary])
async def list_group_reactions(
    group_id: int,
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[dict]:
    thread = messaging.open_group(db, group_id, current_user)
    return messaging.list_reactions(db, thread, message_id, current_user)


@router.post("/{group_id}/messages/{message_id}/reactions", response_model=ReactionToggleRead)
async def toggle_group_reaction(
    group_id: int,
    message_id: int,
    payload: ReactionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    thread = messaging.open_group(db, group_id, current_user, members_only=True)
    return messaging.toggle_reaction(db, thread, message_id, current_user, payload.emoji)


@router.get("/{group_id}/typing", response_model=TypingRead)
async def read_group_typing(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> TypingRead:
    thread = messaging.open_group(db, group_id, current_user, members_only=True)
    return TypingRead.model_validate({"users": messaging.get_typing(db, thread, current_user)}, from_attributes=True)


@router.post("/{group_id}/typing", response_model=TypingRead)
async def update_group_typing(
    group_id: int,
    payload: TypingUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> TypingRead:
    thread = messaging.open_group(db, group_id, current_user, members_only=True)
    messaging.set_typing(db, thread, current_user, payload.is_typing)
    return TypingRead.model_validate({"users": messaging.get_typing(db, thread, current_user)}, from_attributes=True)
