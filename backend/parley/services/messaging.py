"""Messages, reactions, typing indicators and read receipts.

Conversations and groups share one message table; a :class:`Thread` binds
the operations below to either kind together with the caller's membership.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from parley.config import get_settings
from parley.core.timestamps import as_utc, utcnow
from parley.models import (
    Conversation,
    ConversationUser,
    Group,
    GroupMember,
    Message,
    MessageReaction,
    MessageType,
    ReadReceipt,
    TypingIndicator,
    User,
)
from parley.services import conversations as conversation_service
from parley.services import groups as group_service
from parley.services.errors import (
    EmptyContent,
    ForbiddenError,
    InvalidInputError,
    Muted,
    NotEditable,
    NotFoundError,
)

logger = logging.getLogger(__name__)

settings = get_settings()

MEDIA_TYPES = (
    MessageType.IMAGE,
    MessageType.FILE,
    MessageType.DOCUMENT,
    MessageType.AUDIO,
    MessageType.VIDEO,
)
SEARCH_WINDOWS = {"today", "week", "month"}


@dataclass(slots=True)
class Thread:
    """A conversation or a group as seen by one user."""

    conversation: Conversation | None = None
    group: Group | None = None
    participant: ConversationUser | None = None
    member: GroupMember | None = None

    @property
    def is_group(self) -> bool:
        return self.group is not None

    @property
    def cleared_at(self) -> datetime | None:
        return self.participant.cleared_at if self.participant is not None else None

    def owns(self, message: Message) -> bool:
        if self.group is not None:
            return message.group_id == self.group.id
        return message.conversation_id == self.conversation.id

    def message_filter(self):
        if self.group is not None:
            return Message.group_id == self.group.id
        return Message.conversation_id == self.conversation.id

    def typing_filter(self):
        if self.group is not None:
            return TypingIndicator.group_id == self.group.id
        return TypingIndicator.conversation_id == self.conversation.id

    def thread_columns(self) -> dict[str, int]:
        if self.group is not None:
            return {"group_id": self.group.id}
        return {"conversation_id": self.conversation.id}

    def touch(self) -> None:
        target = self.group if self.group is not None else self.conversation
        target.updated_at = utcnow()


@dataclass(slots=True)
class MessagePage:
    """One page of history in chronological order."""

    messages: list[Message] = field(default_factory=list)
    next_cursor: int | None = None
    has_more: bool = False


def open_conversation(db: Session, conversation_id: int, user: User) -> Thread:
    """Resolve a conversation the user participates in."""

    conversation = conversation_service.load_conversation(db, conversation_id)
    participant = conversation_service.require_participant(conversation, user.id)
    return Thread(conversation=conversation, participant=participant)


def open_group(
    db: Session,
    group_id: int,
    user: User,
    *,
    write: bool = False,
    members_only: bool = False,
) -> Thread:
    """Resolve a group for reading or posting.

    Public groups are readable by anyone; posting always needs membership
    and no active mute.
    """

    group = group_service.load_group(db, group_id)
    member = group.member_for(user.id)
    if member is None and (write or members_only or group.is_private):
        raise ForbiddenError("You are not a member of this group")
    if write:
        muted_until = as_utc(member.muted_until)
        if muted_until is not None and muted_until > utcnow():
            raise Muted()
    return Thread(group=group, member=member)


def _message_query(thread: Thread):
    return conversation_service.visible_messages(
        select(Message).where(thread.message_filter()), thread.cleared_at
    ).options(
        selectinload(Message.sender),
        selectinload(Message.reply_to).selectinload(Message.sender),
    )


def _clean_content(content: str | None) -> str:
    text = (content or "").strip()
    if not text:
        raise EmptyContent()
    return text[: settings.chat_message_max_length]


def get_message(db: Session, thread: Thread, message_id: int) -> Message:
    stmt = _message_query(thread).where(Message.id == message_id)
    message = db.execute(stmt).scalar_one_or_none()
    if message is None:
        raise NotFoundError("Message not found")
    return message


def post_message(
    db: Session,
    thread: Thread,
    sender: User,
    content: str | None,
    *,
    message_type: MessageType = MessageType.TEXT,
    reply_to_id: int | None = None,
    metadata: dict[str, Any] | None = None,
) -> Message:
    """Append a message to the thread.

    A ``reply_to_id`` pointing outside the thread is dropped silently.
    """

    text = _clean_content(content)
    if reply_to_id is not None:
        parent = db.get(Message, reply_to_id)
        if parent is None or not thread.owns(parent):
            reply_to_id = None

    message = Message(
        sender_id=sender.id,
        content=text,
        type=message_type,
        reply_to_id=reply_to_id,
        meta=metadata,
        **thread.thread_columns(),
    )
    db.add(message)
    thread.touch()
    db.commit()
    return get_message(db, thread, message.id)


def list_messages(
    db: Session,
    thread: Thread,
    *,
    cursor: int | None = None,
    before: datetime | None = None,
    limit: int | None = None,
) -> MessagePage:
    """Return the newest page older than the cursors, oldest first."""

    page_size = limit or settings.chat_history_default_limit
    page_size = max(1, min(page_size, settings.chat_history_max_limit))

    stmt = _message_query(thread)
    if cursor is not None:
        stmt = stmt.where(Message.id < cursor)
    if before is not None:
        stmt = stmt.where(Message.created_at < as_utc(before))
    stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(page_size + 1)

    rows = list(db.execute(stmt).scalars())
    has_more = len(rows) > page_size
    page = rows[:page_size]
    next_cursor = page[-1].id if has_more and page else None
    page.reverse()
    return MessagePage(messages=page, next_cursor=next_cursor, has_more=has_more)


def edit_message(db: Session, thread: Thread, message_id: int, editor: User, content: str | None) -> Message:
    message = db.execute(
        select(Message).where(thread.message_filter(), Message.id == message_id)
    ).scalar_one_or_none()
    if message is None:
        raise NotFoundError("Message not found")
    if message.sender_id != editor.id:
        raise ForbiddenError("You can only edit your own messages")
    if message.is_deleted or message.type != MessageType.TEXT:
        raise NotEditable()

    message.content = _clean_content(content)
    message.is_edited = True
    db.commit()
    return get_message(db, thread, message.id)


def delete_message(db: Session, thread: Thread, message_id: int, actor: User) -> Message:
    """Soft delete a message. Group managers may delete any message."""

    message = db.execute(
        select(Message).where(thread.message_filter(), Message.id == message_id)
    ).scalar_one_or_none()
    if message is None or message.is_deleted:
        raise NotFoundError("Message not found")

    is_manager = thread.member is not None and thread.member.role in group_service.MANAGER_ROLES
    if message.sender_id != actor.id and not is_manager:
        raise ForbiddenError("You can only delete your own messages")

    message.is_deleted = True
    db.commit()
    db.refresh(message)
    logger.info("Message %s deleted by user %s", message.id, actor.id)
    return message


def toggle_reaction(db: Session, thread: Thread, message_id: int, user: User, emoji: str | None) -> dict[str, Any]:
    """Add the reaction, or remove it when the user already reacted with it."""

    emoji = (emoji or "").strip()
    if not emoji:
        raise InvalidInputError("Emoji is required")
    message = get_message(db, thread, message_id)

    existing = db.execute(
        select(MessageReaction).where(
            MessageReaction.message_id == message.id,
            MessageReaction.user_id == user.id,
            MessageReaction.emoji == emoji,
        )
    ).scalar_one_or_none()
    if existing is not None:
        db.delete(existing)
        db.commit()
        return {"emoji": emoji, "removed": True, "added": False}

    db.add(MessageReaction(message_id=message.id, user_id=user.id, emoji=emoji))
    try:
        db.commit()
    except IntegrityError:
        # a concurrent toggle inserted the same triple first
        db.rollback()
    return {"emoji": emoji, "removed": False, "added": True}


def list_reactions(db: Session, thread: Thread, message_id: int, viewer: User) -> list[dict[str, Any]]:
    """Group reactions by emoji with counts relative to ``viewer``."""

    message = get_message(db, thread, message_id)
    stmt = (
        select(MessageReaction)
        .where(MessageReaction.message_id == message.id)
        .options(selectinload(MessageReaction.user))
        .order_by(MessageReaction.created_at.asc(), MessageReaction.id.asc())
    )
    grouped: dict[str, dict[str, Any]] = {}
    for reaction in db.execute(stmt).scalars():
        entry = grouped.setdefault(
            reaction.emoji,
            {"emoji": reaction.emoji, "count": 0, "users": [], "has_reacted": False},
        )
        entry["count"] += 1
        entry["users"].append(reaction.user)
        if reaction.user_id == viewer.id:
            entry["has_reacted"] = True
    return list(grouped.values())


def _typing_row(db: Session, thread: Thread, user_id: int) -> TypingIndicator | None:
    stmt = select(TypingIndicator).where(thread.typing_filter(), TypingIndicator.user_id == user_id)
    return db.execute(stmt).scalar_one_or_none()


def set_typing(db: Session, thread: Thread, user: User, is_typing: bool) -> TypingIndicator:
    """Upsert the caller's typing flag and refresh its lease."""

    now = utcnow()
    indicator = _typing_row(db, thread, user.id)
    if indicator is None:
        indicator = TypingIndicator(user_id=user.id, is_typing=is_typing, updated_at=now, **thread.thread_columns())
        db.add(indicator)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            indicator = _typing_row(db, thread, user.id)
            if indicator is None:
                raise
        else:
            return indicator

    indicator.is_typing = is_typing
    indicator.updated_at = now
    db.commit()
    return indicator


def get_typing(db: Session, thread: Thread, viewer: User) -> list[User]:
    """Return users with a live typing lease, excluding ``viewer``.

    Expired leases are dropped on read.
    """

    cutoff = utcnow() - timedelta(seconds=settings.typing_ttl_seconds)
    db.execute(delete(TypingIndicator).where(thread.typing_filter(), TypingIndicator.updated_at < cutoff))
    db.commit()

    stmt = (
        select(TypingIndicator)
        .where(
            thread.typing_filter(),
            TypingIndicator.is_typing.is_(True),
            TypingIndicator.updated_at >= cutoff,
            TypingIndicator.user_id != viewer.id,
        )
        .options(selectinload(TypingIndicator.user))
        .order_by(TypingIndicator.updated_at.asc())
    )
    return [indicator.user for indicator in db.execute(stmt).scalars()]


def _thread_message_ids(db: Session, thread: Thread, message_ids: Iterable[int]) -> list[int]:
    wanted = sorted({int(message_id) for message_id in message_ids})
    if not wanted:
        return []
    stmt = select(Message.id).where(thread.message_filter(), Message.id.in_(wanted))
    return list(db.execute(stmt).scalars())


def mark_read(db: Session, thread: Thread, message_ids: Sequence[int], user: User) -> int:
    """Record read receipts for the given messages. Safe to repeat."""

    valid_ids = _thread_message_ids(db, thread, message_ids)
    if not valid_ids:
        return 0
    already = set(
        db.execute(
            select(ReadReceipt.message_id).where(
                ReadReceipt.user_id == user.id, ReadReceipt.message_id.in_(valid_ids)
            )
        ).scalars()
    )
    now = utcnow()
    for message_id in valid_ids:
        if message_id not in already:
            db.add(ReadReceipt(message_id=message_id, user_id=user.id, read_at=now))
    try:
        db.commit()
    except IntegrityError:
        # receipts recorded concurrently are equivalent to ours
        db.rollback()
    return len(valid_ids)


def get_read_receipts(db: Session, thread: Thread, message_ids: Sequence[int]) -> dict[int, list[ReadReceipt]]:
    valid_ids = _thread_message_ids(db, thread, message_ids)
    receipts: dict[int, list[ReadReceipt]] = {message_id: [] for message_id in valid_ids}
    if not valid_ids:
        return receipts
    stmt = (
        select(ReadReceipt)
        .where(ReadReceipt.message_id.in_(valid_ids))
        .options(selectinload(ReadReceipt.user))
        .order_by(ReadReceipt.read_at.asc(), ReadReceipt.id.asc())
    )
    for receipt in db.execute(stmt).scalars():
        receipts[receipt.message_id].append(receipt)
    return receipts


def _window_start(date_filter: str | None) -> datetime | None:
    if date_filter is None:
        return None
    if date_filter not in SEARCH_WINDOWS:
        raise InvalidInputError("Invalid date filter")
    now = utcnow()
    if date_filter == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if date_filter == "week":
        return now - timedelta(days=7)
    return now - timedelta(days=30)


def search_messages(
    db: Session,
    thread: Thread,
    query: str | None,
    *,
    date_filter: str | None = None,
    limit: int | None = None,
) -> list[Message]:
    """Case-insensitive substring search, newest first."""

    term = (query or "").strip()
    if not term:
        raise InvalidInputError("Search query is required")
    page_size = max(1, min(limit or settings.chat_history_default_limit, settings.chat_history_max_limit))

    stmt = _message_query(thread).where(Message.content.ilike(f"%{term}%"))
    since = _window_start(date_filter)
    if since is not None:
        stmt = stmt.where(Message.created_at >= since)
    stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(page_size)
    return list(db.execute(stmt).scalars())


def list_media(db: Session, thread: Thread, media_type: str = "image", *, limit: int | None = None) -> list[Message]:
    """Return shared media, newest first. ``file`` also matches documents."""

    if media_type == "all":
        types: tuple[MessageType, ...] = MEDIA_TYPES
    elif media_type == "file":
        types = (MessageType.FILE, MessageType.DOCUMENT)
    else:
        try:
            types = (MessageType(media_type),)
        except ValueError as exc:
            raise InvalidInputError("Invalid media type") from exc

    page_size = max(1, min(limit or settings.chat_history_default_limit, settings.chat_history_max_limit))
    stmt = (
        _message_query(thread)
        .where(Message.type.in_(types))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(page_size)
    )
    return list(db.execute(stmt).scalars())
