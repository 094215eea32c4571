"""Conversation lifecycle and per-participant overlay state."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from parley.core.timestamps import utcnow
from parley.models import (
    ChatRequest,
    ChatRequestStatus,
    Conversation,
    ConversationRole,
    ConversationUser,
    Message,
    MessageReaction,
    ReadReceipt,
    TypingIndicator,
    User,
)
from parley.services.errors import ForbiddenError, InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

SETTINGS_ACTIONS = {"mute": "is_muted", "archive": "is_archived", "pin": "is_pinned"}


@dataclass(slots=True)
class ConversationSummary:
    """Conversation enriched with data relative to one participant."""

    conversation: Conversation
    participant: ConversationUser
    last_message: Message | None
    unread_count: int


def normalize_pair(user_id: int, other_id: int) -> tuple[int, int]:
    return (user_id, other_id) if user_id < other_id else (other_id, user_id)


def _with_participants(stmt):
    return stmt.options(
        selectinload(Conversation.participants).selectinload(ConversationUser.user)
    )


def find_direct_conversation(db: Session, user_id: int, other_id: int) -> Conversation | None:
    user_a_id, user_b_id = normalize_pair(user_id, other_id)
    stmt = _with_participants(
        select(Conversation).where(
            Conversation.is_group.is_(False),
            Conversation.user_a_id == user_a_id,
            Conversation.user_b_id == user_b_id,
        )
    )
    return db.execute(stmt).scalar_one_or_none()


def ensure_direct_conversation(db: Session, user_id: int, other_id: int) -> Conversation:
    """Return the direct conversation for a pair, creating it when missing.

    Only flushes; the caller owns the transaction.
    """

    conversation = find_direct_conversation(db, user_id, other_id)
    user_a_id, user_b_id = normalize_pair(user_id, other_id)
    if conversation is None:
        conversation = Conversation(user_a_id=user_a_id, user_b_id=user_b_id, is_group=False)
        conversation.participants = [
            ConversationUser(user_id=user_a_id),
            ConversationUser(user_id=user_b_id),
        ]
        db.add(conversation)
    else:
        existing = {participant.user_id for participant in conversation.participants}
        for candidate in (user_a_id, user_b_id):
            if candidate not in existing:
                conversation.participants.append(ConversationUser(user_id=candidate))
    db.flush()
    return conversation


def has_accepted_request(db: Session, user_id: int, other_id: int) -> bool:
    stmt = select(ChatRequest.id).where(
        ChatRequest.status == ChatRequestStatus.ACCEPTED,
        or_(
            and_(ChatRequest.sender_id == user_id, ChatRequest.receiver_id == other_id),
            and_(ChatRequest.sender_id == other_id, ChatRequest.receiver_id == user_id),
        ),
    )
    return db.execute(stmt.limit(1)).first() is not None


def load_conversation(db: Session, conversation_id: int) -> Conversation:
    stmt = _with_participants(select(Conversation).where(Conversation.id == conversation_id))
    conversation = db.execute(stmt).scalar_one_or_none()
    if conversation is None:
        raise NotFoundError("Conversation not found")
    return conversation


def require_participant(conversation: Conversation, user_id: int) -> ConversationUser:
    participant = conversation.participant_for(user_id)
    if participant is None:
        raise ForbiddenError("You are not a participant of this conversation")
    return participant


def visible_messages(stmt, cleared_at):
    """Restrict a message query to rows a participant has not cleared."""

    stmt = stmt.where(Message.is_deleted.is_(False))
    if cleared_at is not None:
        stmt = stmt.where(Message.created_at > cleared_at)
    return stmt


def _last_message(db: Session, conversation_id: int, cleared_at) -> Message | None:
    stmt = visible_messages(
        select(Message).where(Message.conversation_id == conversation_id), cleared_at
    ).options(selectinload(Message.sender))
    stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(1)
    return db.execute(stmt).scalar_one_or_none()


def _unread_count(db: Session, conversation_id: int, user_id: int, cleared_at) -> int:
    read_ids = select(ReadReceipt.message_id).where(ReadReceipt.user_id == user_id)
    stmt = visible_messages(
        select(func.count(Message.id)).where(
            Message.conversation_id == conversation_id,
            Message.sender_id != user_id,
            Message.id.not_in(read_ids),
        ),
        cleared_at,
    )
    return int(db.execute(stmt).scalar_one())


def summarize(db: Session, conversation: Conversation, user_id: int) -> ConversationSummary:
    participant = require_participant(conversation, user_id)
    return ConversationSummary(
        conversation=conversation,
        participant=participant,
        last_message=_last_message(db, conversation.id, participant.cleared_at),
        unread_count=_unread_count(db, conversation.id, user_id, participant.cleared_at),
    )


def list_conversations(db: Session, user: User) -> list[ConversationSummary]:
    """Return the user's conversations, most recently active first."""

    stmt = _with_participants(
        select(Conversation)
        .join(ConversationUser, ConversationUser.conversation_id == Conversation.id)
        .where(ConversationUser.user_id == user.id)
        .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
    )
    conversations = db.execute(stmt).scalars().unique().all()
    return [summarize(db, conversation, user.id) for conversation in conversations]


def create_conversation(
    db: Session,
    user: User,
    participant_ids: Iterable[int],
    *,
    name: str | None = None,
    is_group: bool = False,
) -> tuple[Conversation, bool]:
    """Create a conversation, reusing an existing direct thread for a pair.

    Returns the conversation and whether it was newly created.
    """

    others = sorted({participant_id for participant_id in participant_ids if participant_id != user.id})
    if not others:
        raise InvalidInputError("At least one other participant is required")

    found = set(db.execute(select(User.id).where(User.id.in_(others))).scalars())
    missing = [participant_id for participant_id in others if participant_id not in found]
    if missing:
        raise NotFoundError("User not found")

    if not is_group:
        if len(others) != 1:
            raise InvalidInputError("Direct conversations have exactly two participants")
        other_id = others[0]
        if not has_accepted_request(db, user.id, other_id):
            raise ForbiddenError("You need an accepted chat request to message this user")
        existing = find_direct_conversation(db, user.id, other_id)
        if existing is not None and existing.has_user(user.id) and existing.has_user(other_id):
            return existing, False
        try:
            conversation = ensure_direct_conversation(db, user.id, other_id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return load_conversation(db, conversation.id), True

    conversation = Conversation(is_group=True, name=name, creator_id=user.id)
    conversation.participants = [ConversationUser(user_id=user.id, role=ConversationRole.ADMIN)]
    conversation.participants.extend(ConversationUser(user_id=other_id) for other_id in others)
    db.add(conversation)
    db.commit()
    logger.info("User %s created group conversation %s", user.id, conversation.id)
    return load_conversation(db, conversation.id), True


def delete_messages(db: Session, message_ids: Sequence[int]) -> int:
    """Hard delete messages together with their reactions and receipts."""

    if not message_ids:
        return 0
    db.execute(delete(MessageReaction).where(MessageReaction.message_id.in_(message_ids)))
    db.execute(delete(ReadReceipt).where(ReadReceipt.message_id.in_(message_ids)))
    db.execute(
        update(Message)
        .where(Message.reply_to_id.in_(message_ids))
        .values(reply_to_id=None)
    )
    result = db.execute(delete(Message).where(Message.id.in_(message_ids)))
    return result.rowcount or 0


def delete_conversation(db: Session, conversation: Conversation) -> None:
    """Remove a conversation and everything posted into it. Does not commit."""

    message_ids = list(
        db.execute(select(Message.id).where(Message.conversation_id == conversation.id)).scalars()
    )
    delete_messages(db, message_ids)
    db.execute(delete(TypingIndicator).where(TypingIndicator.conversation_id == conversation.id))
    db.expire(conversation, ["messages"])
    db.delete(conversation)


def leave_conversation(db: Session, conversation: Conversation, user: User) -> bool:
    """Remove the user from a conversation.

    Returns ``True`` when the user was the last participant and the
    conversation was deleted.
    """

    participant = require_participant(conversation, user.id)
    conversation_id = conversation.id
    try:
        conversation.participants.remove(participant)
        db.flush()
        removed = not conversation.participants
        if removed:
            delete_conversation(db, conversation)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("User %s left conversation %s", user.id, conversation_id)
    return removed


def update_settings(
    db: Session,
    conversation: Conversation,
    user: User,
    action: str,
    value: bool | None = None,
) -> ConversationUser:
    """Flip one of the participant flags (mute, archive, pin)."""

    participant = require_participant(conversation, user.id)
    attribute = SETTINGS_ACTIONS.get(action)
    if attribute is None:
        raise InvalidInputError("Invalid action")
    current = getattr(participant, attribute)
    setattr(participant, attribute, (not current) if value is None else bool(value))
    db.commit()
    db.refresh(participant)
    return participant


def clear_history(db: Session, conversation: Conversation, user: User) -> ConversationUser:
    """Hide every message created so far from this participant only."""

    participant = require_participant(conversation, user.id)
    participant.cleared_at = utcnow()
    db.commit()
    db.refresh(participant)
    return participant
