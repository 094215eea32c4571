"""Account lifecycle: registration, sign-in, profile, export and removal."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from parley.core.security import get_password_hash, verify_password
from parley.core.timestamps import utcnow
from parley.models import (
    Call,
    ChatRequest,
    Conversation,
    ConversationUser,
    Group,
    GroupMember,
    GroupRole,
    Message,
    MessageReaction,
    PresenceStatus,
    ReadReceipt,
    TypingIndicator,
    User,
)
from parley.services.conversations import delete_conversation, delete_messages
from parley.services.errors import ConflictError, ForbiddenError, InvalidInputError
from parley.services.groups import purge_group

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "name",
    "real_name",
    "bio",
    "hobbies",
    "location",
    "website",
    "phone",
    "date_of_birth",
    "gender",
    "occupation",
    "image",
)
DELETE_CONFIRMATION = "DELETE"


class AuthenticationError(Exception):
    """Raised when credentials do not match an account."""


def register(db: Session, email: str, password: str, real_name: str, nickname: str) -> User:
    """Create a credentials account. New accounts start offline."""

    if db.execute(select(User.id).where(User.email == email)).first() is not None:
        raise ConflictError("An account with this email already exists")

    user = User(
        email=email,
        name=nickname,
        real_name=real_name,
        hashed_password=get_password_hash(password),
        status=PresenceStatus.OFFLINE,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("An account with this email already exists") from exc
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    """Check credentials and mark the account online."""

    user = db.execute(select(User).where(User.email == email.strip().lower())).scalar_one_or_none()
    if user is None:
        raise AuthenticationError("Invalid email or password")
    if not user.hashed_password:
        raise InvalidInputError("Please sign in with the provider you used to create this account")
    if not verify_password(password, user.hashed_password):
        raise AuthenticationError("Invalid email or password")
    set_presence(db, user, PresenceStatus.ONLINE)
    return user


def set_presence(db: Session, user: User, status: PresenceStatus) -> User:
    user.status = status
    user.last_seen = utcnow()
    db.commit()
    db.refresh(user)
    return user


def update_profile(db: Session, user: User, changes: dict[str, Any]) -> User:
    """Apply the supplied profile fields; blank strings clear optional ones."""

    for field_name, value in changes.items():
        if field_name not in PROFILE_FIELDS:
            continue
        if isinstance(value, str):
            value = value.strip() or None
        if field_name == "name" and value is None:
            continue
        setattr(user, field_name, value)
    db.commit()
    db.refresh(user)
    return user


def purge_user(db: Session, user: User) -> None:
    """Delete an account and everything it owns. Does not commit.

    Groups the user owns are removed entirely; direct conversations go with
    them, and group conversations are dropped once nobody is left.
    """

    owned_groups = db.execute(
        select(Group)
        .join(GroupMember, GroupMember.group_id == Group.id)
        .where(GroupMember.user_id == user.id, GroupMember.role == GroupRole.OWNER)
    ).scalars().all()
    for group in owned_groups:
        purge_group(db, group)
    db.flush()

    conversations = db.execute(
        select(Conversation)
        .join(ConversationUser, ConversationUser.conversation_id == Conversation.id)
        .where(ConversationUser.user_id == user.id)
        .options(selectinload(Conversation.participants))
    ).scalars().unique().all()
    for conversation in conversations:
        remaining = [participant for participant in conversation.participants if participant.user_id != user.id]
        if not conversation.is_group or not remaining:
            delete_conversation(db, conversation)
        else:
            participant = conversation.participant_for(user.id)
            conversation.participants.remove(participant)
    db.flush()

    sent = list(db.execute(select(Message.id).where(Message.sender_id == user.id)).scalars())
    delete_messages(db, sent)
    db.execute(delete(MessageReaction).where(MessageReaction.user_id == user.id))
    db.execute(delete(ReadReceipt).where(ReadReceipt.user_id == user.id))
    db.execute(delete(TypingIndicator).where(TypingIndicator.user_id == user.id))
    db.execute(delete(GroupMember).where(GroupMember.user_id == user.id))
    db.execute(
        delete(ChatRequest).where(or_(ChatRequest.sender_id == user.id, ChatRequest.receiver_id == user.id))
    )
    db.execute(delete(Call).where(or_(Call.initiator_id == user.id, Call.receiver_id == user.id)))
    db.delete(user)


def delete_account(db: Session, user: User, password: str | None, confirmation: str | None) -> None:
    """Self-service account removal guarded by password and a typed confirmation."""

    if confirmation != DELETE_CONFIRMATION:
        raise InvalidInputError('Please type "DELETE" to confirm')
    if not user.hashed_password:
        raise InvalidInputError("Accounts created with a sign-in provider cannot be deleted this way")
    if not password:
        raise InvalidInputError("Password is required")
    if not verify_password(password, user.hashed_password):
        raise ForbiddenError("Incorrect password")

    user_id = user.id
    try:
        purge_user(db, user)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("User %s deleted their account", user_id)


def export_data(db: Session, user: User) -> dict[str, Any]:
    """Collect everything stored about the user into one JSON-ready document."""

    messages = db.execute(
        select(Message)
        .where(Message.sender_id == user.id, Message.conversation_id.is_not(None))
        .order_by(Message.created_at.desc(), Message.id.desc())
    ).scalars()
    requests = db.execute(
        select(ChatRequest)
        .where(or_(ChatRequest.sender_id == user.id, ChatRequest.receiver_id == user.id))
        .options(selectinload(ChatRequest.sender), selectinload(ChatRequest.receiver))
        .order_by(ChatRequest.created_at.desc(), ChatRequest.id.desc())
    ).scalars()
    memberships = db.execute(
        select(GroupMember)
        .where(GroupMember.user_id == user.id)
        .options(selectinload(GroupMember.group))
    ).scalars()
    group_messages = db.execute(
        select(Message)
        .where(Message.sender_id == user.id, Message.group_id.is_not(None))
        .options(selectinload(Message.group))
        .order_by(Message.created_at.desc(), Message.id.desc())
    ).scalars()

    return {
        "exported_at": utcnow().isoformat(),
        "profile": {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "real_name": user.real_name,
            "bio": user.bio,
            "hobbies": user.hobbies,
            "location": user.location,
            "website": user.website,
            "phone": user.phone,
            "date_of_birth": user.date_of_birth.isoformat() if user.date_of_birth else None,
            "gender": user.gender,
            "occupation": user.occupation,
            "status": user.status.value,
            "created_at": user.created_at.isoformat(),
        },
        "messages": [
            {
                "id": message.id,
                "content": message.content,
                "type": message.type.value,
                "created_at": message.created_at.isoformat(),
                "conversation_id": message.conversation_id,
            }
            for message in messages
        ],
        "chat_requests": [
            {
                "id": request.id,
                "status": request.status.value,
                "message": request.message,
                "created_at": request.created_at.isoformat(),
                "sender": {"name": request.sender.name, "email": request.sender.email},
                "receiver": {"name": request.receiver.name, "email": request.receiver.email},
            }
            for request in requests
        ],
        "groups": [
            {
                "role": membership.role.value,
                "joined_at": membership.joined_at.isoformat(),
                "group": {
                    "id": membership.group.id,
                    "name": membership.group.name,
                    "description": membership.group.description,
                },
            }
            for membership in memberships
        ],
        "group_messages": [
            {
                "id": message.id,
                "content": message.content,
                "type": message.type.value,
                "created_at": message.created_at.isoformat(),
                "group": {"name": message.group.name},
            }
            for message in group_messages
        ],
    }
