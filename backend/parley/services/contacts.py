"""Chat request lifecycle: propose, accept or reject, cancel.

A pending or accepted request between two users is unique per unordered
pair. The invariant lives in the database (``active_pair_key``) so two
concurrent submissions cannot both succeed, and acceptance is a
compare-and-set on the request status inside the same transaction that
creates the direct conversation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Literal

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from parley.config import get_settings
from parley.core.timestamps import utcnow
from parley.models import ChatRequest, ChatRequestStatus, Conversation, User
from parley.services.conversations import ensure_direct_conversation, find_direct_conversation
from parley.services.errors import (
    AlreadyConnected,
    AlreadyResponded,
    ForbiddenError,
    InvalidInputError,
    InvalidTarget,
    NotFoundError,
    NotPending,
    QuotaExceeded,
    RequestPending,
)

logger = logging.getLogger(__name__)

settings = get_settings()

RequestFilter = Literal["sent", "received", "all"]
RESPOND_ACTIONS = ("accept", "reject")
LIST_LIMIT = 50


@dataclass(slots=True)
class ConnectionStatus:
    """Relationship between the caller and another user."""

    status: Literal["connected", "pending", "not_connected"]
    conversation_id: int | None = None
    request_id: int | None = None
    is_sender: bool | None = None
    remaining_requests: int | None = None

    @property
    def can_chat(self) -> bool:
        return self.status == "connected"

    @property
    def can_send_request(self) -> bool:
        return self.status == "not_connected" and bool(self.remaining_requests)


def pair_key(user_id: int, other_id: int) -> str:
    low, high = sorted((user_id, other_id))
    return f"{low}:{high}"


def _between(user_id: int, other_id: int):
    return or_(
        and_(ChatRequest.sender_id == user_id, ChatRequest.receiver_id == other_id),
        and_(ChatRequest.sender_id == other_id, ChatRequest.receiver_id == user_id),
    )


def _latest_with_status(
    db: Session, user_id: int, other_id: int, status: ChatRequestStatus
) -> ChatRequest | None:
    stmt = (
        select(ChatRequest)
        .where(_between(user_id, other_id), ChatRequest.status == status)
        .order_by(ChatRequest.created_at.desc(), ChatRequest.id.desc())
        .limit(1)
    )
    return db.execute(stmt).scalar_one_or_none()


def requests_used(db: Session, sender_id: int, receiver_id: int) -> int:
    """Count requests ``sender_id`` issued to ``receiver_id`` inside the quota window."""

    window_start = utcnow() - timedelta(days=settings.chat_request_quota_window_days)
    stmt = select(func.count(ChatRequest.id)).where(
        ChatRequest.sender_id == sender_id,
        ChatRequest.receiver_id == receiver_id,
        ChatRequest.created_at >= window_start,
    )
    return int(db.execute(stmt).scalar_one())


def remaining_quota(db: Session, sender_id: int, receiver_id: int) -> int:
    return max(settings.chat_request_quota - requests_used(db, sender_id, receiver_id), 0)


def _clean_note(message: str | None) -> str | None:
    if message is None:
        return None
    note = message.strip()[: settings.chat_request_message_max_length]
    return note or None


def create_request(
    db: Session, sender: User, receiver_id: int | None, message: str | None = None
) -> tuple[ChatRequest, int]:
    """Open a pending request from ``sender`` to ``receiver_id``.

    Returns the request and the number of requests the sender may still
    issue to that receiver within the quota window.
    """

    if receiver_id is None:
        raise InvalidTarget("Receiver ID is required")
    if receiver_id == sender.id:
        raise InvalidTarget("Cannot send chat request to yourself")
    receiver = db.get(User, receiver_id)
    if receiver is None:
        raise NotFoundError("User not found")

    if _latest_with_status(db, sender.id, receiver.id, ChatRequestStatus.ACCEPTED) is not None:
        raise AlreadyConnected()
    if _latest_with_status(db, sender.id, receiver.id, ChatRequestStatus.PENDING) is not None:
        raise RequestPending()

    used = requests_used(db, sender.id, receiver.id)
    if used >= settings.chat_request_quota:
        raise QuotaExceeded()

    request = ChatRequest(
        sender_id=sender.id,
        receiver_id=receiver.id,
        status=ChatRequestStatus.PENDING,
        message=_clean_note(message),
        active_pair_key=pair_key(sender.id, receiver.id),
    )
    db.add(request)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise RequestPending() from exc
    db.refresh(request)
    logger.info("Chat request %s sent from %s to %s", request.id, sender.id, receiver.id)
    return request, settings.chat_request_quota - (used + 1)


def load_request(db: Session, request_id: int) -> ChatRequest:
    stmt = (
        select(ChatRequest)
        .where(ChatRequest.id == request_id)
        .options(selectinload(ChatRequest.sender), selectinload(ChatRequest.receiver))
    )
    request = db.execute(stmt).scalar_one_or_none()
    if request is None:
        raise NotFoundError("Chat request not found")
    return request


def respond(
    db: Session, request_id: int, responder: User, action: str
) -> tuple[ChatRequest, Conversation | None]:
    """Accept or reject a pending request addressed to ``responder``."""

    if action not in RESPOND_ACTIONS:
        raise InvalidInputError("Invalid action")
    request = load_request(db, request_id)
    if request.receiver_id != responder.id:
        raise ForbiddenError("Only the receiver can respond to this request")
    if request.status != ChatRequestStatus.PENDING:
        raise AlreadyResponded()

    accepted = action == "accept"
    values = {
        "status": ChatRequestStatus.ACCEPTED if accepted else ChatRequestStatus.REJECTED,
        "responded_at": utcnow(),
    }
    if not accepted:
        values["active_pair_key"] = None

    conversation: Conversation | None = None
    try:
        result = db.execute(
            update(ChatRequest)
            .where(ChatRequest.id == request.id, ChatRequest.status == ChatRequestStatus.PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise AlreadyResponded()
        if accepted:
            conversation = ensure_direct_conversation(db, request.sender_id, request.receiver_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(request)
    logger.info("Chat request %s %sed by user %s", request.id, action, responder.id)
    return request, conversation


def cancel(db: Session, request_id: int, canceller: User) -> None:
    """Withdraw a pending request. Only its sender may do so."""

    request = load_request(db, request_id)
    if request.sender_id != canceller.id:
        raise ForbiddenError("Only the sender can cancel this request")
    if request.status != ChatRequestStatus.PENDING:
        raise NotPending()
    db.delete(request)
    db.commit()
    logger.info("Chat request %s cancelled by user %s", request_id, canceller.id)


def list_requests(db: Session, user: User, kind: RequestFilter = "all") -> list[ChatRequest]:
    if kind == "sent":
        condition = ChatRequest.sender_id == user.id
    elif kind == "received":
        condition = ChatRequest.receiver_id == user.id
    elif kind == "all":
        condition = or_(ChatRequest.sender_id == user.id, ChatRequest.receiver_id == user.id)
    else:
        raise InvalidInputError("Invalid request type")
    stmt = (
        select(ChatRequest)
        .where(condition)
        .options(selectinload(ChatRequest.sender), selectinload(ChatRequest.receiver))
        .order_by(ChatRequest.created_at.desc(), ChatRequest.id.desc())
        .limit(LIST_LIMIT)
    )
    return list(db.execute(stmt).scalars())


def connection_status(db: Session, user: User, other_id: int) -> ConnectionStatus:
    """Describe whether ``user`` can chat with ``other_id`` right now."""

    if other_id == user.id:
        raise InvalidTarget("Cannot check connection with yourself")
    if db.get(User, other_id) is None:
        raise NotFoundError("User not found")

    if _latest_with_status(db, user.id, other_id, ChatRequestStatus.ACCEPTED) is not None:
        conversation = find_direct_conversation(db, user.id, other_id)
        return ConnectionStatus(
            status="connected",
            conversation_id=conversation.id if conversation is not None else None,
        )

    pending = _latest_with_status(db, user.id, other_id, ChatRequestStatus.PENDING)
    if pending is not None:
        return ConnectionStatus(
            status="pending",
            request_id=pending.id,
            is_sender=pending.sender_id == user.id,
        )

    return ConnectionStatus(
        status="not_connected",
        remaining_requests=remaining_quota(db, user.id, other_id),
    )
