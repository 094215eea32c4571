"""Call signaling records: ringing, negotiation metadata and history."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Literal

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session, selectinload

from parley.config import get_settings
from parley.core.timestamps import as_utc, utcnow
from parley.models import Call, CallStatus, CallType, Message, MessageType, User
from parley.services.conversations import find_direct_conversation
from parley.services.errors import ForbiddenError, InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

settings = get_settings()

TERMINAL_STATUSES = (
    CallStatus.REJECTED,
    CallStatus.MISSED,
    CallStatus.CANCELLED,
    CallStatus.COMPLETED,
)
HistoryFilter = Literal["all", "sent", "received", "missed"]


@dataclass(slots=True)
class CallPoll:
    """What a client polling for calls needs to know."""

    incoming_call: Call | None
    active_call: Call | None


def _empty_candidates() -> dict[str, list[Any]]:
    return {"initiator": [], "receiver": []}


def _parse_status(value: str | None) -> CallStatus:
    # "ended" is what clients send for a finished call
    if value == "ended":
        return CallStatus.COMPLETED
    try:
        return CallStatus(value)
    except ValueError as exc:
        raise InvalidInputError("Invalid call status") from exc


def call_message_text(call_type: CallType, status: CallStatus, duration: int | None) -> str:
    """Human readable summary posted into the conversation when a call ends."""

    label = "Video call" if call_type == CallType.VIDEO else "Voice call"
    if status == CallStatus.COMPLETED and duration:
        minutes, seconds = divmod(duration, 60)
        elapsed = f"{minutes}m {seconds}s" if minutes > 0 else f"{seconds}s"
        return f"{label} • {elapsed}"
    if status == CallStatus.MISSED:
        return f"Missed {label.lower()}"
    if status == CallStatus.REJECTED:
        return f"{label} declined"
    if status == CallStatus.CANCELLED:
        return f"{label} cancelled"
    return label


def _elapsed_seconds(call: Call) -> int:
    return max(int((utcnow() - as_utc(call.started_at)).total_seconds()), 0)


def load_call(db: Session, call_id: int, user: User) -> Call:
    stmt = (
        select(Call)
        .where(Call.id == call_id)
        .options(selectinload(Call.initiator), selectinload(Call.receiver))
    )
    call = db.execute(stmt).scalar_one_or_none()
    if call is None:
        raise NotFoundError("Call not found")
    if not call.involves(user.id):
        raise ForbiddenError("You are not part of this call")
    return call


def start_call(
    db: Session, initiator: User, receiver_id: int | None, call_type: str | None, offer: Any = None
) -> Call:
    """Ring ``receiver_id``, cancelling the caller's earlier unanswered rings to them."""

    if receiver_id is None or not call_type:
        raise InvalidInputError("Receiver ID and call type are required")
    try:
        kind = CallType(call_type)
    except ValueError as exc:
        raise InvalidInputError("Invalid call type") from exc
    if receiver_id == initiator.id:
        raise InvalidInputError("You cannot call yourself")
    if db.get(User, receiver_id) is None:
        raise NotFoundError("User not found")

    now = utcnow()
    db.execute(
        update(Call)
        .where(
            Call.initiator_id == initiator.id,
            Call.receiver_id == receiver_id,
            Call.status == CallStatus.PENDING,
        )
        .values(status=CallStatus.CANCELLED, ended_at=now)
        .execution_options(synchronize_session=False)
    )
    call = Call(
        initiator_id=initiator.id,
        receiver_id=receiver_id,
        type=kind,
        status=CallStatus.PENDING,
        offer=offer,
        ice_candidates=_empty_candidates(),
        started_at=now,
    )
    db.add(call)
    db.commit()
    logger.info("User %s started %s call %s to %s", initiator.id, kind.value, call.id, receiver_id)
    return load_call(db, call.id, initiator)


def poll_calls(db: Session, user: User) -> CallPoll:
    """Return the ringing call addressed to the user and any call in progress.

    Pending calls older than the ring timeout are marked missed on the way.
    """

    cutoff = utcnow() - timedelta(seconds=settings.call_ring_timeout_seconds)
    db.execute(
        update(Call)
        .where(
            Call.receiver_id == user.id,
            Call.status == CallStatus.PENDING,
            Call.started_at < cutoff,
        )
        .values(status=CallStatus.MISSED, ended_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()

    options = (selectinload(Call.initiator), selectinload(Call.receiver))
    incoming = db.execute(
        select(Call)
        .where(
            Call.receiver_id == user.id,
            Call.status == CallStatus.PENDING,
            Call.started_at >= cutoff,
        )
        .options(*options)
        .order_by(Call.started_at.desc(), Call.id.desc())
        .limit(1)
    ).scalar_one_or_none()
    active = db.execute(
        select(Call)
        .where(
            or_(Call.initiator_id == user.id, Call.receiver_id == user.id),
            Call.status == CallStatus.ACTIVE,
        )
        .options(*options)
        .order_by(Call.started_at.desc(), Call.id.desc())
        .limit(1)
    ).scalar_one_or_none()
    return CallPoll(incoming_call=incoming, active_call=active)


def _finish(call: Call, status: CallStatus) -> None:
    if call.status == CallStatus.ACTIVE and status == CallStatus.COMPLETED:
        call.duration = _elapsed_seconds(call)
    call.status = status
    call.ended_at = utcnow()


def update_call(db: Session, call_id: int, user: User, action: str, payload: dict[str, Any]) -> Call:
    """Apply one signaling step to a call."""

    call = load_call(db, call_id, user)
    is_initiator = call.initiator_id == user.id

    if action == "offer":
        if not is_initiator:
            raise ForbiddenError("Only initiator can send offer")
        call.offer = payload.get("offer")
    elif action == "answer":
        if is_initiator:
            raise ForbiddenError("Only receiver can send answer")
        call.answer = payload.get("answer")
        call.status = CallStatus.ACTIVE
    elif action == "ice-candidate":
        candidates = dict(call.ice_candidates or _empty_candidates())
        side = "initiator" if is_initiator else "receiver"
        candidates[side] = [*candidates.get(side, []), payload.get("ice_candidate")]
        call.ice_candidates = candidates
    elif action == "accept":
        if is_initiator:
            raise ForbiddenError("Only receiver can accept")
        call.status = CallStatus.ACCEPTED
    elif action == "reject":
        if is_initiator:
            raise ForbiddenError("Only receiver can reject")
        _finish(call, CallStatus.REJECTED)
    elif action == "end":
        _finish(call, CallStatus.COMPLETED)
    elif action == "status":
        if payload.get("status"):
            new_status = _parse_status(payload.get("status"))
            if new_status in TERMINAL_STATUSES:
                _finish(call, new_status)
            else:
                call.status = new_status
    else:
        raise InvalidInputError("Invalid action")

    db.commit()
    return load_call(db, call.id, user)


def end_call(db: Session, call_id: int, user: User) -> Call:
    """Hang up and leave a call summary in the pair's direct conversation."""

    call = load_call(db, call_id, user)
    if call.status == CallStatus.ACTIVE:
        outcome = CallStatus.COMPLETED
    elif call.status == CallStatus.PENDING:
        outcome = CallStatus.REJECTED if call.receiver_id == user.id else CallStatus.CANCELLED
    else:
        outcome = CallStatus.CANCELLED
    duration = _elapsed_seconds(call) if outcome == CallStatus.COMPLETED else None
    call.status = outcome
    call.ended_at = utcnow()
    call.duration = duration

    conversation = find_direct_conversation(db, call.initiator_id, call.receiver_id)
    if conversation is not None:
        db.add(
            Message(
                conversation_id=conversation.id,
                sender_id=user.id,
                type=MessageType.CALL,
                content=call_message_text(call.type, outcome, duration),
                meta={
                    "call_id": call.id,
                    "call_type": call.type.value,
                    "call_status": outcome.value,
                    "duration": duration,
                    "initiator_id": call.initiator_id,
                    "receiver_id": call.receiver_id,
                },
            )
        )
        conversation.updated_at = utcnow()
    db.commit()
    logger.info("Call %s ended by user %s as %s", call.id, user.id, outcome.value)
    return load_call(db, call.id, user)


def call_history(db: Session, user: User, history_filter: HistoryFilter = "all", limit: int = 50) -> list[Call]:
    if history_filter == "sent":
        condition = and_(Call.initiator_id == user.id, Call.status != CallStatus.PENDING)
    elif history_filter == "received":
        condition = and_(Call.receiver_id == user.id, Call.status != CallStatus.PENDING)
    elif history_filter == "missed":
        condition = and_(Call.receiver_id == user.id, Call.status == CallStatus.MISSED)
    elif history_filter == "all":
        condition = and_(
            or_(Call.initiator_id == user.id, Call.receiver_id == user.id),
            Call.status != CallStatus.PENDING,
        )
    else:
        raise InvalidInputError("Invalid filter")
    stmt = (
        select(Call)
        .where(condition)
        .options(selectinload(Call.initiator), selectinload(Call.receiver))
        .order_by(Call.started_at.desc(), Call.id.desc())
        .limit(max(1, min(limit, 100)))
    )
    return list(db.execute(stmt).scalars())
