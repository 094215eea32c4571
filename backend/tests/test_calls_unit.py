"""Unit tests for call signaling records."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from parley.core.timestamps import utcnow
from parley.models import CallStatus, CallType, Message, MessageType
from parley.services import calls, contacts
from parley.services.errors import ForbiddenError, InvalidInputError


@pytest.fixture()
def caller(make_user):
    return make_user("Caller")


@pytest.fixture()
def callee(make_user):
    return make_user("Callee")


@pytest.mark.parametrize(
    ("call_type", "status", "duration", "expected"),
    [
        (CallType.VIDEO, CallStatus.COMPLETED, 65, "Video call • 1m 5s"),
        (CallType.AUDIO, CallStatus.COMPLETED, 42, "Voice call • 42s"),
        (CallType.AUDIO, CallStatus.MISSED, None, "Missed voice call"),
        (CallType.VIDEO, CallStatus.REJECTED, None, "Video call declined"),
        (CallType.AUDIO, CallStatus.CANCELLED, None, "Voice call cancelled"),
    ],
)
def test_call_message_text(call_type, status, duration, expected):
    assert calls.call_message_text(call_type, status, duration) == expected


def test_start_call_cancels_previous_ring(db_session, caller, callee):
    first = calls.start_call(db_session, caller, callee.id, "audio")
    second = calls.start_call(db_session, caller, callee.id, "video", {"sdp": "offer"})

    db_session.refresh(first)
    assert first.status == CallStatus.CANCELLED
    assert second.status == CallStatus.PENDING
    assert second.offer == {"sdp": "offer"}
    assert second.ice_candidates == {"initiator": [], "receiver": []}


def test_start_call_validation(db_session, caller):
    with pytest.raises(InvalidInputError):
        calls.start_call(db_session, caller, caller.id, "audio")
    with pytest.raises(InvalidInputError):
        calls.start_call(db_session, caller, None, "audio")
    with pytest.raises(InvalidInputError):
        calls.start_call(db_session, caller, 42, "hologram")


def test_poll_marks_stale_calls_missed(db_session, caller, callee):
    stale = calls.start_call(db_session, caller, callee.id, "audio")
    stale.started_at = utcnow() - timedelta(seconds=90)
    db_session.commit()

    poll = calls.poll_calls(db_session, callee)
    assert poll.incoming_call is None
    db_session.refresh(stale)
    assert stale.status == CallStatus.MISSED

    fresh = calls.start_call(db_session, caller, callee.id, "video")
    poll = calls.poll_calls(db_session, callee)
    assert poll.incoming_call.id == fresh.id


def test_signaling_roles(db_session, caller, callee):
    call = calls.start_call(db_session, caller, callee.id, "audio")

    with pytest.raises(ForbiddenError):
        calls.update_call(db_session, call.id, callee, "offer", {"offer": {}})
    with pytest.raises(ForbiddenError):
        calls.update_call(db_session, call.id, caller, "answer", {"answer": {}})
    with pytest.raises(ForbiddenError):
        calls.update_call(db_session, call.id, caller, "accept", {})

    calls.update_call(db_session, call.id, caller, "ice-candidate", {"ice_candidate": {"c": 1}})
    answered = calls.update_call(db_session, call.id, callee, "answer", {"answer": {"sdp": "a"}})
    assert answered.status == CallStatus.ACTIVE
    assert answered.ice_candidates["initiator"] == [{"c": 1}]
    assert calls.poll_calls(db_session, caller).active_call.id == call.id


def test_status_action_maps_ended(db_session, caller, callee):
    call = calls.start_call(db_session, caller, callee.id, "audio")
    updated = calls.update_call(db_session, call.id, callee, "status", {"status": "ended"})
    assert updated.status == CallStatus.COMPLETED
    assert updated.ended_at is not None


def test_outsider_cannot_see_call(db_session, caller, callee, make_user):
    call = calls.start_call(db_session, caller, callee.id, "audio")
    with pytest.raises(ForbiddenError):
        calls.load_call(db_session, call.id, make_user("Eve"))


def test_end_call_posts_summary_message(db_session, caller, callee):
    request, _ = contacts.create_request(db_session, caller, callee.id)
    _, conversation = contacts.respond(db_session, request.id, callee, "accept")
    call = calls.start_call(db_session, caller, callee.id, "video")

    ended = calls.end_call(db_session, call.id, callee)

    assert ended.status == CallStatus.REJECTED
    message = db_session.execute(select(Message).where(Message.conversation_id == conversation.id)).scalar_one()
    assert message.type == MessageType.CALL
    assert message.content == "Video call declined"
    assert message.meta["call_id"] == call.id


def test_end_active_call_records_duration(db_session, caller, callee):
    call = calls.start_call(db_session, caller, callee.id, "audio")
    calls.update_call(db_session, call.id, callee, "answer", {"answer": {}})
    call.started_at = utcnow() - timedelta(seconds=30)
    db_session.commit()

    ended = calls.end_call(db_session, call.id, caller)
    assert ended.status == CallStatus.COMPLETED
    assert ended.duration >= 30


def test_history_filters(db_session, caller, callee):
    missed = calls.start_call(db_session, caller, callee.id, "audio")
    missed.started_at = utcnow() - timedelta(minutes=5)
    db_session.commit()
    calls.poll_calls(db_session, callee)
    pending = calls.start_call(db_session, callee, caller.id, "video")

    assert [call.id for call in calls.call_history(db_session, callee, "missed")] == [missed.id]
    assert [call.id for call in calls.call_history(db_session, caller, "sent")] == [missed.id]
    assert pending.id not in [call.id for call in calls.call_history(db_session, caller, "all")]
