"""Unit tests for the chat request lifecycle."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from parley.core.timestamps import utcnow
from parley.models import ChatRequest, ChatRequestStatus, Conversation
from parley.services import contacts
from parley.services.conversations import ensure_direct_conversation
from parley.services.errors import (
    AlreadyConnected,
    AlreadyResponded,
    ForbiddenError,
    InvalidTarget,
    NotFoundError,
    NotPending,
    QuotaExceeded,
    RequestPending,
)


@pytest.fixture()
def alice(make_user):
    return make_user("Alice")


@pytest.fixture()
def bob(make_user):
    return make_user("Bob")


def _conversation_count(db_session) -> int:
    return db_session.execute(select(func.count(Conversation.id))).scalar_one()


def test_create_request_returns_remaining_quota(db_session, alice, bob):
    request, remaining = contacts.create_request(db_session, alice, bob.id, "  hi there  ")

    assert request.status == ChatRequestStatus.PENDING
    assert request.message == "hi there"
    assert request.active_pair_key == contacts.pair_key(alice.id, bob.id)
    assert remaining == 2


def test_create_request_truncates_note(db_session, alice, bob):
    request, _ = contacts.create_request(db_session, alice, bob.id, "x" * 800)
    assert len(request.message) == 500


def test_create_request_rejects_invalid_targets(db_session, alice):
    with pytest.raises(InvalidTarget):
        contacts.create_request(db_session, alice, alice.id)
    with pytest.raises(InvalidTarget):
        contacts.create_request(db_session, alice, None)
    with pytest.raises(NotFoundError):
        contacts.create_request(db_session, alice, 9999)


def test_pending_request_blocks_both_directions(db_session, alice, bob):
    contacts.create_request(db_session, alice, bob.id)

    with pytest.raises(RequestPending):
        contacts.create_request(db_session, alice, bob.id)
    with pytest.raises(RequestPending):
        contacts.create_request(db_session, bob, alice.id)


def test_active_pair_key_rejects_concurrent_duplicate(db_session, alice, bob):
    """A second active row for the same pair is refused by the database."""

    contacts.create_request(db_session, alice, bob.id)
    db_session.add(
        ChatRequest(
            sender_id=bob.id,
            receiver_id=alice.id,
            status=ChatRequestStatus.PENDING,
            active_pair_key=contacts.pair_key(bob.id, alice.id),
        )
    )
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()

    pending = db_session.execute(
        select(func.count(ChatRequest.id)).where(ChatRequest.status == ChatRequestStatus.PENDING)
    ).scalar_one()
    assert pending == 1


def test_accept_creates_exactly_one_conversation(db_session, alice, bob):
    request, _ = contacts.create_request(db_session, alice, bob.id)

    accepted, conversation = contacts.respond(db_session, request.id, bob, "accept")

    assert accepted.status == ChatRequestStatus.ACCEPTED
    assert accepted.responded_at is not None
    assert conversation is not None
    assert {participant.user_id for participant in conversation.participants} == {alice.id, bob.id}

    with pytest.raises(AlreadyResponded):
        contacts.respond(db_session, request.id, bob, "accept")
    assert _conversation_count(db_session) == 1


def test_accept_reuses_existing_direct_conversation(db_session, alice, bob):
    existing = ensure_direct_conversation(db_session, alice.id, bob.id)
    db_session.commit()

    request, _ = contacts.create_request(db_session, bob, alice.id)
    _, conversation = contacts.respond(db_session, request.id, alice, "accept")

    assert conversation.id == existing.id
    assert _conversation_count(db_session) == 1


def test_only_receiver_may_respond(db_session, alice, bob):
    request, _ = contacts.create_request(db_session, alice, bob.id)
    with pytest.raises(ForbiddenError):
        contacts.respond(db_session, request.id, alice, "accept")


def test_reject_releases_pair(db_session, alice, bob):
    request, _ = contacts.create_request(db_session, alice, bob.id)

    rejected, conversation = contacts.respond(db_session, request.id, bob, "reject")

    assert rejected.status == ChatRequestStatus.REJECTED
    assert rejected.active_pair_key is None
    assert conversation is None
    again, remaining = contacts.create_request(db_session, alice, bob.id)
    assert again.status == ChatRequestStatus.PENDING
    assert remaining == 1


def test_accepted_pair_cannot_request_again(db_session, alice, bob):
    request, _ = contacts.create_request(db_session, alice, bob.id)
    contacts.respond(db_session, request.id, bob, "accept")

    with pytest.raises(AlreadyConnected):
        contacts.create_request(db_session, bob, alice.id)


def test_quota_allows_three_requests_per_year(db_session, alice, bob):
    for _ in range(2):
        request, _ = contacts.create_request(db_session, alice, bob.id)
        contacts.respond(db_session, request.id, bob, "reject")

    third, remaining = contacts.create_request(db_session, alice, bob.id)
    assert remaining == 0
    contacts.respond(db_session, third.id, bob, "reject")

    with pytest.raises(QuotaExceeded):
        contacts.create_request(db_session, alice, bob.id)


def test_quota_ignores_requests_outside_window(db_session, alice, bob):
    old = utcnow() - timedelta(days=400)
    for _ in range(3):
        db_session.add(
            ChatRequest(
                sender_id=alice.id,
                receiver_id=bob.id,
                status=ChatRequestStatus.REJECTED,
                created_at=old,
            )
        )
    db_session.commit()

    _, remaining = contacts.create_request(db_session, alice, bob.id)
    assert remaining == 2


def test_cancel_rules(db_session, alice, bob):
    request, _ = contacts.create_request(db_session, alice, bob.id)

    with pytest.raises(ForbiddenError):
        contacts.cancel(db_session, request.id, bob)

    contacts.cancel(db_session, request.id, alice)
    with pytest.raises(NotFoundError):
        contacts.load_request(db_session, request.id)

    accepted, _ = contacts.create_request(db_session, alice, bob.id)
    contacts.respond(db_session, accepted.id, bob, "accept")
    with pytest.raises(NotPending):
        contacts.cancel(db_session, accepted.id, alice)


def test_list_requests_filters_by_direction(db_session, alice, bob, make_user):
    carol = make_user("Carol")
    contacts.create_request(db_session, alice, bob.id)
    contacts.create_request(db_session, carol, alice.id)

    sent = contacts.list_requests(db_session, alice, "sent")
    received = contacts.list_requests(db_session, alice, "received")
    everything = contacts.list_requests(db_session, alice, "all")

    assert [request.receiver_id for request in sent] == [bob.id]
    assert [request.sender_id for request in received] == [carol.id]
    assert len(everything) == 2
    assert everything[0].sender_id == carol.id


def test_connection_status_transitions(db_session, alice, bob):
    status = contacts.connection_status(db_session, alice, bob.id)
    assert status.status == "not_connected"
    assert status.remaining_requests == 3
    assert status.can_send_request

    request, _ = contacts.create_request(db_session, alice, bob.id)
    pending = contacts.connection_status(db_session, bob, alice.id)
    assert pending.status == "pending"
    assert pending.request_id == request.id
    assert pending.is_sender is False

    _, conversation = contacts.respond(db_session, request.id, bob, "accept")
    connected = contacts.connection_status(db_session, alice, bob.id)
    assert connected.status == "connected"
    assert connected.can_chat
    assert connected.conversation_id == conversation.id
