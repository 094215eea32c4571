"""Unit tests for messages, reactions, typing and read receipts."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from parley.core.timestamps import as_utc, utcnow
from parley.models import GroupRole, MessageType, ReadReceipt, TypingIndicator
from parley.services import contacts, groups, messaging
from parley.services.conversations import clear_history
from parley.services.errors import (
    EmptyContent,
    ForbiddenError,
    InvalidInputError,
    Muted,
    NotEditable,
    NotFoundError,
)


@pytest.fixture()
def alice(make_user):
    return make_user("Alice")


@pytest.fixture()
def bob(make_user):
    return make_user("Bob")


@pytest.fixture()
def conversation(db_session, alice, bob):
    request, _ = contacts.create_request(db_session, alice, bob.id)
    _, conversation = contacts.respond(db_session, request.id, bob, "accept")
    return conversation


def _thread(db_session, conversation, user):
    return messaging.open_conversation(db_session, conversation.id, user)


def test_post_message_trims_and_attaches_sender(db_session, conversation, alice):
    thread = _thread(db_session, conversation, alice)

    message = messaging.post_message(db_session, thread, alice, "  hello  ")

    assert message.content == "hello"
    assert message.type == MessageType.TEXT
    assert message.sender.id == alice.id
    assert message.conversation_id == conversation.id


def test_post_message_truncates_long_content(db_session, conversation, alice):
    thread = _thread(db_session, conversation, alice)
    message = messaging.post_message(db_session, thread, alice, "a" * 5000)
    assert len(message.content) == 4000


def test_post_message_requires_content(db_session, conversation, alice):
    thread = _thread(db_session, conversation, alice)
    with pytest.raises(EmptyContent):
        messaging.post_message(db_session, thread, alice, "   ")
    with pytest.raises(EmptyContent):
        messaging.post_message(db_session, thread, alice, None)


def test_outsider_cannot_open_conversation(db_session, conversation, make_user):
    mallory = make_user("Mallory")
    with pytest.raises(ForbiddenError):
        messaging.open_conversation(db_session, conversation.id, mallory)


def test_reply_outside_thread_is_dropped(db_session, conversation, alice, bob, make_user):
    carol = make_user("Carol")
    request, _ = contacts.create_request(db_session, alice, carol.id)
    _, other = contacts.respond(db_session, request.id, carol, "accept")
    foreign = messaging.post_message(db_session, _thread(db_session, other, alice), alice, "elsewhere")

    thread = _thread(db_session, conversation, bob)
    parent = messaging.post_message(db_session, thread, alice, "question")
    reply = messaging.post_message(db_session, thread, bob, "answer", reply_to_id=parent.id)
    stray = messaging.post_message(db_session, thread, bob, "stray", reply_to_id=foreign.id)

    assert reply.reply_to_id == parent.id
    assert reply.reply_to.content == "question"
    assert stray.reply_to_id is None


def test_list_messages_pages_backwards(db_session, conversation, alice):
    thread = _thread(db_session, conversation, alice)
    posted = [messaging.post_message(db_session, thread, alice, f"m{index}") for index in range(5)]

    page = messaging.list_messages(db_session, thread, limit=2)
    assert [message.content for message in page.messages] == ["m3", "m4"]
    assert page.has_more is True
    assert page.next_cursor == posted[3].id

    older = messaging.list_messages(db_session, thread, cursor=page.next_cursor, limit=10)
    assert [message.content for message in older.messages] == ["m0", "m1", "m2"]
    assert older.has_more is False
    assert older.next_cursor is None


def test_cleared_history_is_hidden_for_that_participant_only(db_session, conversation, alice, bob):
    thread = _thread(db_session, conversation, alice)
    messaging.post_message(db_session, thread, alice, "before")

    clear_history(db_session, conversation, alice)
    messaging.post_message(db_session, thread, bob, "after")

    alice_view = messaging.list_messages(db_session, _thread(db_session, conversation, alice))
    bob_view = messaging.list_messages(db_session, _thread(db_session, conversation, bob))
    assert [message.content for message in alice_view.messages] == ["after"]
    assert [message.content for message in bob_view.messages] == ["before", "after"]


def test_edit_rules(db_session, conversation, alice, bob):
    thread = _thread(db_session, conversation, alice)
    message = messaging.post_message(db_session, thread, alice, "draft")

    with pytest.raises(ForbiddenError):
        messaging.edit_message(db_session, thread, message.id, bob, "hijack")

    edited = messaging.edit_message(db_session, thread, message.id, alice, "final")
    assert edited.content == "final"
    assert edited.is_edited is True

    image = messaging.post_message(db_session, thread, alice, "photo.png", message_type=MessageType.IMAGE)
    with pytest.raises(NotEditable):
        messaging.edit_message(db_session, thread, image.id, alice, "caption")

    messaging.delete_message(db_session, thread, message.id, alice)
    with pytest.raises(NotEditable):
        messaging.edit_message(db_session, thread, message.id, alice, "again")


def test_delete_is_soft_and_sender_only(db_session, conversation, alice, bob):
    thread = _thread(db_session, conversation, alice)
    message = messaging.post_message(db_session, thread, alice, "oops")

    with pytest.raises(ForbiddenError):
        messaging.delete_message(db_session, thread, message.id, bob)

    deleted = messaging.delete_message(db_session, thread, message.id, alice)
    assert deleted.is_deleted is True
    assert messaging.list_messages(db_session, thread).messages == []
    with pytest.raises(NotFoundError):
        messaging.get_message(db_session, thread, message.id)


def test_reaction_toggles(db_session, conversation, alice, bob):
    thread = _thread(db_session, conversation, alice)
    message = messaging.post_message(db_session, thread, alice, "nice")

    assert messaging.toggle_reaction(db_session, thread, message.id, alice, "👍") == {
        "emoji": "👍",
        "removed": False,
        "added": True,
    }
    messaging.toggle_reaction(db_session, thread, message.id, bob, "👍")
    summary = messaging.list_reactions(db_session, thread, message.id, bob)
    assert summary[0]["count"] == 2
    assert summary[0]["has_reacted"] is True

    result = messaging.toggle_reaction(db_session, thread, message.id, alice, "👍")
    assert result["removed"] is True
    summary = messaging.list_reactions(db_session, thread, message.id, alice)
    assert summary[0]["count"] == 1
    assert summary[0]["has_reacted"] is False


def test_reaction_requires_emoji(db_session, conversation, alice):
    thread = _thread(db_session, conversation, alice)
    message = messaging.post_message(db_session, thread, alice, "hi")
    with pytest.raises(InvalidInputError):
        messaging.toggle_reaction(db_session, thread, message.id, alice, " ")


def test_typing_excludes_viewer_and_expires(db_session, conversation, alice, bob):
    thread = _thread(db_session, conversation, alice)
    messaging.set_typing(db_session, thread, alice, True)
    messaging.set_typing(db_session, thread, alice, True)

    assert [user.id for user in messaging.get_typing(db_session, thread, bob)] == [alice.id]
    assert messaging.get_typing(db_session, thread, alice) == []

    indicator = db_session.execute(select(TypingIndicator)).scalar_one()
    indicator.updated_at = utcnow() - timedelta(seconds=30)
    db_session.commit()

    assert messaging.get_typing(db_session, thread, bob) == []
    assert db_session.execute(select(func.count(TypingIndicator.id))).scalar_one() == 0


def test_mark_read_is_idempotent(db_session, conversation, alice, bob):
    thread = _thread(db_session, conversation, alice)
    first = messaging.post_message(db_session, thread, alice, "one")
    second = messaging.post_message(db_session, thread, alice, "two")

    bob_thread = _thread(db_session, conversation, bob)
    assert messaging.mark_read(db_session, bob_thread, [first.id, second.id, 9999], bob) == 2
    assert messaging.mark_read(db_session, bob_thread, [first.id], bob) == 1

    assert db_session.execute(select(func.count(ReadReceipt.id))).scalar_one() == 2
    receipts = messaging.get_read_receipts(db_session, thread, [first.id, second.id])
    assert [receipt.user_id for receipt in receipts[first.id]] == [bob.id]


def test_search_and_media(db_session, conversation, alice):
    thread = _thread(db_session, conversation, alice)
    messaging.post_message(db_session, thread, alice, "Lunch tomorrow?")
    messaging.post_message(db_session, thread, alice, "/media/messages/1-1.png", message_type=MessageType.IMAGE)
    messaging.post_message(db_session, thread, alice, "/media/messages/1-2.pdf", message_type=MessageType.DOCUMENT)

    assert [message.content for message in messaging.search_messages(db_session, thread, "lunch")] == [
        "Lunch tomorrow?"
    ]
    with pytest.raises(InvalidInputError):
        messaging.search_messages(db_session, thread, "  ")

    assert len(messaging.list_media(db_session, thread)) == 1
    assert len(messaging.list_media(db_session, thread, "file")) == 1
    assert len(messaging.list_media(db_session, thread, "all")) == 2


def test_muted_member_cannot_post_to_group(db_session, alice, bob):
    group = groups.create_group(db_session, alice, "Book club")
    groups.join_group(db_session, group, bob)
    group = groups.load_group(db_session, group.id)
    groups.update_member(db_session, group, alice, bob.id, {"muted_until": utcnow() + timedelta(hours=1)})

    with pytest.raises(Muted):
        messaging.open_group(db_session, group.id, bob, write=True)

    groups.update_member(db_session, group, alice, bob.id, {"muted_until": None})
    thread = messaging.open_group(db_session, group.id, bob, write=True)
    assert messaging.post_message(db_session, thread, bob, "back").group_id == group.id


def test_group_manager_can_delete_any_message(db_session, alice, bob):
    group = groups.create_group(db_session, alice, "Book club")
    groups.join_group(db_session, group, bob)

    bob_thread = messaging.open_group(db_session, group.id, bob, write=True)
    message = messaging.post_message(db_session, bob_thread, bob, "spoiler")

    owner_thread = messaging.open_group(db_session, group.id, alice, members_only=True)
    assert owner_thread.member.role == GroupRole.OWNER
    assert messaging.delete_message(db_session, owner_thread, message.id, alice).is_deleted is True


def test_as_utc_tags_naive_database_values():
    naive = datetime(2026, 1, 2, 3, 4, 5)
    offset = datetime(2026, 1, 2, 5, 4, 5, tzinfo=timezone(timedelta(hours=2)))

    assert as_utc(naive) == datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert as_utc(offset) == datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert as_utc(None) is None
