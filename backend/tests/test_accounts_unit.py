"""Unit tests for account lifecycle and admin moderation."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from parley.models import ChatRequest, Group, Message, PresenceStatus, User, UserRole
from parley.services import accounts, contacts, groups, messaging, moderation
from parley.services.errors import (
    CannotDeleteAdmin,
    CannotDeleteSelf,
    ConflictError,
    ForbiddenError,
    InvalidInputError,
)


def _count(db_session, column) -> int:
    return db_session.execute(select(func.count(column))).scalar_one()


@pytest.fixture()
def connected(db_session, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")
    request, _ = contacts.create_request(db_session, alice, bob.id)
    _, conversation = contacts.respond(db_session, request.id, bob, "accept")
    thread = messaging.open_conversation(db_session, conversation.id, alice)
    messaging.post_message(db_session, thread, alice, "hello")
    messaging.post_message(db_session, thread, bob, "hey")
    return alice, bob, conversation


def test_register_starts_offline(db_session):
    user = accounts.register(db_session, "new@example.com", "secret1", "New Person", "Newbie")

    assert user.status == PresenceStatus.OFFLINE
    assert user.hashed_password != "secret1"
    with pytest.raises(ConflictError):
        accounts.register(db_session, "new@example.com", "secret1", "New Person", "Newbie")


def test_authenticate_marks_online(db_session, make_user):
    make_user("Dora", email="dora@example.com")

    user = accounts.authenticate(db_session, "Dora@Example.com", "password123")
    assert user.status == PresenceStatus.ONLINE
    assert user.last_seen is not None

    with pytest.raises(accounts.AuthenticationError):
        accounts.authenticate(db_session, "dora@example.com", "wrong")


def test_oauth_only_account_cannot_use_password(db_session, make_user):
    make_user("Otto", password=None)
    with pytest.raises(InvalidInputError):
        accounts.authenticate(db_session, "otto@example.com", "anything")


def test_update_profile_clears_blank_fields(db_session, make_user):
    user = make_user("Pia")
    accounts.update_profile(db_session, user, {"bio": "Climber", "location": "Oslo"})

    updated = accounts.update_profile(db_session, user, {"bio": "  ", "name": "", "email": "x@y.z"})
    assert updated.bio is None
    assert updated.location == "Oslo"
    assert updated.name == "Pia"
    assert updated.email == "pia@example.com"


def test_delete_account_guards(db_session, make_user):
    user = make_user("Quinn")
    with pytest.raises(InvalidInputError):
        accounts.delete_account(db_session, user, "password123", "delete")
    with pytest.raises(ForbiddenError):
        accounts.delete_account(db_session, user, "wrong", "DELETE")

    accounts.delete_account(db_session, user, "password123", "DELETE")
    assert _count(db_session, User.id) == 0


def test_delete_account_removes_owned_rows(db_session, connected):
    alice, bob, _ = connected
    groups.create_group(db_session, alice, "Alice's club")

    accounts.delete_account(db_session, alice, "password123", "DELETE")

    assert _count(db_session, Message.id) == 0
    assert _count(db_session, ChatRequest.id) == 0
    assert _count(db_session, Group.id) == 0
    assert db_session.get(User, bob.id) is not None


def test_export_contains_activity(db_session, connected):
    alice, _, _ = connected
    document = accounts.export_data(db_session, alice)

    assert document["profile"]["email"] == "alice@example.com"
    assert [message["content"] for message in document["messages"]] == ["hello"]
    assert len(document["chat_requests"]) == 1


def test_admin_cannot_delete_self_or_admins(db_session, make_user):
    root = make_user("Root", role=UserRole.ADMIN)
    other_admin = make_user("Ops", role=UserRole.ADMIN)

    with pytest.raises(CannotDeleteSelf):
        moderation.delete_user(db_session, root, root.id)
    with pytest.raises(CannotDeleteAdmin):
        moderation.delete_user(db_session, root, other_admin.id)


def test_admin_deletes_user_with_content(db_session, make_user, connected):
    root = make_user("Root", role=UserRole.ADMIN)
    alice, bob, _ = connected

    moderation.delete_user(db_session, root, bob.id)

    assert db_session.get(User, bob.id) is None
    assert _count(db_session, Message.id) == 0


def test_admin_user_overview_and_actions(db_session, make_user, connected):
    root = make_user("Root", role=UserRole.ADMIN)
    alice, _, _ = connected

    overviews, stats = moderation.list_users(db_session)
    by_id = {overview.user.id: overview for overview in overviews}
    assert by_id[alice.id].message_count == 1
    assert stats["total_users"] == 3
    assert stats["total_messages"] == 2

    _, note = moderation.update_user(db_session, root, alice.id, "clearMessages", {})
    assert note == "Deleted 1 messages"
    updated, note = moderation.update_user(db_session, root, alice.id, None, {"bio": "Hi", "hashed_password": "x"})
    assert note is None
    assert updated.bio == "Hi"
    assert updated.hashed_password != "x"


def test_delete_all_users_keeps_admins(db_session, make_user, connected):
    root = make_user("Root", role=UserRole.ADMIN)

    assert moderation.delete_all_users(db_session, root) == 2
    assert [user.id for user in db_session.execute(select(User)).scalars()] == [root.id]


def test_admin_group_actions(db_session, make_user):
    root = make_user("Root", role=UserRole.ADMIN)
    owner = make_user("Owner")
    guest = make_user("Guest")
    group = groups.create_group(db_session, owner, "Board")
    groups.join_group(db_session, group, guest)
    thread = messaging.open_group(db_session, group.id, guest, write=True)
    messaging.post_message(db_session, thread, guest, "hi all")

    overview = moderation.get_group(db_session, group.id)
    assert (overview.member_count, overview.message_count) == (2, 1)

    _, note = moderation.update_group(db_session, root, group.id, "clearMessages", {})
    assert note == "Deleted 1 messages"
    updated, _ = moderation.update_group(db_session, root, group.id, "removeMember", {"user_id": guest.id})
    assert updated.member_for(guest.id) is None
    with pytest.raises(ForbiddenError):
        moderation.update_group(db_session, root, group.id, "removeMember", {"user_id": owner.id})

    assert moderation.delete_all_groups(db_session, root) == 1
    assert _count(db_session, Group.id) == 0


def test_admin_user_update_validates_fields(db_session, make_user):
    root = make_user("Root", role=UserRole.ADMIN)
    alice = make_user("Alice", email="alice@example.com")
    make_user("Bob", email="bob@example.com")

    for changes in ({"email": None}, {"role": None}, {"status": None}, {"email": "not-an-email"}, {"role": "wizard"}):
        with pytest.raises(InvalidInputError):
            moderation.update_user(db_session, root, alice.id, None, changes)
    with pytest.raises(ConflictError):
        moderation.update_user(db_session, root, alice.id, None, {"email": "bob@example.com"})

    refreshed = db_session.get(User, alice.id)
    assert refreshed.email == "alice@example.com"
    assert refreshed.role == UserRole.USER

    updated, _ = moderation.update_user(
        db_session, root, alice.id, None, {"email": "  Alice.New@Example.com ", "status": "away", "name": None}
    )
    assert updated.email == "alice.new@example.com"
    assert updated.status == PresenceStatus.AWAY
    assert updated.name is None


def test_admin_group_update_rejects_null_settings(db_session, make_user):
    root = make_user("Root", role=UserRole.ADMIN)
    owner = make_user("Owner")
    group = groups.create_group(db_session, owner, "Board")

    for changes in ({"name": None}, {"is_private": None}, {"max_members": None}):
        with pytest.raises(InvalidInputError):
            moderation.update_group(db_session, root, group.id, None, changes)

    updated, _ = moderation.update_group(db_session, root, group.id, None, {"name": " Council ", "is_private": True})
    assert (updated.name, updated.is_private) == ("Council", True)
