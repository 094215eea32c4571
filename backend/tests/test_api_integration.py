"""Integration tests exercising API endpoints via FastAPI's TestClient."""

from __future__ import annotations

from typing import Any

from fastapi.testclient import TestClient

from parley import main
from parley.models import User, UserRole


def register_user(
    client: TestClient,
    email: str,
    password: str = "password123",
    real_name: str = "Test User",
    nickname: str = "tester",
) -> dict[str, Any]:
    response = client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "real_name": real_name, "nickname": nickname},
    )
    assert response.status_code == 201, response.text
    return response.json()


def login_user(client: TestClient, email: str, password: str = "password123") -> dict[str, Any]:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def signed_in(client: TestClient, name: str) -> tuple[dict[str, Any], dict[str, str]]:
    user = register_user(client, f"{name}@example.com", real_name=f"{name.title()} Example", nickname=name)
    tokens = login_user(client, f"{name}@example.com")
    return user, auth_headers(tokens["access_token"])


def connect(client: TestClient, sender: dict[str, str], receiver: dict[str, str], receiver_id: int) -> int:
    response = client.post("/api/chat-requests", json={"receiver_id": receiver_id, "message": "hi"}, headers=sender)
    assert response.status_code == 201, response.text
    request_id = response.json()["request"]["id"]
    response = client.patch(f"/api/chat-requests/{request_id}", json={"action": "accept"}, headers=receiver)
    assert response.status_code == 200, response.text
    return response.json()["conversation_id"]


def test_register_login_refresh_logout(client: TestClient):
    """End-to-end flow for the credentials account lifecycle."""

    created = register_user(client, "Alice@Example.com", real_name="Alice Liddell", nickname="alice")
    assert created["email"] == "alice@example.com"
    assert created["name"] == "alice"
    assert created["status"] == "offline"

    tokens = login_user(client, "alice@example.com")
    assert tokens["token_type"] == "bearer"
    assert tokens["user"]["status"] == "online"

    response = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 200
    rotated = response.json()
    assert rotated["refresh_token"] != tokens["refresh_token"]

    response = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 401

    response = client.post(
        "/api/auth/logout",
        json={"refresh_token": rotated["refresh_token"]},
        headers=auth_headers(rotated["access_token"]),
    )
    assert response.status_code == 200
    assert response.json() == {"message": "Logged out successfully"}

    response = client.get("/api/profile/status", headers=auth_headers(rotated["access_token"]))
    assert response.json()["status"] == "offline"


def test_register_rejects_duplicates_and_bad_input(client: TestClient):
    register_user(client, "bob@example.com")

    response = client.post(
        "/api/auth/register",
        json={"email": "BOB@example.com", "password": "password123", "name": "Bob"},
    )
    assert response.status_code == 409
    assert "error" in response.json()

    response = client.post(
        "/api/auth/register",
        json={"email": "carol@example.com", "password": "password123", "real_name": "C", "nickname": "carol"},
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Real name must be between 2 and 100 characters"}


def test_login_with_wrong_password(client: TestClient):
    register_user(client, "dave@example.com")

    response = client.post("/api/auth/login", json={"email": "dave@example.com", "password": "nope-nope"})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid email or password"}


def test_protected_routes_require_token(client: TestClient):
    response = client.get("/api/conversations")

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_chat_request_flow_and_direct_messaging(client: TestClient):
    alice, alice_headers = signed_in(client, "alice")
    bob, bob_headers = signed_in(client, "bob")

    response = client.get(f"/api/users/{bob['id']}/connection", headers=alice_headers)
    assert response.json()["can_send_request"] is True

    response = client.post(
        "/api/conversations", json={"participant_ids": [bob["id"]]}, headers=alice_headers
    )
    assert response.status_code == 403

    conversation_id = connect(client, alice_headers, bob_headers, bob["id"])

    response = client.get(f"/api/users/{bob['id']}/connection", headers=alice_headers)
    connection = response.json()
    assert connection["can_chat"] is True
    assert connection["conversation_id"] == conversation_id

    response = client.post(
        "/api/conversations", json={"participant_ids": [bob["id"]]}, headers=alice_headers
    )
    assert response.status_code == 200
    assert response.json()["id"] == conversation_id

    response = client.post(
        f"/api/conversations/{conversation_id}/messages",
        json={"content": "  hello bob  "},
        headers=alice_headers,
    )
    assert response.status_code == 201, response.text
    message = response.json()
    assert message["content"] == "hello bob"

    response = client.post(
        f"/api/conversations/{conversation_id}/messages/{message['id']}/reactions",
        json={"emoji": "👍"},
        headers=bob_headers,
    )
    assert response.json() == {"emoji": "👍", "removed": False, "added": True}

    response = client.get(
        f"/api/conversations/{conversation_id}/messages/{message['id']}/reactions", headers=alice_headers
    )
    summary = response.json()
    assert summary[0]["count"] == 1
    assert summary[0]["has_reacted"] is False

    response = client.post(f"/api/conversations/{conversation_id}/typing", json={"is_typing": True}, headers=bob_headers)
    assert response.status_code == 200
    response = client.get(f"/api/conversations/{conversation_id}/typing", headers=alice_headers)
    assert [user["id"] for user in response.json()["users"]] == [bob["id"]]

    response = client.get("/api/conversations", headers=bob_headers)
    listing = response.json()
    assert listing[0]["unread_count"] == 1
    assert listing[0]["last_message"]["content"] == "hello bob"

    response = client.post(
        f"/api/conversations/{conversation_id}/messages/read",
        json={"message_ids": [message["id"]]},
        headers=bob_headers,
    )
    assert response.json() == {"marked": 1}

    response = client.get(
        f"/api/conversations/{conversation_id}/messages/read",
        params={"message_ids": str(message["id"])},
        headers=alice_headers,
    )
    receipts = response.json()["receipts"]
    assert [entry["user"]["id"] for entry in receipts[str(message["id"])]] == [bob["id"]]

    response = client.get(f"/api/conversations/{conversation_id}/messages", headers=bob_headers)
    page = response.json()
    assert [entry["id"] for entry in page["messages"]] == [message["id"]]
    assert page["has_more"] is False


def test_read_receipts_require_ids(client: TestClient):
    alice, alice_headers = signed_in(client, "alice")
    bob, bob_headers = signed_in(client, "bob")
    conversation_id = connect(client, alice_headers, bob_headers, bob["id"])

    response = client.get(f"/api/conversations/{conversation_id}/messages/read", headers=alice_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Message IDs are required"}


def test_outsiders_cannot_read_conversations(client: TestClient):
    alice, alice_headers = signed_in(client, "alice")
    bob, bob_headers = signed_in(client, "bob")
    _, eve_headers = signed_in(client, "eve")
    conversation_id = connect(client, alice_headers, bob_headers, bob["id"])

    response = client.get(f"/api/conversations/{conversation_id}/messages", headers=eve_headers)

    assert response.status_code == 403


def test_group_roles_over_http(client: TestClient):
    owner, owner_headers = signed_in(client, "owner")
    helper, helper_headers = signed_in(client, "helper")
    member, member_headers = signed_in(client, "member")

    response = client.post("/api/groups", json={"name": "Book Club"}, headers=owner_headers)
    assert response.status_code == 201, response.text
    group = response.json()
    group_id = group["id"]
    assert group["members"][0]["role"] == "owner"

    response = client.put(f"/api/groups/{group_id}/members", json={"user_id": helper["id"]}, headers=owner_headers)
    assert response.status_code == 201
    response = client.post(f"/api/groups/{group_id}/members", headers=member_headers)
    assert response.status_code == 201
    assert response.json()["role"] == "member"

    response = client.patch(
        f"/api/groups/{group_id}/members/{helper['id']}", json={"role": "admin"}, headers=owner_headers
    )
    assert response.json()["role"] == "admin"

    response = client.patch(
        f"/api/groups/{group_id}/members/{member['id']}", json={"role": "admin"}, headers=helper_headers
    )
    assert response.status_code == 403

    response = client.delete(f"/api/groups/{group_id}/members/{owner['id']}", headers=helper_headers)
    assert response.status_code == 403

    response = client.post(
        f"/api/groups/{group_id}/messages", json={"content": "welcome"}, headers=member_headers
    )
    assert response.status_code == 201
    message_id = response.json()["id"]

    response = client.delete(f"/api/groups/{group_id}/messages/{message_id}", headers=helper_headers)
    assert response.status_code == 200
    assert response.json()["is_deleted"] is True

    response = client.delete(f"/api/groups/{group_id}/members/{member['id']}", headers=helper_headers)
    assert response.status_code == 200

    response = client.get(f"/api/groups/{group_id}/members", headers=owner_headers)
    assert [entry["user_id"] for entry in response.json()] == [owner["id"], helper["id"]]

    response = client.delete(f"/api/groups/{group_id}", headers=helper_headers)
    assert response.status_code == 403
    response = client.delete(f"/api/groups/{group_id}", headers=owner_headers)
    assert response.status_code == 200


def test_calls_over_http(client: TestClient):
    alice, alice_headers = signed_in(client, "alice")
    bob, bob_headers = signed_in(client, "bob")

    response = client.post("/api/calls", json={"receiver_id": bob["id"], "type": "audio"}, headers=alice_headers)
    assert response.status_code == 201, response.text
    call_id = response.json()["id"]

    response = client.get("/api/calls", headers=bob_headers)
    assert response.json()["incoming_call"]["id"] == call_id

    response = client.patch(f"/api/calls/{call_id}", json={"action": "answer", "answer": {"sdp": "x"}}, headers=bob_headers)
    assert response.json()["status"] == "active"

    response = client.delete(f"/api/calls/{call_id}", headers=alice_headers)
    assert response.json()["status"] == "completed"

    response = client.get("/api/calls/history", headers=bob_headers)
    history = response.json()
    assert history[0]["id"] == call_id
    assert history[0]["is_outgoing"] is False


def test_admin_routes_require_admin(client: TestClient, session_factory):
    _, user_headers = signed_in(client, "user")
    admin, admin_headers = signed_in(client, "root")

    response = client.get("/api/admin/users", headers=user_headers)
    assert response.status_code == 403
    assert response.json() == {"error": "Admin access required"}

    with session_factory() as session:
        record = session.get(User, admin["id"])
        record.role = UserRole.ADMIN
        session.commit()

    response = client.get("/api/admin/users", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["stats"]["total_users"] == 2

    response = client.delete(f"/api/admin/users/{admin['id']}", headers=admin_headers)
    assert response.status_code == 400


def test_profile_update_and_export(client: TestClient):
    _, headers = signed_in(client, "alice")

    response = client.put(
        "/api/profile",
        json={"bio": "Curious", "website": "https://alice.example.com", "location": "  "},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    profile = response.json()
    assert profile["bio"] == "Curious"
    assert profile["location"] is None

    response = client.put("/api/profile", json={"website": "alice.example.com"}, headers=headers)
    assert response.status_code == 400

    response = client.get("/api/profile/export", headers=headers)
    assert response.status_code == 200
    assert "attachment" in response.headers["content-disposition"]
    assert response.json()["profile"]["bio"] == "Curious"


def test_upload_and_delete(client: TestClient):
    _, headers = signed_in(client, "alice")

    response = client.post(
        "/api/upload",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        data={"type": "message"},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    upload = response.json()
    assert upload["file_size"] == 5
    assert upload["url"].startswith("/media/messages/")

    response = client.request("DELETE", "/api/upload", json={}, headers=headers)
    assert response.status_code == 400
    assert response.json() == {"error": "URL required"}

    response = client.request("DELETE", "/api/upload", json={"url": upload["url"]}, headers=headers)
    assert response.status_code == 200

    response = client.post(
        "/api/upload",
        files={"file": ("script.sh", b"echo", "application/x-sh")},
        headers=headers,
    )
    assert response.status_code == 400


def test_security_headers_present(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_api_rate_limit(client: TestClient, monkeypatch):
    monkeypatch.setattr(main.settings, "api_rate_limit_requests", 3)

    statuses = [client.get("/api/").status_code for _ in range(4)]

    assert statuses == [200, 200, 200, 429]
    response = client.get("/api/")
    assert response.json()["error"]
    assert response.headers["X-Frame-Options"] == "DENY"
    assert client.get("/health").status_code == 200


def test_group_settings_reject_null_values(client: TestClient):
    _, headers = signed_in(client, "owner")
    group_id = client.post("/api/groups", json={"name": "Chess"}, headers=headers).json()["id"]

    for payload in ({"max_members": None}, {"is_private": None}, {"name": None}):
        response = client.patch(f"/api/groups/{group_id}", json=payload, headers=headers)
        assert response.status_code == 400, payload
        assert response.json()["error"]

    response = client.patch(f"/api/groups/{group_id}", json={"max_members": 10}, headers=headers)
    assert response.status_code == 200
    assert response.json()["max_members"] == 10


def test_admin_user_update_errors(client: TestClient, session_factory):
    admin, admin_headers = signed_in(client, "root")
    alice, _ = signed_in(client, "alice")
    signed_in(client, "bob")
    with session_factory() as session:
        session.get(User, admin["id"]).role = UserRole.ADMIN
        session.commit()

    response = client.patch(f"/api/admin/users/{alice['id']}", json={"email": "bob@example.com"}, headers=admin_headers)
    assert response.status_code == 409
    response = client.patch(f"/api/admin/users/{alice['id']}", json={"email": None}, headers=admin_headers)
    assert response.status_code == 400
    response = client.patch(f"/api/admin/users/{alice['id']}", json={"role": None}, headers=admin_headers)
    assert response.status_code == 400

    response = client.get(f"/api/admin/users/{alice['id']}", headers=admin_headers)
    assert response.json()["email"] == "alice@example.com"


def test_upload_extension_follows_content_type(client: TestClient):
    _, headers = signed_in(client, "alice")

    response = client.post(
        "/api/upload",
        files={"file": ("evil.html", b"<script>alert(1)</script>", "image/png")},
        data={"type": "avatar"},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    url = response.json()["url"]
    assert url.startswith("/media/avatars/")
    assert url.endswith(".png")


def test_rate_limit_ignores_forwarded_for_by_default(client: TestClient, monkeypatch):
    monkeypatch.setattr(main.settings, "api_rate_limit_requests", 3)

    statuses = [
        client.get("/api/", headers={"X-Forwarded-For": f"10.0.0.{index}"}).status_code for index in range(4)
    ]

    assert statuses == [200, 200, 200, 429]


def test_rate_limit_uses_forwarded_for_behind_trusted_proxy(client: TestClient, monkeypatch):
    monkeypatch.setattr(main.settings, "api_rate_limit_requests", 1)
    monkeypatch.setattr(main.settings, "trust_forwarded_for", True)

    first = client.get("/api/", headers={"X-Forwarded-For": "10.0.0.1, 172.16.0.1"})
    second = client.get("/api/", headers={"X-Forwarded-For": "10.0.0.2"})
    repeat = client.get("/api/", headers={"X-Forwarded-For": "10.0.0.1"})

    assert [first.status_code, second.status_code, repeat.status_code] == [200, 200, 429]
