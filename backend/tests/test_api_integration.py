"""Integration tests exercising API endpoints via FastAPI's TestClient."""

from __future__ import annotations

from typing import Any

from fastapi.testclient import TestClient
from sqlalchemy import select

from app.models import AttachmentKind, Message, PresenceStatus, User

PASSWORD = "Wonderland1"


def register_user(
    client: TestClient,
    username: str,
    email: str,
    password: str = PASSWORD,
    display_name: str | None = None,
) -> dict[str, Any]:
    response = client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password, "display_name": display_name},
    )
    assert response.status_code == 201, response.text
    return response.json()


def login_user(client: TestClient, email: str, password: str = PASSWORD) -> str:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def add_message(session_factory, author_id: int, text: str, **fields: Any) -> int:
    with session_factory() as session:
        message = Message(author_id=author_id, text=text, **fields)
        session.add(message)
        session.commit()
        return message.id


def test_register_and_login_flow(client: TestClient):
    data = register_user(client, "alice", "alice@example.com", display_name="Alice")
    assert data["username"] == "alice"
    assert data["display_name"] == "Alice"
    assert data["is_ghost"] is False

    token = login_user(client, "ALICE@example.com")
    me = client.get("/api/auth/me", headers=auth_headers(token))
    assert me.status_code == 200
    assert me.json()["email"] == "alice@example.com"
    assert me.json()["status"] == "online"


def test_register_rejects_duplicates_and_weak_passwords(client: TestClient):
    register_user(client, "alice", "alice@example.com")

    same_name = client.post(
        "/api/auth/register",
        json={"username": "alice", "email": "other@example.com", "password": PASSWORD},
    )
    same_email = client.post(
        "/api/auth/register",
        json={"username": "other", "email": "alice@example.com", "password": PASSWORD},
    )
    weak = client.post(
        "/api/auth/register",
        json={"username": "weakling", "email": "weak@example.com", "password": "alllowercase"},
    )

    assert same_name.status_code == 409
    assert same_email.status_code == 409
    assert weak.status_code == 422


def test_login_rejects_bad_password(client: TestClient):
    register_user(client, "alice", "alice@example.com")

    response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "Wrong1234"})

    assert response.status_code == 401


def test_ghost_account_is_claimed_with_the_token_from_its_first_join(client: TestClient):
    with client.websocket_connect("/ws/chat") as creator:
        creator.send_json({"type": "join", "username": "drifter"})
        claim_token = creator.receive_json()["claim_token"]
        creator.receive_json()
    with client.websocket_connect("/ws/chat") as latecomer:
        latecomer.send_json({"type": "join", "username": "drifter"})
        assert "claim_token" not in latecomer.receive_json()

    payload = {"email": "drifter@example.com", "password": PASSWORD}
    anonymous = client.patch("/api/auth/complete-profile", json=payload)
    first = client.patch("/api/auth/complete-profile", json=payload, headers=auth_headers(claim_token))
    second = client.patch("/api/auth/complete-profile", json=payload, headers=auth_headers(claim_token))

    assert anonymous.status_code == 401
    assert first.status_code == 200
    assert first.json()["username"] == "drifter"
    assert second.status_code == 409
    login_user(client, "drifter@example.com")


def test_refresh_token_flow(client: TestClient):
    register_user(client, "alice", "alice@example.com")
    issued = client.post("/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD}).json()

    refreshed = client.post("/api/auth/refresh", json={"refresh_token": issued["refresh_token"]})
    assert refreshed.status_code == 200
    tokens = refreshed.json()
    assert client.get("/api/auth/me", headers=auth_headers(tokens["access_token"])).status_code == 200
    assert client.get("/api/auth/me", headers=auth_headers(tokens["refresh_token"])).status_code == 401

    reused = client.post("/api/auth/refresh", json={"refresh_token": issued["refresh_token"]})
    assert reused.status_code == 401

    assert client.post("/api/auth/logout", headers=auth_headers(tokens["access_token"])).status_code == 204
    after_logout = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert after_logout.status_code == 401


def test_update_credentials_requires_current_password(client: TestClient):
    register_user(client, "alice", "alice@example.com")
    token = login_user(client, "alice@example.com")

    refused = client.patch(
        "/api/auth/credentials",
        json={"current_password": "Nope12345", "email": "new@example.com"},
        headers=auth_headers(token),
    )
    accepted = client.patch(
        "/api/auth/credentials",
        json={"current_password": PASSWORD, "email": "new@example.com", "new_password": "Different2"},
        headers=auth_headers(token),
    )

    assert refused.status_code == 403
    assert accepted.status_code == 200
    assert accepted.json()["email"] == "new@example.com"
    login_user(client, "new@example.com", "Different2")


def test_suspension_hides_account_until_next_login(client: TestClient, session_factory):
    register_user(client, "alice", "alice@example.com")
    token = login_user(client, "alice@example.com")

    response = client.post("/api/auth/suspend", json={"password": PASSWORD}, headers=auth_headers(token))
    assert response.status_code == 204
    assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401
    assert client.get("/api/users/alice").status_code == 404

    token = login_user(client, "alice@example.com")
    assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 200
    with session_factory() as session:
        assert session.execute(select(User.is_suspended).where(User.username == "alice")).scalar_one() is False


def test_delete_account_cascades_messages(client: TestClient, session_factory):
    created = register_user(client, "alice", "alice@example.com")
    token = login_user(client, "alice@example.com")
    add_message(session_factory, created["id"], "soon gone")

    wrong = client.request(
        "DELETE", "/api/auth/me", json={"password": "Wrong1234"}, headers=auth_headers(token)
    )
    assert wrong.status_code == 403

    response = client.request("DELETE", "/api/auth/me", json={"password": PASSWORD}, headers=auth_headers(token))
    assert response.status_code == 204
    with session_factory() as session:
        assert session.execute(select(Message)).first() is None
        assert session.execute(select(User)).first() is None


def test_profile_update_applies_only_provided_fields(client: TestClient):
    register_user(client, "alice", "alice@example.com", display_name="Alice")
    token = login_user(client, "alice@example.com")
    headers = auth_headers(token)

    client.patch("/api/users/me", json={"bio": "hello", "custom_color": "#00ff00"}, headers=headers)
    response = client.patch("/api/users/me", json={"status": "busy"}, headers=headers)

    body = response.json()
    assert response.status_code == 200
    assert body["bio"] == "hello"
    assert body["custom_color"] == "#00ff00"
    assert body["status"] == "busy"
    assert body["display_name"] == "Alice"

    cleared = client.patch("/api/users/me", json={"bio": None}, headers=headers).json()
    assert cleared["bio"] is None
    assert cleared["custom_color"] == "#00ff00"


def test_profile_update_validates_colour(client: TestClient):
    register_user(client, "alice", "alice@example.com")
    token = login_user(client, "alice@example.com")

    response = client.patch("/api/users/me", json={"custom_color": "red"}, headers=auth_headers(token))

    assert response.status_code == 422


def test_profile_includes_message_count(client: TestClient, session_factory, make_user):
    alice = make_user("alice")
    add_message(session_factory, alice, "one")
    add_message(session_factory, alice, "two")

    response = client.get("/api/users/alice")

    assert response.status_code == 200
    assert response.json()["message_count"] == 2
    assert response.json()["is_ghost"] is True
    assert client.get("/api/users/nobody").status_code == 404


def test_message_reads_and_search(client: TestClient, session_factory, make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    add_message(session_factory, alice, "the quick fox", mentions='["bob"]')
    add_message(session_factory, bob, "lazy dog")

    recent = client.get("/api/messages").json()
    assert [m["text"] for m in recent] == ["the quick fox", "lazy dog"]
    assert recent[0]["mentions"] == ["bob"]

    found = client.get("/api/messages/search", params={"q": "fox"}).json()
    assert [m["username"] for m in found] == ["alice"]

    by_user = client.get("/api/users/bob/messages").json()
    assert [m["text"] for m in by_user] == ["lazy dog"]


def test_http_delete_enforces_ownership_and_notifies_sockets(client: TestClient, session_factory, make_user):
    alice = make_user("alice")
    make_user("bob")
    message_id = add_message(session_factory, alice, "mine")

    with client.websocket_connect("/ws/chat") as watcher:
        watcher.send_json({"type": "join", "username": "watcher"})
        assert watcher.receive_json()["type"] == "history"
        assert watcher.receive_json()["type"] == "user-joined"

        refused = client.request("DELETE", f"/api/messages/{message_id}", json={"username": "bob"})
        assert refused.status_code == 404

        response = client.request("DELETE", f"/api/messages/{message_id}", json={"username": "alice"})
        assert response.status_code == 200
        assert response.json() == {"success": True, "message_id": message_id, "error": None}
        assert watcher.receive_json() == {"type": "message-deleted", "message_id": message_id}

    again = client.request("DELETE", f"/api/messages/{message_id}", json={"username": "alice"})
    assert again.status_code == 404


def test_attachment_upload_and_serving(client: TestClient, media_root):
    response = client.post(
        "/api/messages/attachment",
        files={"file": ("cat.png", b"\x89PNG fake image", "image/png")},
    )

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["attachment_kind"] == "image"
    assert body["attachment_ref"].startswith("/uploads/")

    served = client.get(body["attachment_ref"])
    assert served.status_code == 200
    assert served.content == b"\x89PNG fake image"
    assert len(list(media_root.iterdir())) == 1


def test_attachment_upload_rejects_unsupported_types(client: TestClient):
    response = client.post(
        "/api/messages/attachment",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )

    assert response.status_code == 415


def test_attachment_upload_enforces_size_limit(client: TestClient, monkeypatch, media_root):
    from app.config import get_settings

    monkeypatch.setattr(get_settings(), "max_upload_size", 8)
    response = client.post(
        "/api/messages/attachment",
        files={"file": ("clip.mp4", b"0123456789", "video/mp4")},
    )

    assert response.status_code == 413
    assert list(media_root.iterdir()) == []


def test_avatar_upload_replaces_previous_file(client: TestClient, media_root):
    register_user(client, "alice", "alice@example.com")
    headers = auth_headers(login_user(client, "alice@example.com"))

    first = client.post(
        "/api/users/me/avatar", files={"file": ("a.png", b"first", "image/png")}, headers=headers
    ).json()
    second = client.post(
        "/api/users/me/avatar", files={"file": ("b.png", b"second", "image/png")}, headers=headers
    ).json()

    assert first["avatar_url"] != second["avatar_url"]
    assert [path.read_bytes() for path in media_root.iterdir()] == [b"second"]

    video = client.post(
        "/api/users/me/banner", files={"file": ("b.mp4", b"video", "video/mp4")}, headers=headers
    )
    assert video.status_code == 400


def test_members_and_stats(client: TestClient, session_factory, make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    make_user("carol", is_suspended=True)
    for _ in range(3):
        add_message(session_factory, alice, "hi")
    add_message(session_factory, bob, "hello")

    members = client.get("/api/members").json()
    counts = {member["username"]: member["message_count"] for member in members}
    assert counts == {"alice": 3, "bob": 1}

    stats = client.get("/api/stats").json()
    assert stats["total_users"] == 2
    assert stats["online_users"] == 0
    assert stats["total_messages"] == 4
    assert [entry["username"] for entry in stats["top_users"]] == ["alice", "bob"]


def test_startup_marks_stale_users_offline(session_factory, gateway, media_root, make_user):
    from app.main import app

    make_user("alice", status=PresenceStatus.ONLINE)

    with TestClient(app):
        pass

    with session_factory() as session:
        status = session.execute(select(User.status).where(User.username == "alice")).scalar_one()
    assert status is PresenceStatus.OFFLINE


def test_health_and_metrics(client: TestClient, session_factory, make_user):
    assert client.get("/health").json()["status"] == "ok"
    assert client.get("/api/health").status_code == 200

    with client.websocket_connect("/ws/chat") as connection:
        connection.send_json({"type": "join", "username": "metered"})
        connection.receive_json()
        connection.receive_json()
        connection.send_json({"type": "send", "text": "count me"})
        connection.receive_json()

    body = client.get("/metrics").text
    assert "# TYPE chat_messages_created_total counter" in body
    assert 'realtime_events_total{direction="in",event="send"}' in body
    assert "realtime_active_connections" in body


def test_attachment_message_with_expiry_via_socket(client: TestClient, session_factory):
    upload = client.post(
        "/api/messages/attachment",
        files={"file": ("cat.gif", b"GIF89a", "image/gif")},
    ).json()

    with client.websocket_connect("/ws/chat") as connection:
        connection.send_json({"type": "join", "username": "alice"})
        connection.receive_json()
        connection.receive_json()
        connection.send_json(
            {
                "type": "send",
                "text": "",
                "attachment_ref": upload["attachment_ref"],
                "attachment_kind": upload["attachment_kind"],
                "expires_in_hours": 1,
            }
        )
        message = connection.receive_json()["message"]

    assert message["attachment_kind"] == AttachmentKind.IMAGE.value
    assert message["attachment_expires_at"] is not None
