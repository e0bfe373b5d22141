"""Unit tests for authentication helpers and endpoints."""

from __future__ import annotations

import pytest
from fastapi import HTTPException

from app.api.auth import login_user, logout_user, refresh_access_token
from app.api.deps import get_user_from_token
from app.core.security import create_access_token, create_refresh_token, get_password_hash, verify_password
from app.models import PresenceStatus, User
from app.schemas import LoginRequest, RefreshRequest


@pytest.fixture()
def user(db_session):
    db_user = User(
        username="tester",
        email="tester@example.com",
        password_hash=get_password_hash("Supersecret1"),
        display_name="Tester",
    )
    db_session.add(db_user)
    db_session.commit()
    return db_user


def test_login_user_returns_token(db_session, user):
    """Successful login should return a bearer token and mark the user online."""

    credentials = LoginRequest(email="tester@example.com", password="Supersecret1")
    token = login_user(credentials, db_session)

    assert token.token_type == "bearer"
    assert token.username == "tester"
    assert isinstance(token.access_token, str) and token.access_token
    assert user.status is PresenceStatus.ONLINE
    assert user.last_login is not None


def test_login_user_rejects_invalid_credentials(db_session, user):
    """Invalid credentials must raise an HTTP 401 error."""

    credentials = LoginRequest(email="tester@example.com", password="doesnotmatter")
    with pytest.raises(HTTPException) as exc:
        login_user(credentials, db_session)

    assert exc.value.status_code == 401
    assert "Incorrect email" in exc.value.detail


def test_ghost_accounts_cannot_log_in(db_session):
    db_session.add(User(username="ghost", display_name="ghost", email="ghost@example.com"))
    db_session.commit()

    with pytest.raises(HTTPException) as exc:
        login_user(LoginRequest(email="ghost@example.com", password="anything"), db_session)

    assert exc.value.status_code == 401


def test_login_lifts_suspension(db_session, user):
    user.is_suspended = True
    db_session.commit()

    login_user(LoginRequest(email="tester@example.com", password="Supersecret1"), db_session)

    assert user.is_suspended is False
    assert user.suspended_at is None


def test_get_user_from_token(db_session, user):
    """Tokens should resolve to existing users."""

    token = create_access_token({"sub": str(user.id)})
    resolved = get_user_from_token(token, db_session)

    assert resolved.id == user.id
    assert resolved.username == user.username


def test_get_user_from_token_rejects_suspended_users(db_session, user):
    token = create_access_token({"sub": str(user.id)})
    user.is_suspended = True
    db_session.commit()

    with pytest.raises(HTTPException) as exc:
        get_user_from_token(token, db_session)

    assert exc.value.status_code == 401


def test_get_user_from_token_invalid_payload(db_session):
    """Invalid tokens must result in a 401 error."""

    with pytest.raises(HTTPException) as exc:
        get_user_from_token("invalid-token", db_session)

    assert exc.value.status_code == 401
    assert "Could not validate credentials" in exc.value.detail


def test_verify_password_handles_missing_hash():
    assert verify_password("anything", None) is False


def test_login_stores_the_issued_refresh_token(db_session, user):
    token = login_user(LoginRequest(email="tester@example.com", password="Supersecret1"), db_session)

    assert token.refresh_token
    assert user.refresh_token == token.refresh_token


def test_refresh_tokens_are_not_access_tokens(db_session, user):
    token = login_user(LoginRequest(email="tester@example.com", password="Supersecret1"), db_session)

    with pytest.raises(HTTPException) as exc:
        get_user_from_token(token.refresh_token, db_session)

    assert exc.value.status_code == 401


def test_refresh_rotates_the_token_pair(db_session, user):
    first = login_user(LoginRequest(email="tester@example.com", password="Supersecret1"), db_session)

    second = refresh_access_token(RefreshRequest(refresh_token=first.refresh_token), db_session)

    assert second.refresh_token != first.refresh_token
    assert get_user_from_token(second.access_token, db_session).id == user.id
    with pytest.raises(HTTPException) as exc:
        refresh_access_token(RefreshRequest(refresh_token=first.refresh_token), db_session)
    assert exc.value.status_code == 401


def test_refresh_rejects_access_tokens_and_unknown_refresh_tokens(db_session, user):
    login_user(LoginRequest(email="tester@example.com", password="Supersecret1"), db_session)

    for candidate in (create_access_token({"sub": str(user.id)}), create_refresh_token({"sub": str(user.id)})):
        with pytest.raises(HTTPException) as exc:
            refresh_access_token(RefreshRequest(refresh_token=candidate), db_session)
        assert exc.value.status_code == 401


def test_logout_revokes_the_refresh_token(db_session, user):
    token = login_user(LoginRequest(email="tester@example.com", password="Supersecret1"), db_session)

    logout_user(user, db_session)

    assert user.refresh_token is None
    with pytest.raises(HTTPException):
        refresh_access_token(RefreshRequest(refresh_token=token.refresh_token), db_session)
