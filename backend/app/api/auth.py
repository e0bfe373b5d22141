"""Authentication API endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.core.security import (
    access_token_lifetime,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from app.core.storage import delete_stored_file
from app.database import get_db
from app.models import PresenceStatus, User, utcnow
from app.schemas import (
    CompleteProfileRequest,
    CredentialsUpdate,
    CurrentUserRead,
    LoginRequest,
    PasswordConfirmation,
    RefreshRequest,
    RegisterRequest,
    Token,
)
from app.services import message_store
from app.services import users as user_service

router = APIRouter()

logger = logging.getLogger(__name__)


def _issue_token(db: Session, user: User) -> Token:
    """Mint an access and refresh token pair, replacing the stored refresh token."""

    lifetime = access_token_lifetime()
    claims = {"sub": str(user.id)}
    user.refresh_token = create_refresh_token(claims)
    db.commit()
    return Token(
        access_token=create_access_token(claims, expires_delta=lifetime),
        token_type="bearer",
        expires_in=int(lifetime.total_seconds()),
        refresh_token=user.refresh_token,
        username=user.username,
    )


def _current_user_read(db: Session, user: User) -> CurrentUserRead:
    return CurrentUserRead.model_validate(user).model_copy(
        update={"message_count": message_store.count_by_author(db, user.id)}
    )


def _ensure_email_free(db: Session, email: str, *, owner_id: int | None = None) -> None:
    existing = user_service.get_user_by_email(db, email)
    if existing is not None and existing.id != owner_id:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already in use")


@router.post("/register", response_model=CurrentUserRead, status_code=status.HTTP_201_CREATED)
def register_user(payload: RegisterRequest, db: Session = Depends(get_db)) -> CurrentUserRead:
    """Register a new account with e-mail and password."""

    _ensure_email_free(db, payload.email)
    if user_service.get_user_by_username(db, payload.username) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username is already taken")

    user = User(
        username=payload.username,
        display_name=payload.display_name or payload.username,
        email=payload.email.lower(),
        password_hash=get_password_hash(payload.password),
        status=PresenceStatus.OFFLINE,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered account %s", user.username)
    return _current_user_read(db, user)


@router.post("/login", response_model=Token)
def login_user(credentials: LoginRequest, db: Session = Depends(get_db)) -> Token:
    """Authenticate by e-mail and password and return a bearer token.

    Logging in lifts a self-imposed suspension.
    """

    user = user_service.get_user_by_email(db, credentials.email)
    if user is None or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    if user.is_suspended:
        logger.info("Reactivating suspended account %s", user.username)
        user.is_suspended = False
        user.suspended_at = None
    now = utcnow()
    user.last_login = now
    user.last_seen = now
    user.status = PresenceStatus.ONLINE
    return _issue_token(db, user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout_user(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> None:
    current_user.refresh_token = None
    user_service.set_status(db, current_user.id, PresenceStatus.OFFLINE)


@router.get("/me", response_model=CurrentUserRead)
def read_current_user(
    current_user: User = Depends(get_current_user), db: Session = Depends(get_db)
) -> CurrentUserRead:
    return _current_user_read(db, current_user)


@router.post("/refresh", response_model=Token)
def refresh_access_token(payload: RefreshRequest, db: Session = Depends(get_db)) -> Token:
    """Exchange a refresh token for a new token pair.

    Refresh tokens are single use: only the one issued last for the account is accepted.
    """

    claims = decode_token(payload.refresh_token)
    user = None
    if claims.get("type") == "refresh":
        try:
            user = db.get(User, int(claims.get("sub")))
        except (TypeError, ValueError):
            user = None
    if user is None or user.is_suspended or user.refresh_token != payload.refresh_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    return _issue_token(db, user)


@router.patch("/complete-profile", response_model=Token)
def complete_profile(
    payload: CompleteProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Token:
    """Attach an e-mail and password to the caller's ghost account.

    A ghost has no credentials of its own; the bearer token is the ``claim_token``
    handed to the chat connection that created it.
    """

    if not current_user.is_ghost:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Profile is already complete")
    _ensure_email_free(db, payload.email)

    current_user.email = payload.email.lower()
    current_user.password_hash = get_password_hash(payload.password)
    current_user.last_login = utcnow()
    logger.info("Ghost account %s completed its profile", current_user.username)
    return _issue_token(db, current_user)


@router.patch("/credentials", response_model=CurrentUserRead)
def update_credentials(
    payload: CredentialsUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CurrentUserRead:
    if current_user.is_ghost:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Account has no credentials yet")
    if not verify_password(payload.current_password, current_user.password_hash):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Incorrect password")
    if payload.email is None and payload.new_password is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    if payload.email is not None:
        _ensure_email_free(db, payload.email, owner_id=current_user.id)
        current_user.email = payload.email.lower()
    if payload.new_password is not None:
        current_user.password_hash = get_password_hash(payload.new_password)
    db.commit()
    db.refresh(current_user)
    return _current_user_read(db, current_user)


@router.post("/suspend", status_code=status.HTTP_204_NO_CONTENT)
def suspend_account(
    payload: PasswordConfirmation,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    """Hide the account until its owner logs in again."""

    if not verify_password(payload.password, current_user.password_hash):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Incorrect password")
    current_user.is_suspended = True
    current_user.suspended_at = utcnow()
    current_user.status = PresenceStatus.OFFLINE
    db.commit()


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(
    payload: PasswordConfirmation,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    """Delete the account together with its messages and stored files."""

    if not verify_password(payload.password, current_user.password_hash):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Incorrect password")

    references = message_store.attachment_refs_for_author(db, current_user.id)
    references.extend(ref for ref in (current_user.avatar_ref, current_user.banner_ref) if ref)
    username = current_user.username
    db.delete(current_user)
    db.commit()

    for reference in references:
        try:
            delete_stored_file(reference)
        except OSError:
            logger.warning("Failed to remove %s of deleted account %s", reference, username, exc_info=True)
    logger.info("Deleted account %s", username)
