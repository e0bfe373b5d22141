"""User directory and profile endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.config import get_settings
from app.core.storage import delete_stored_file, store_profile_image
from app.database import get_db
from app.models import User
from app.schemas import MessageRead, PublicUser, UserProfileRead, UserProfileUpdate
from app.services import message_store
from app.services import users as user_service

router = APIRouter(prefix="/users", tags=["users"])
settings = get_settings()

logger = logging.getLogger(__name__)


@router.get("", response_model=list[PublicUser])
def list_users(db: Session = Depends(get_db)) -> list[User]:
    return user_service.list_users(db)


@router.patch("/me", response_model=UserProfileRead)
def update_profile(
    payload: UserProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserProfileRead:
    """Apply a partial profile update to the authenticated user."""

    user = user_service.apply_profile_update(db, current_user, payload)
    return user_service.build_profile(db, user)


async def _replace_profile_image(
    kind: str, upload: UploadFile, current_user: User, db: Session
) -> UserProfileRead:
    stored = await store_profile_image(current_user.id, kind, upload)
    column = f"{kind}_ref"
    previous = getattr(current_user, column)
    setattr(current_user, column, stored.reference)
    db.commit()
    db.refresh(current_user)
    if previous:
        try:
            delete_stored_file(previous)
        except OSError:
            logger.warning("Failed to remove previous %s %s", kind, previous, exc_info=True)
    return user_service.build_profile(db, current_user)


@router.post("/me/avatar", response_model=UserProfileRead)
async def upload_avatar(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserProfileRead:
    return await _replace_profile_image("avatar", file, current_user, db)


@router.post("/me/banner", response_model=UserProfileRead)
async def upload_banner(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserProfileRead:
    return await _replace_profile_image("banner", file, current_user, db)


@router.get("/{username}", response_model=UserProfileRead)
def read_profile(username: str, db: Session = Depends(get_db)) -> UserProfileRead:
    user = user_service.get_user_by_username(db, username, include_suspended=False)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user_service.build_profile(db, user)


@router.get("/{username}/messages", response_model=list[MessageRead])
def read_user_messages(
    username: str,
    limit: int | None = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[MessageRead]:
    return message_store.list_by_user(db, username, limit or settings.chat_query_default_limit)
