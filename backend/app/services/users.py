"""Durable user records: ghost accounts, presence status and profile edits."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import PresenceStatus, User, utcnow
from app.schemas import MemberRead, UserProfileRead, UserProfileUpdate
from app.services import message_store

logger = logging.getLogger(__name__)


def get_user_by_username(db: Session, username: str, *, include_suspended: bool = True) -> User | None:
    stmt = select(User).where(User.username == username)
    if not include_suspended:
        stmt = stmt.where(User.is_suspended.is_(False))
    return db.execute(stmt).scalar_one_or_none()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(func.lower(User.email) == email.lower())).scalar_one_or_none()


def get_or_create_user(db: Session, username: str) -> tuple[User, bool]:
    """Return the user called *username* and whether this call created it as a ghost."""

    user = get_user_by_username(db, username)
    if user is not None:
        return user, False
    user = User(
        username=username,
        display_name=username,
        status=PresenceStatus.OFFLINE,
        last_seen=utcnow(),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Another connection created the same username first
        db.rollback()
        return db.execute(select(User).where(User.username == username)).scalar_one(), False
    db.refresh(user)
    logger.info("Created ghost account for %s", username)
    return user, True


def set_status(db: Session, user_id: int, status: PresenceStatus) -> None:
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(status=status, last_seen=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()


def reset_presence(db: Session) -> int:
    """Mark every non-offline user offline; used once at process start."""

    result = db.execute(
        update(User)
        .where(User.status != PresenceStatus.OFFLINE)
        .values(status=PresenceStatus.OFFLINE)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0


def apply_profile_update(db: Session, user: User, payload: UserProfileUpdate) -> User:
    """Merge the explicitly provided fields into the stored profile."""

    changes: dict[str, Any] = payload.model_dump(include=payload.model_fields_set)
    if "display_name" in changes and changes["display_name"] is None:
        changes["display_name"] = user.username
    if "status" in changes and changes["status"] is None:
        changes.pop("status")
    for field_name, value in changes.items():
        setattr(user, field_name, value)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def build_profile(db: Session, user: User) -> UserProfileRead:
    profile = UserProfileRead.model_validate(user)
    return profile.model_copy(update={"message_count": message_store.count_by_author(db, user.id)})


def list_users(db: Session) -> list[User]:
    return list(
        db.execute(
            select(User).where(User.is_suspended.is_(False)).order_by(User.last_seen.desc(), User.id)
        ).scalars()
    )


def list_members(db: Session) -> list[MemberRead]:
    counts = message_store.message_counts_by_author(db)
    members: list[MemberRead] = []
    for user in list_users(db):
        member = MemberRead.model_validate(user)
        members.append(member.model_copy(update={"message_count": counts.get(user.id, 0)}))
    return members


def count_users(db: Session) -> int:
    return int(
        db.execute(select(func.count(User.id)).where(User.is_suspended.is_(False))).scalar_one()
    )
