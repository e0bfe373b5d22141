"""Chat specific queries against the durable message store."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Iterable, Sequence

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.orm import Session

from app.models import Message, User
from app.schemas import MessageOptions, MessageRead

logger = logging.getLogger(__name__)


def encode_mentions(mentions: Sequence[str]) -> str | None:
    return json.dumps(list(mentions)) if mentions else None


def parse_mentions(raw: str | None) -> list[str]:
    """Decode the stored mention list; malformed values read as empty."""

    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Discarding malformed mention list %r", raw)
        return []
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


def _enriched_select() -> Select:
    return select(
        Message,
        User.username,
        User.display_name,
        User.avatar_ref,
        User.custom_color,
    ).join(User, User.id == Message.author_id)


def _serialize(row) -> MessageRead:
    message, username, display_name, avatar_ref, custom_color = row
    return MessageRead(
        id=message.id,
        author_id=message.author_id,
        username=username,
        display_name=display_name,
        avatar_url=avatar_ref,
        custom_color=custom_color,
        text=message.text,
        has_markdown=message.has_markdown,
        attachment_ref=message.attachment_ref,
        attachment_kind=message.attachment_kind,
        attachment_expires_at=message.attachment_expires_at,
        gif_url=message.gif_url,
        mentions=parse_mentions(message.mentions),
        created_at=message.created_at,
    )


def _serialize_oldest_first(rows: Iterable) -> list[MessageRead]:
    return [_serialize(row) for row in reversed(list(rows))]


def insert_message(
    db: Session,
    *,
    author_id: int,
    text: str,
    options: MessageOptions,
    mentions: Sequence[str],
    created_at: datetime,
    attachment_expires_at: datetime | None,
) -> Message:
    """Stage a new message row and flush it to obtain the storage assigned id."""

    message = Message(
        author_id=author_id,
        text=text,
        has_markdown=options.has_markdown,
        attachment_ref=options.attachment_ref,
        attachment_kind=options.attachment_kind if options.attachment_ref else None,
        attachment_expires_at=attachment_expires_at,
        gif_url=options.gif_url,
        mentions=encode_mentions(mentions),
        created_at=created_at,
    )
    db.add(message)
    db.flush()
    return message


def get_enriched(db: Session, message_id: int) -> MessageRead | None:
    row = db.execute(_enriched_select().where(Message.id == message_id)).first()
    return _serialize(row) if row is not None else None


def list_recent(db: Session, limit: int) -> list[MessageRead]:
    """Return the last *limit* messages in ascending creation order."""

    rows = db.execute(_enriched_select().order_by(Message.id.desc()).limit(limit)).all()
    return _serialize_oldest_first(rows)


def search(db: Session, query: str, limit: int) -> list[MessageRead]:
    stmt = (
        _enriched_select()
        .where(Message.text.contains(query, autoescape=True))
        .order_by(Message.id.desc())
        .limit(limit)
    )
    return _serialize_oldest_first(db.execute(stmt).all())


def list_by_user(db: Session, username: str, limit: int) -> list[MessageRead]:
    stmt = (
        _enriched_select()
        .where(User.username == username)
        .order_by(Message.id.desc())
        .limit(limit)
    )
    return _serialize_oldest_first(db.execute(stmt).all())


def find_owned_attachment(db: Session, message_id: int, author_id: int) -> tuple[bool, str | None]:
    """Return whether an owned row exists and the attachment it references."""

    row = db.execute(
        select(Message.id, Message.attachment_ref).where(
            Message.id == message_id, Message.author_id == author_id
        )
    ).first()
    if row is None:
        return False, None
    return True, row.attachment_ref


def attachment_in_use(db: Session, reference: str) -> bool:
    return db.execute(
        select(Message.id).where(Message.attachment_ref == reference).limit(1)
    ).first() is not None


def delete_owned(db: Session, message_id: int, author_id: int) -> bool:
    """Delete a message only if *author_id* wrote it.

    The ownership check and the delete are one statement, so of two racing
    requests exactly one observes a removed row.
    """

    result = db.execute(
        delete(Message)
        .where(Message.id == message_id, Message.author_id == author_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def list_expired_attachments(db: Session, now: datetime) -> list[tuple[int, str | None]]:
    rows = db.execute(
        select(Message.id, Message.attachment_ref)
        .where(Message.attachment_expires_at.is_not(None), Message.attachment_expires_at < now)
        .order_by(Message.id)
    ).all()
    return [(row.id, row.attachment_ref) for row in rows]


def clear_expired_attachments(
    db: Session, expired: Sequence[tuple[int, str | None]], now: datetime
) -> list[tuple[int, str | None]]:
    """Null the attachment fields of each listed row whose expiry is still in the past.

    Every row is cleared by its own guarded update so only rows that still hold
    the listed attachment are reported back. Nothing is committed here.
    """

    cleared: list[tuple[int, str | None]] = []
    for message_id, reference in expired:
        stmt = update(Message).where(
            Message.id == message_id,
            Message.attachment_expires_at.is_not(None),
            Message.attachment_expires_at < now,
        )
        if reference is not None:
            stmt = stmt.where(Message.attachment_ref == reference)
        result = db.execute(
            stmt.values(attachment_ref=None, attachment_kind=None, attachment_expires_at=None)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            cleared.append((message_id, reference))
    return cleared


def attachment_refs_for_author(db: Session, author_id: int) -> list[str]:
    return list(
        db.execute(
            select(Message.attachment_ref).where(
                Message.author_id == author_id, Message.attachment_ref.is_not(None)
            )
        ).scalars()
    )


def count_messages(db: Session) -> int:
    return int(db.execute(select(func.count(Message.id))).scalar_one())


def count_by_author(db: Session, author_id: int) -> int:
    return int(
        db.execute(select(func.count(Message.id)).where(Message.author_id == author_id)).scalar_one()
    )


def top_authors(db: Session, limit: int) -> list[tuple[str, str | None, int]]:
    message_count = func.count(Message.id).label("message_count")
    rows = db.execute(
        select(User.username, User.display_name, message_count)
        .join(Message, Message.author_id == User.id)
        .group_by(User.id, User.username, User.display_name)
        .order_by(message_count.desc(), User.username)
        .limit(limit)
    ).all()
    return [(row.username, row.display_name, int(row.message_count)) for row in rows]


def message_counts_by_author(db: Session) -> dict[int, int]:
    rows = db.execute(
        select(Message.author_id, func.count(Message.id)).group_by(Message.author_id)
    ).all()
    return {author_id: int(count) for author_id, count in rows}
