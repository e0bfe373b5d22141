"""Creation and removal of chat messages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session, sessionmaker

from app.config import get_settings
from app.core.storage import delete_stored_file, is_attachment_reference
from app.models import utcnow
from app.monitoring.metrics import messages_created_total, messages_deleted_total
from app.schemas import MessageOptions, MessageRead
from app.services import message_store
from app.services.mentions import extract_mentions, validate_mentions

settings = get_settings()

logger = logging.getLogger(__name__)

DELETE_REFUSED = "Message not found or not owned by you"


class MessageValidationError(ValueError):
    """Raised when a new message violates the content rules."""


@dataclass(slots=True)
class DeleteResult:
    """Outcome of an owner-restricted delete."""

    removed: bool
    message_id: int
    error: str | None = None


class MessageLifecycleManager:
    """Apply the message rules and persist the outcome.

    Every method opens its own short session and performs blocking I/O, so
    async callers are expected to run them in a worker thread.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        remove_blob: Callable[[str], object] = delete_stored_file,
        clock: Callable[[], datetime] = utcnow,
        max_length: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._remove_blob = remove_blob
        self._clock = clock
        self._max_length = max_length if max_length is not None else settings.chat_message_max_length

    def _validate(self, text: str, options: MessageOptions) -> None:
        if len(text) > self._max_length:
            raise MessageValidationError(
                f"Message exceeds maximum length of {self._max_length} characters"
            )
        if not text.strip() and not options.attachment_ref and not options.gif_url:
            raise MessageValidationError("Message must contain text, an attachment or a GIF")
        if options.attachment_ref and options.attachment_kind is None:
            raise MessageValidationError("attachment_kind is required with attachment_ref")
        if options.attachment_ref and not is_attachment_reference(options.attachment_ref):
            raise MessageValidationError(
                "attachment_ref must be a reference returned by the upload endpoint"
            )

    def create(
        self,
        author_id: int,
        author_username: str,
        text: str,
        options: MessageOptions | None = None,
    ) -> MessageRead:
        """Persist a message and return it enriched with author fields."""

        options = options or MessageOptions()
        text = text or ""
        self._validate(text, options)

        created_at = self._clock()
        expires_at = None
        if options.attachment_ref and options.expires_in_hours is not None:
            try:
                expires_at = created_at + timedelta(hours=options.expires_in_hours)
            except (OverflowError, ValueError) as exc:
                raise MessageValidationError("expires_in_hours is out of range") from exc

        with self._session_factory() as db:
            if options.attachment_ref and message_store.attachment_in_use(db, options.attachment_ref):
                raise MessageValidationError("Attachment is already used by another message")
            mentions = validate_mentions(extract_mentions(text), db)
            try:
                message = message_store.insert_message(
                    db,
                    author_id=author_id,
                    text=text,
                    options=options,
                    mentions=mentions,
                    created_at=created_at,
                    attachment_expires_at=expires_at,
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
            enriched = message_store.get_enriched(db, message.id)

        messages_created_total.inc()
        logger.debug("Stored message %s from %s", enriched.id, author_username)
        return enriched

    def delete_owned(self, message_id: int, requesting_user_id: int) -> DeleteResult:
        """Delete a message if and only if the requester authored it.

        A missing message and a message owned by someone else produce the same
        refusal. The attachment blob is removed by the winning delete only, after
        the row is gone; blob failures are logged and do not undo the delete.
        """

        with self._session_factory() as db:
            try:
                owned, attachment_ref = message_store.find_owned_attachment(
                    db, message_id, requesting_user_id
                )
                removed = owned and message_store.delete_owned(db, message_id, requesting_user_id)
                db.commit()
            except Exception:
                db.rollback()
                raise

        if not removed:
            return DeleteResult(removed=False, message_id=message_id, error=DELETE_REFUSED)

        messages_deleted_total.inc()
        if attachment_ref:
            try:
                self._remove_blob(attachment_ref)
            except OSError:
                logger.warning(
                    "Failed to remove attachment %s of deleted message %s",
                    attachment_ref,
                    message_id,
                    exc_info=True,
                )
        return DeleteResult(removed=True, message_id=message_id)

    def list_recent(self, limit: int | None = None) -> list[MessageRead]:
        with self._session_factory() as db:
            return message_store.list_recent(db, limit or settings.chat_history_limit)

    def search(self, query: str, limit: int | None = None) -> list[MessageRead]:
        with self._session_factory() as db:
            return message_store.search(db, query, limit or settings.chat_query_default_limit)

    def list_by_user(self, username: str, limit: int | None = None) -> list[MessageRead]:
        with self._session_factory() as db:
            return message_store.list_by_user(db, username, limit or settings.chat_query_default_limit)

    def stats(self, top: int | None = None) -> tuple[int, list[tuple[str, str | None, int]]]:
        """Total message count and the most prolific ``(username, name, count)`` authors."""

        with self._session_factory() as db:
            total = message_store.count_messages(db)
            authors = message_store.top_authors(db, top or settings.stats_top_authors)
        return total, authors
