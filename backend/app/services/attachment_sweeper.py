"""Periodic retraction of expired message attachments."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from app.core.storage import delete_stored_file
from app.models import utcnow
from app.monitoring.metrics import attachment_sweep_failures_total, attachments_expired_total
from app.services import message_store

logger = logging.getLogger(__name__)


def sweep_expired_attachments(
    db: Session,
    *,
    now: datetime | None = None,
    remove_blob: Callable[[str], object] = delete_stored_file,
) -> list[int]:
    """Clear the attachment fields of expired messages, then remove their blobs.

    The guarded update is committed before any blob is touched, and only rows it
    actually cleared lose their blob. Returns the ids of those messages. A blob
    that cannot be removed is logged; its row stays cleared.
    """

    now = now or utcnow()
    expired = message_store.list_expired_attachments(db, now)
    if not expired:
        return []

    try:
        cleared = message_store.clear_expired_attachments(db, expired, now)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    for message_id, reference in cleared:
        if not reference:
            continue
        try:
            remove_blob(reference)
        except OSError:
            logger.warning(
                "Failed to remove expired attachment %s of message %s",
                reference,
                message_id,
                exc_info=True,
            )

    if cleared:
        attachments_expired_total.inc(len(cleared))
        logger.info("Cleared %s expired attachment(s)", len(cleared))
    return [message_id for message_id, _ in cleared]


class AttachmentSweeper:
    """Run :func:`sweep_expired_attachments` on a fixed interval."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        interval_seconds: float,
        on_cleared: Callable[[Sequence[int]], Awaitable[None]] | None = None,
        remove_blob: Callable[[str], object] = delete_stored_file,
    ) -> None:
        self._session_factory = session_factory
        self._interval = float(interval_seconds)
        self._on_cleared = on_cleared
        self._remove_blob = remove_blob
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _sweep_once(self) -> list[int]:
        with self._session_factory() as db:
            return sweep_expired_attachments(db, remove_blob=self._remove_blob)

    async def run_once(self) -> list[int]:
        cleared = await run_in_threadpool(self._sweep_once)
        if cleared and self._on_cleared is not None:
            await self._on_cleared(cleared)
        return cleared

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except (SQLAlchemyError, OSError):
                attachment_sweep_failures_total.inc()
                logger.exception("Attachment sweep failed; retrying in %ss", self._interval)

    async def start(self) -> None:
        if self._interval <= 0:
            logger.info("Attachment sweeper disabled")
            return
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="attachment-sweeper")
        logger.info("Attachment sweeper started with %ss interval", self._interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
