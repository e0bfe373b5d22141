"""Presence registry mapping live connections to chat identities."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from app.models import PresenceStatus
from app.services import users as user_service

logger = logging.getLogger(__name__)


class PresenceError(Exception):
    """Raised when a connection may not take the requested identity."""


@dataclass(slots=True, frozen=True)
class UserIdentity:
    user_id: int
    username: str
    display_name: str
    # Set when this join created the ghost account
    new_account: bool = field(default=False, compare=False)


class PresenceRegistry:
    """Connection id to identity map, mirrored into the durable user status.

    The in-memory map is authoritative for who is connected right now. The
    durable ``status`` column is a best-effort reflection of it.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory
        self._entries: Dict[str, UserIdentity] = {}
        self._lock = asyncio.Lock()

    def _load_identity(self, username: str) -> UserIdentity:
        with self._session_factory() as db:
            user, created = user_service.get_or_create_user(db, username)
            if user.is_suspended:
                raise PresenceError("This account is suspended")
            return UserIdentity(
                user_id=user.id,
                username=user.username,
                display_name=user.public_name,
                new_account=created,
            )

    def _write_status(self, user_id: int, status: PresenceStatus) -> None:
        with self._session_factory() as db:
            user_service.set_status(db, user_id, status)

    async def join(self, connection_id: str, username: str) -> UserIdentity:
        """Bind *connection_id* to *username*, creating a ghost account if needed.

        Failing to load or create the user propagates. Failing to mark the user
        online is logged and the connection stays registered.
        """

        identity = await run_in_threadpool(self._load_identity, username)
        async with self._lock:
            self._entries[connection_id] = identity
        try:
            await run_in_threadpool(self._write_status, identity.user_id, PresenceStatus.ONLINE)
        except SQLAlchemyError:
            logger.warning("Could not mark %s online", identity.username, exc_info=True)
        return identity

    def lookup(self, connection_id: str) -> UserIdentity | None:
        return self._entries.get(connection_id)

    async def leave(self, connection_id: str) -> UserIdentity | None:
        """Forget *connection_id*; repeated calls return ``None``.

        The durable status flips to offline only once the user's last live
        connection is gone.
        """

        async with self._lock:
            identity = self._entries.pop(connection_id, None)
            if identity is None:
                return None
            still_connected = any(
                entry.user_id == identity.user_id for entry in self._entries.values()
            )

        if not still_connected:
            try:
                await run_in_threadpool(self._write_status, identity.user_id, PresenceStatus.OFFLINE)
            except SQLAlchemyError:
                logger.warning("Could not mark %s offline", identity.username, exc_info=True)
        return identity

    def count(self) -> int:
        return len(self._entries)

    async def connections_for(self, username: str) -> list[str]:
        async with self._lock:
            return [
                connection_id
                for connection_id, identity in self._entries.items()
                if identity.username == username
            ]

    def _reset(self) -> int:
        with self._session_factory() as db:
            return user_service.reset_presence(db)

    async def reset_durable_presence(self) -> int:
        """Mark every stored user offline; nobody is connected to a fresh process."""

        reset = await run_in_threadpool(self._reset)
        if reset:
            logger.info("Marked %s stale user(s) offline", reset)
        return reset
