"""Per-connection event handling for the chat websocket."""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Sequence

from fastapi.websockets import WebSocket
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from app.core.security import create_access_token
from app.monitoring.metrics import realtime_events_total
from app.schemas import MessageRead, MessageSendPayload
from app.services.message_lifecycle import MessageLifecycleManager, MessageValidationError

from .connections import ConnectionManager, safe_send_json
from .presence import PresenceError, PresenceRegistry, UserIdentity

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[A-Za-z0-9_-]{1,32}$")


class ConnectionState(str, Enum):
    ANONYMOUS = "anonymous"
    IDENTIFIED = "identified"
    CLOSED = "closed"


@dataclass(slots=True)
class ClientConnection:
    """Server-side state of one websocket."""

    websocket: WebSocket
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: ConnectionState = ConnectionState.ANONYMOUS
    # Username proven by a bearer token at connect time, if any
    bound_username: str | None = None


def event(event_type: str, **payload: Any) -> dict[str, Any]:
    return {"type": event_type, **payload}


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid payload"
    error = errors[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = str(error.get("msg", "Invalid payload"))
    return f"{location}: {message}" if location else message


class RealtimeGateway:
    """Validate inbound events, apply them and fan the results out."""

    def __init__(
        self,
        *,
        connections: ConnectionManager,
        registry: PresenceRegistry,
        lifecycle: MessageLifecycleManager,
        history_limit: int = 100,
        mention_delivery: Literal["broadcast", "direct"] = "broadcast",
    ) -> None:
        self.connections = connections
        self.registry = registry
        self.lifecycle = lifecycle
        self._history_limit = history_limit
        self._mention_delivery = mention_delivery
        # Held across persist + broadcast so fan-out order matches commit order
        self._send_lock = asyncio.Lock()
        self._handlers = {
            "send": self._on_send,
            "typing": self._on_typing,
            "stop-typing": self._on_stop_typing,
            "delete": self._on_delete,
        }

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def open(self, websocket: WebSocket, *, bound_username: str | None = None) -> ClientConnection:
        client = ClientConnection(websocket=websocket, bound_username=bound_username)
        await self.connections.connect(client.connection_id, websocket)
        return client

    async def close(self, client: ClientConnection) -> None:
        if client.state is ConnectionState.CLOSED:
            return
        client.state = ConnectionState.CLOSED
        await self.connections.disconnect(client.connection_id)
        identity = await self.registry.leave(client.connection_id)
        if identity is not None:
            await self._broadcast(
                event("user-left", username=identity.display_name, live_count=self.registry.count())
            )

    async def handle_event(self, client: ClientConnection, payload: dict[str, Any]) -> None:
        event_type = payload.get("type")
        if not isinstance(event_type, str):
            await self._send_error(client, "Event type is required")
            return
        if event_type == "ping":
            await self._send(client, event("pong"))
            return
        if event_type == "pong":
            return

        if event_type == "join":
            realtime_events_total.labels("in", event_type).inc()
            await self._on_join(client, payload)
            return

        handler = self._handlers.get(event_type)
        if handler is None:
            await self._send_error(client, f"Unsupported event type: {event_type}")
            return
        realtime_events_total.labels("in", event_type).inc()
        identity = None
        if client.state is ConnectionState.IDENTIFIED:
            identity = self.registry.lookup(client.connection_id)
        if identity is None:
            await self._send_error(client, "Join the chat before sending events")
            return
        await handler(client, identity, payload)

    # ------------------------------------------------------------------
    # Outbound helpers
    # ------------------------------------------------------------------

    async def _send(self, client: ClientConnection, payload: dict[str, Any]) -> None:
        realtime_events_total.labels("out", payload["type"]).inc()
        await safe_send_json(client.websocket, payload)

    async def _send_error(self, client: ClientConnection, detail: str) -> None:
        await self._send(client, event("error", detail=detail))

    async def _broadcast(self, payload: dict[str, Any], *, exclude: Sequence[str] = ()) -> None:
        realtime_events_total.labels("out", payload["type"]).inc()
        await self.connections.broadcast(payload, exclude=exclude)

    async def _send_history(self, client: ClientConnection, *, claim_token: str | None = None) -> bool:
        try:
            history = await run_in_threadpool(self.lifecycle.list_recent, self._history_limit)
        except SQLAlchemyError:
            logger.exception("Failed to load history for %s", client.connection_id)
            await self._send_error(client, "Unable to load message history")
            return False
        frame = event("history", messages=[item.model_dump(mode="json") for item in history])
        if claim_token is not None:
            frame["claim_token"] = claim_token
        await self._send(client, frame)
        return True

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def _on_join(self, client: ClientConnection, payload: dict[str, Any]) -> None:
        raw_username = payload.get("username")
        username = raw_username.strip() if isinstance(raw_username, str) else ""
        if not USERNAME_RE.fullmatch(username):
            await self._send_error(
                client, "Username must be 1-32 letters, digits, '_' or '-'"
            )
            return
        if client.bound_username is not None and username != client.bound_username:
            await self._send_error(client, "Username does not match the authenticated account")
            return

        current = self.registry.lookup(client.connection_id)
        if current is not None:
            if current.username != username:
                await self._send_error(client, f"Already joined as {current.username}")
                return
            await self._send_history(client)
            return

        try:
            identity = await self.registry.join(client.connection_id, username)
        except PresenceError as exc:
            await self._send_error(client, str(exc))
            return
        except SQLAlchemyError:
            logger.exception("Failed to register %s", username)
            await self._send_error(client, "Unable to join the chat right now")
            return

        client.state = ConnectionState.IDENTIFIED
        logger.info("%s joined (%s live connections)", identity.username, self.registry.count())

        # Only the connection that created a ghost account may claim it later
        claim_token = None
        if identity.new_account:
            claim_token = create_access_token({"sub": str(identity.user_id)})
        await self._send_history(client, claim_token=claim_token)
        await self._broadcast(
            event("user-joined", username=identity.display_name, live_count=self.registry.count())
        )

    async def _on_send(
        self, client: ClientConnection, identity: UserIdentity, payload: dict[str, Any]
    ) -> None:
        try:
            request = MessageSendPayload.model_validate(
                {key: value for key, value in payload.items() if key != "type"}
            )
        except ValidationError as exc:
            await self._send_error(client, _first_error(exc))
            return

        async with self._send_lock:
            try:
                message = await run_in_threadpool(
                    self.lifecycle.create,
                    identity.user_id,
                    identity.username,
                    request.text,
                    request,
                )
            except MessageValidationError as exc:
                await self._send_error(client, str(exc))
                return
            except (SQLAlchemyError, OSError):
                logger.exception("Failed to store message from %s", identity.username)
                await self._send_error(client, "Failed to store message")
                return
            await self._broadcast(event("message-created", message=message.model_dump(mode="json")))

        await self._deliver_mentions(message, identity)

    async def _deliver_mentions(self, message: MessageRead, author: UserIdentity) -> None:
        for mentioned in message.mentions:
            if mentioned == author.username:
                continue
            notice = event(
                "mention-notice",
                message_id=message.id,
                mentioned_user=mentioned,
                author=author.display_name,
                text=message.text,
                timestamp=message.created_at.isoformat(),
            )
            if self._mention_delivery == "direct":
                targets = await self.registry.connections_for(mentioned)
                realtime_events_total.labels("out", "mention-notice").inc()
                await self.connections.send_many(targets, notice)
            else:
                await self._broadcast(notice)

    async def _on_typing(
        self, client: ClientConnection, identity: UserIdentity, payload: dict[str, Any]
    ) -> None:
        await self._broadcast_typing(client, identity, True)

    async def _on_stop_typing(
        self, client: ClientConnection, identity: UserIdentity, payload: dict[str, Any]
    ) -> None:
        await self._broadcast_typing(client, identity, False)

    async def _broadcast_typing(
        self, client: ClientConnection, identity: UserIdentity, typing: bool
    ) -> None:
        await self._broadcast(
            event("typing-state", username=identity.display_name, typing=typing),
            exclude=(client.connection_id,),
        )

    async def _on_delete(
        self, client: ClientConnection, identity: UserIdentity, payload: dict[str, Any]
    ) -> None:
        message_id = payload.get("message_id")
        if isinstance(message_id, bool) or not isinstance(message_id, int):
            await self._send(client, event("delete-error", error="message_id must be an integer"))
            return

        try:
            result = await run_in_threadpool(self.lifecycle.delete_owned, message_id, identity.user_id)
        except SQLAlchemyError:
            logger.exception("Failed to delete message %s for %s", message_id, identity.username)
            await self._send(client, event("delete-error", error="Failed to delete message"))
            return

        if not result.removed:
            await self._send(client, event("delete-error", error=result.error))
            return
        await self.broadcast_deleted(message_id)

    # ------------------------------------------------------------------
    # Hooks for other producers (HTTP routes, sweeper)
    # ------------------------------------------------------------------

    async def broadcast_deleted(self, message_id: int) -> None:
        await self._broadcast(event("message-deleted", message_id=message_id))

    async def broadcast_attachments_expired(self, message_ids: Sequence[int]) -> None:
        await self._broadcast(event("attachment-expired", message_ids=list(message_ids)))
