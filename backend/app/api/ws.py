"""WebSocket endpoint for real-time chat communication."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Dict, TypeVar

from fastapi import APIRouter, WebSocket, status
from fastapi.exceptions import HTTPException
from fastapi.websockets import WebSocketDisconnect, WebSocketState
from starlette.concurrency import run_in_threadpool

from agora.realtime.connections import safe_send_json
from agora.realtime.managers import get_gateway, get_session_factory
from app.api.deps import get_user_from_token
from app.config import get_settings

router = APIRouter(prefix="/ws", tags=["ws"])

settings = get_settings()

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NO_TOKEN = object()


async def iter_keepalive_messages(
    websocket: WebSocket,
    receiver: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float | int | None,
    ping_interval_seconds: float | int | None,
    ping_payload: Dict[str, Any] | None = None,
) -> AsyncIterator[T]:
    """Yield messages from *receiver* while sending keepalive pings when idle."""

    ping_payload = ping_payload or {"type": "ping"}
    timeout = float(timeout_seconds) if timeout_seconds else 0.0
    interval = float(ping_interval_seconds) if ping_interval_seconds else 0.0
    last_activity = time.monotonic()
    last_ping_sent: float | None = None

    while True:
        try:
            if timeout > 0:
                message = await asyncio.wait_for(receiver(), timeout=timeout)
            else:
                message = await receiver()
        except asyncio.TimeoutError:
            if websocket.application_state != WebSocketState.CONNECTED:
                break

            now = time.monotonic()
            should_ping = interval <= 0 or (
                now - last_activity >= interval
                and (last_ping_sent is None or now - last_ping_sent >= interval)
            )
            if should_ping:
                if not await safe_send_json(websocket, ping_payload):
                    break
                last_ping_sent = now
            continue
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancellation
            raise
        except (RuntimeError, WebSocketDisconnect):
            break
        else:
            last_activity = time.monotonic()
            last_ping_sent = None
            yield message


def _extract_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if not token:
        auth_header = websocket.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header.removeprefix("Bearer ").strip()
    return token or None


def _username_for_token(token: str) -> str:
    with get_session_factory()() as db:
        return get_user_from_token(token, db).username


async def _resolve_bound_username(websocket: WebSocket) -> str | None | object:
    """Return the username proven by a bearer token, ``None`` without one.

    An invalid token closes the socket and yields ``_NO_TOKEN``.
    """

    token = _extract_token(websocket)
    if token is None:
        return None
    try:
        return await run_in_threadpool(_username_for_token, token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return _NO_TOKEN


@router.websocket("/chat")
async def websocket_chat(websocket: WebSocket) -> None:
    """Single shared chat room.

    Clients must send ``join`` before any other event. Frames are JSON objects
    with a ``type`` key.
    """

    bound_username = await _resolve_bound_username(websocket)
    if bound_username is _NO_TOKEN:
        return

    gateway = get_gateway()
    await websocket.accept()
    client = await gateway.open(websocket, bound_username=bound_username)

    try:
        async for raw_message in iter_keepalive_messages(
            websocket,
            websocket.receive_text,
            timeout_seconds=settings.websocket_keepalive_timeout_seconds,
            ping_interval_seconds=settings.websocket_keepalive_ping_interval_seconds,
        ):
            try:
                payload = json.loads(raw_message)
            except json.JSONDecodeError:
                await safe_send_json(websocket, {"type": "error", "detail": "Invalid message format"})
                continue

            if not isinstance(payload, dict):
                await safe_send_json(
                    websocket, {"type": "error", "detail": "Message payload must be a JSON object"}
                )
                continue

            await gateway.handle_event(client, payload)
    finally:
        await gateway.close(client)
