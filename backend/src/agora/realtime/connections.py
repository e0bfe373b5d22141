"""Bookkeeping of live websocket connections."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable

from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from app.monitoring.metrics import realtime_connections

logger = logging.getLogger(__name__)


async def safe_send_json(websocket: WebSocket, data: dict[str, Any]) -> bool:
    """Safely send JSON data through websocket, handling disconnections gracefully.

    Returns True if message was sent successfully, False otherwise.
    """
    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("Failed to send websocket message: %s", e)
        return False


class ConnectionManager:
    """Track active websocket connections by connection id."""

    def __init__(self) -> None:
        self._connections: Dict[str, WebSocket] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    async def connect(self, connection_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            if connection_id not in self._connections:
                realtime_connections.inc()
            self._connections[connection_id] = websocket

    async def disconnect(self, connection_id: str) -> bool:
        async with self._lock:
            websocket = self._connections.pop(connection_id, None)
            if websocket is None:
                return False
            realtime_connections.dec()
            return True

    async def send(self, connection_id: str, payload: dict[str, Any]) -> bool:
        websocket = self._connections.get(connection_id)
        if websocket is None:
            return False
        return await safe_send_json(websocket, payload)

    async def send_many(self, connection_ids: Iterable[str], payload: dict[str, Any]) -> int:
        delivered = 0
        for connection_id in dict.fromkeys(connection_ids):
            if await self.send(connection_id, payload):
                delivered += 1
        return delivered

    async def broadcast(
        self,
        payload: dict[str, Any],
        *,
        exclude: Iterable[str] | None = None,
    ) -> int:
        """Send *payload* to every live connection; returns the number reached."""

        exclude_set = set(exclude or ())
        connections = list(self._connections.items())
        delivered = 0
        for connection_id, websocket in connections:
            if connection_id in exclude_set:
                continue
            if await safe_send_json(websocket, payload):
                delivered += 1
        return delivered
