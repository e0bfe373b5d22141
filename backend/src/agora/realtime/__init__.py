"""Websocket fan-out, presence tracking and gateway wiring."""

from .connections import ConnectionManager, safe_send_json
from .gateway import ClientConnection, ConnectionState, RealtimeGateway
from .presence import PresenceError, PresenceRegistry, UserIdentity

__all__ = [
    "ClientConnection",
    "ConnectionManager",
    "ConnectionState",
    "PresenceError",
    "PresenceRegistry",
    "RealtimeGateway",
    "UserIdentity",
    "safe_send_json",
]
