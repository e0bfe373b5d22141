from __future__ import annotations

from enum import Enum


class PresenceStatus(str, Enum):
    """Durable presence indicator stored on the user row."""

    ONLINE = "online"
    AWAY = "away"
    BUSY = "busy"
    OFFLINE = "offline"


class AttachmentKind(str, Enum):
    """Media category of a message attachment."""

    IMAGE = "image"
    VIDEO = "video"
