"""Database models package."""

from .base import Base
from .chat import Message, User, utcnow
from .enums import AttachmentKind, PresenceStatus

__all__ = [
    "Base",
    "User",
    "Message",
    "AttachmentKind",
    "PresenceStatus",
    "utcnow",
]
