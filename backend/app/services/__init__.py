"""Application service helpers."""

from .attachment_sweeper import AttachmentSweeper, sweep_expired_attachments
from .mentions import extract_mentions, validate_mentions
from .message_lifecycle import DeleteResult, MessageLifecycleManager, MessageValidationError

__all__ = [
    "AttachmentSweeper",
    "DeleteResult",
    "MessageLifecycleManager",
    "MessageValidationError",
    "extract_mentions",
    "sweep_expired_attachments",
    "validate_mentions",
]
