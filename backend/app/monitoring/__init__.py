"""In-process metrics for the chat service, exported at ``/metrics``."""

from .metrics import (
    attachment_sweep_failures_total,
    attachments_expired_total,
    messages_created_total,
    messages_deleted_total,
    realtime_connections,
    realtime_events_total,
)
from .registry import registry

__all__ = [
    "attachment_sweep_failures_total",
    "attachments_expired_total",
    "messages_created_total",
    "messages_deleted_total",
    "realtime_connections",
    "realtime_events_total",
    "registry",
]
