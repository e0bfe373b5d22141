"""Metric definitions for the chat service."""

from __future__ import annotations

from .registry import registry


realtime_connections = registry.gauge(
    "realtime_active_connections",
    "Number of open chat websocket connections.",
)

realtime_events_total = registry.counter(
    "realtime_events_total",
    "Count of realtime events processed by the gateway.",
    label_names=("direction", "event"),
)

messages_created_total = registry.counter(
    "chat_messages_created_total",
    "Messages persisted since the process started.",
)

messages_deleted_total = registry.counter(
    "chat_messages_deleted_total",
    "Messages removed by their authors since the process started.",
)

attachments_expired_total = registry.counter(
    "chat_attachments_expired_total",
    "Attachments retracted by the expiry sweeper.",
)

attachment_sweep_failures_total = registry.counter(
    "chat_attachment_sweep_failures_total",
    "Sweeper runs that ended with an error.",
)
