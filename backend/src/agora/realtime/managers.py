"""Process-wide realtime singletons and their startup/shutdown hooks."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.config import Settings, get_settings
from app.database import SessionLocal
from app.services.attachment_sweeper import AttachmentSweeper
from app.services.message_lifecycle import MessageLifecycleManager

from .connections import ConnectionManager
from .gateway import RealtimeGateway
from .presence import PresenceRegistry

logger = logging.getLogger(__name__)

settings = get_settings()

session_factory: sessionmaker[Session] = SessionLocal
connection_manager: ConnectionManager
presence_registry: PresenceRegistry
lifecycle_manager: MessageLifecycleManager
gateway: RealtimeGateway
sweeper: AttachmentSweeper


def configure_realtime(
    factory: sessionmaker[Session] | None = None,
    *,
    config: Settings | None = None,
) -> RealtimeGateway:
    """(Re)build the realtime components around *factory*.

    Called once at import time with the application session factory; tests
    call it again to bind everything to an isolated database.
    """

    global session_factory, connection_manager, presence_registry, lifecycle_manager, gateway, sweeper

    config = config or settings
    session_factory = factory or SessionLocal
    connection_manager = ConnectionManager()
    presence_registry = PresenceRegistry(session_factory)
    lifecycle_manager = MessageLifecycleManager(
        session_factory, max_length=config.chat_message_max_length
    )
    gateway = RealtimeGateway(
        connections=connection_manager,
        registry=presence_registry,
        lifecycle=lifecycle_manager,
        history_limit=config.chat_history_limit,
        mention_delivery=config.mention_delivery,
    )
    sweeper = AttachmentSweeper(
        session_factory,
        interval_seconds=config.attachment_sweep_interval_seconds,
        on_cleared=gateway.broadcast_attachments_expired,
    )
    return gateway


configure_realtime()


async def startup_realtime() -> None:
    if settings.presence_reset_on_startup:
        try:
            await presence_registry.reset_durable_presence()
        except SQLAlchemyError:
            logger.warning("Presence reconciliation failed; stored statuses may be stale", exc_info=True)
    await sweeper.start()


async def shutdown_realtime() -> None:
    await sweeper.stop()


# Convenience accessors exposed to the FastAPI layer ----------------------


def get_session_factory() -> sessionmaker[Session]:
    return session_factory


def get_connection_manager() -> ConnectionManager:
    return connection_manager


def get_presence_registry() -> PresenceRegistry:
    return presence_registry


def get_lifecycle_manager() -> MessageLifecycleManager:
    return lifecycle_manager


def get_gateway() -> RealtimeGateway:
    return gateway


def get_sweeper() -> AttachmentSweeper:
    return sweeper


__all__ = [
    "configure_realtime",
    "startup_realtime",
    "shutdown_realtime",
    "get_session_factory",
    "get_connection_manager",
    "get_presence_registry",
    "get_lifecycle_manager",
    "get_gateway",
    "get_sweeper",
]
