from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.enums import AttachmentKind, PresenceStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Chat participant, either a registered account or a ghost account."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(64))
    email: Mapped[str | None] = mapped_column(String(255), unique=True)
    password_hash: Mapped[str | None] = mapped_column(String(255))
    # Only the most recently issued refresh token is honoured
    refresh_token: Mapped[str | None] = mapped_column(String(512))
    status: Mapped[PresenceStatus] = mapped_column(
        SAEnum(
            PresenceStatus,
            name="presence_status",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        default=PresenceStatus.OFFLINE,
        nullable=False,
    )
    status_text: Mapped[str | None] = mapped_column(String(128))
    bio: Mapped[str | None] = mapped_column(Text)
    pronouns: Mapped[str | None] = mapped_column(String(32))
    custom_color: Mapped[str | None] = mapped_column(String(16))
    avatar_ref: Mapped[str | None] = mapped_column(String(512))
    banner_ref: Mapped[str | None] = mapped_column(String(512))
    is_suspended: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    suspended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    messages: Mapped[list["Message"]] = relationship(
        back_populates="author",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_ghost(self) -> bool:
        return self.email is None and self.password_hash is None

    @property
    def public_name(self) -> str:
        return self.display_name or self.username


class Message(Base):
    """Immutable chat message. Only the attachment fields may be cleared later."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_author_id", "author_id"),
        Index("ix_messages_created_at", "created_at"),
        Index("ix_messages_attachment_expires_at", "attachment_expires_at"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    author_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, default="", nullable=False)
    has_markdown: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    attachment_ref: Mapped[str | None] = mapped_column(String(512))
    attachment_kind: Mapped[AttachmentKind | None] = mapped_column(
        SAEnum(
            AttachmentKind,
            name="attachment_kind",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        )
    )
    attachment_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    gif_url: Mapped[str | None] = mapped_column(String(1024))
    mentions: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    author: Mapped[User] = relationship(back_populates="messages")
