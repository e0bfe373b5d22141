"""Schemas related to chat messages."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.enums import AttachmentKind

# One year
MAX_ATTACHMENT_LIFETIME_HOURS = 24 * 365


class MessageRead(BaseModel):
    """Message joined with the author fields clients render next to it."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    author_id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    custom_color: str | None = None
    text: str = ""
    has_markdown: bool = False
    attachment_ref: str | None = None
    attachment_kind: AttachmentKind | None = None
    attachment_expires_at: datetime | None = None
    gif_url: str | None = None
    mentions: list[str] = Field(default_factory=list)
    created_at: datetime


class MessageOptions(BaseModel):
    """Optional parts of a new message."""

    has_markdown: bool = False
    attachment_kind: AttachmentKind | None = None
    attachment_ref: str | None = Field(default=None, max_length=512)
    expires_in_hours: float | None = Field(
        default=None,
        ge=0,
        le=MAX_ATTACHMENT_LIFETIME_HOURS,
        allow_inf_nan=False,
        description="Hours until the attachment is retracted; 0 expires it at the next sweep.",
    )
    gif_url: str | None = Field(default=None, max_length=1024)

    @model_validator(mode="after")
    def ensure_attachment_kind(self) -> "MessageOptions":
        if self.attachment_ref and self.attachment_kind is None:
            raise ValueError("attachment_kind is required with attachment_ref")
        return self


class MessageSendPayload(MessageOptions):
    """Body of a realtime ``send`` event."""

    text: str = ""


class MessageDeleteRequest(BaseModel):
    """Body of the HTTP delete route; the requester names themselves."""

    username: str = Field(..., min_length=1, max_length=32)


class MessageDeleteResult(BaseModel):
    success: bool
    message_id: int
    error: str | None = None


class AttachmentUploadRead(BaseModel):
    """Reference returned after an attachment upload."""

    attachment_ref: str
    attachment_kind: AttachmentKind
    filename: str
    content_type: str | None = None
    size: int
