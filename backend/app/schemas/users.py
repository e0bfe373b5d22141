"""Schemas related to user profiles, members and statistics."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, constr

from app.models.enums import PresenceStatus


class PublicUser(BaseModel):
    """Public-facing user information."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    username: str
    display_name: str | None = None
    status: PresenceStatus = PresenceStatus.OFFLINE
    status_text: str | None = None
    custom_color: str | None = None
    avatar_url: str | None = Field(default=None, validation_alias="avatar_ref")
    last_seen: datetime | None = None


class UserProfileRead(PublicUser):
    """Full profile, including counters and account flags."""

    bio: str | None = None
    pronouns: str | None = None
    banner_url: str | None = Field(default=None, validation_alias="banner_ref")
    is_ghost: bool = False
    created_at: datetime
    message_count: int = 0


class CurrentUserRead(UserProfileRead):
    """Profile of the authenticated account."""

    email: str | None = None
    last_login: datetime | None = None


class UserProfileUpdate(BaseModel):
    """Partial profile update.

    Only fields explicitly present in the request body are applied; an explicit
    ``null`` clears the stored value.
    """

    display_name: constr(strip_whitespace=True, min_length=1, max_length=64) | None = None
    status: PresenceStatus | None = None
    status_text: constr(max_length=128) | None = None
    bio: constr(max_length=1000) | None = None
    pronouns: constr(max_length=32) | None = None
    custom_color: constr(pattern=r"^#[0-9A-Fa-f]{6}$") | None = None


class MemberRead(PublicUser):
    """Entry of the member directory."""

    message_count: int = 0


class TopAuthor(BaseModel):
    username: str
    display_name: str | None = None
    message_count: int


class ChatStats(BaseModel):
    """Aggregated chat statistics."""

    total_users: int
    online_users: int
    total_messages: int
    top_users: list[TopAuthor] = Field(default_factory=list)
