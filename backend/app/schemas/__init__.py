"""Pydantic schemas for API payloads."""

from .auth import (
    CompleteProfileRequest,
    CredentialsUpdate,
    LoginRequest,
    PasswordConfirmation,
    RefreshRequest,
    RegisterRequest,
    Token,
)
from .giphy import GifPage, GifRead
from .messages import (
    AttachmentUploadRead,
    MessageDeleteRequest,
    MessageDeleteResult,
    MessageOptions,
    MessageRead,
    MessageSendPayload,
)
from .users import (
    ChatStats,
    CurrentUserRead,
    MemberRead,
    PublicUser,
    TopAuthor,
    UserProfileRead,
    UserProfileUpdate,
)

__all__ = [
    "AttachmentUploadRead",
    "ChatStats",
    "CompleteProfileRequest",
    "CredentialsUpdate",
    "CurrentUserRead",
    "GifPage",
    "GifRead",
    "LoginRequest",
    "MemberRead",
    "MessageDeleteRequest",
    "MessageDeleteResult",
    "MessageOptions",
    "MessageRead",
    "MessageSendPayload",
    "PasswordConfirmation",
    "PublicUser",
    "RefreshRequest",
    "RegisterRequest",
    "Token",
    "TopAuthor",
    "UserProfileRead",
    "UserProfileUpdate",
]
