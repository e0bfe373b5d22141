"""Schemas for authentication endpoints."""

from __future__ import annotations

import re

from pydantic import BaseModel, EmailStr, Field, constr, field_validator

USERNAME_PATTERN = r"^[A-Za-z0-9_-]{1,32}$"

_PASSWORD_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"[a-z]"), "Password must contain a lowercase letter"),
    (re.compile(r"[A-Z]"), "Password must contain an uppercase letter"),
    (re.compile(r"\d"), "Password must contain a digit"),
)


def check_password_strength(value: str) -> str:
    for pattern, message in _PASSWORD_RULES:
        if not pattern.search(value):
            raise ValueError(message)
    return value


class RegisterRequest(BaseModel):
    """Payload for creating a fully registered account."""

    username: constr(pattern=USERNAME_PATTERN) = Field(
        ..., description="Unique, immutable handle (letters, digits, '_' and '-')"
    )
    email: EmailStr
    password: constr(min_length=8, max_length=128) = Field(
        ..., description="Plain text password that will be hashed before storing"
    )
    display_name: constr(strip_whitespace=True, min_length=1, max_length=64) | None = None

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password_strength(value)


class LoginRequest(BaseModel):
    """Payload for user login."""

    email: EmailStr
    password: constr(min_length=1, max_length=128)


class Token(BaseModel):
    """Access token returned after successful authentication."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type, always 'bearer'")
    expires_in: int = Field(..., description="Access token lifetime in seconds")
    refresh_token: str = Field(..., description="Token accepted by /api/auth/refresh")
    username: str


class CompleteProfileRequest(BaseModel):
    """Credentials for the ghost account the bearer token was issued to."""

    email: EmailStr
    password: constr(min_length=8, max_length=128)

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password_strength(value)


class RefreshRequest(BaseModel):
    """Exchange a refresh token for a new token pair."""

    refresh_token: constr(min_length=1)


class CredentialsUpdate(BaseModel):
    """Change the e-mail and/or password of the current account."""

    current_password: constr(min_length=1, max_length=128)
    email: EmailStr | None = None
    new_password: constr(min_length=8, max_length=128) | None = None

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return check_password_strength(value)


class PasswordConfirmation(BaseModel):
    """Password re-entry required for destructive account operations."""

    password: constr(min_length=1, max_length=128)
