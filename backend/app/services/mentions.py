"""Mention extraction and validation."""

from __future__ import annotations

import re
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import User

MENTION_PATTERN = re.compile(r"@([\w-]+)")


def extract_mentions(text: str | None) -> list[str]:
    """Return distinct ``@name`` candidates in first-occurrence order.

    Matching is case-sensitive and the leading ``@`` is stripped.
    """

    if not text:
        return []
    seen: dict[str, None] = {}
    for match in MENTION_PATTERN.finditer(text):
        seen.setdefault(match.group(1), None)
    return list(seen)


def validate_mentions(candidates: Iterable[str], db: Session) -> list[str]:
    """Keep the candidates that name an existing user, preserving order."""

    valid: list[str] = []
    for username in candidates:
        exists = db.execute(
            select(User.id).where(User.username == username).limit(1)
        ).scalar_one_or_none()
        if exists is not None:
            valid.append(username)
    return valid
