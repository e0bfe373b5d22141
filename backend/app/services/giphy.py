"""Thin client for the Giphy search API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.config import Settings, get_settings
from app.schemas import GifPage, GifRead

logger = logging.getLogger(__name__)


class GiphyError(RuntimeError):
    """Raised when the upstream GIF service cannot serve a request."""


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_gif(entry: dict[str, Any]) -> GifRead | None:
    images = entry.get("images") or {}
    fixed = images.get("fixed_height") or {}
    url = fixed.get("url")
    if not entry.get("id") or not url:
        return None
    return GifRead(
        id=str(entry["id"]),
        title=entry.get("title") or "",
        url=url,
        preview=(images.get("fixed_height_small") or {}).get("url"),
        width=_as_int(fixed.get("width")),
        height=_as_int(fixed.get("height")),
    )


class GiphyClient:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport

    async def _get(self, endpoint: str, params: dict[str, Any]) -> GifPage:
        if not self._settings.giphy_api_key:
            raise GiphyError("GIF search is not configured")

        query = {
            "api_key": self._settings.giphy_api_key,
            "rating": self._settings.giphy_rating,
            **params,
        }
        url = f"{self._settings.giphy_base_url.rstrip('/')}/{endpoint}"
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.giphy_timeout_seconds, transport=self._transport
            ) as client:
                response = await client.get(url, params=query)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("GIF request to %s failed: %s", endpoint, exc)
            raise GiphyError("GIF service unavailable") from exc

        results = [gif for gif in map(normalize_gif, body.get("data") or []) if gif is not None]
        pagination = body.get("pagination") or {}
        return GifPage(
            results=results,
            total_count=_as_int(pagination.get("total_count")) or len(results),
            offset=_as_int(pagination.get("offset")) or int(params.get("offset", 0)),
        )

    async def search(self, query: str, *, limit: int = 20, offset: int = 0) -> GifPage:
        return await self._get("search", {"q": query, "limit": limit, "offset": offset})

    async def trending(self, *, limit: int = 20, offset: int = 0) -> GifPage:
        return await self._get("trending", {"limit": limit, "offset": offset})
