"""Tests for the GIF search client and its HTTP passthrough."""

from __future__ import annotations

import httpx
import pytest

from app.api.giphy import get_giphy_client
from app.config import Settings
from app.main import app
from app.services.giphy import GiphyClient, GiphyError, normalize_gif

GIF_ENTRY = {
    "id": "abc123",
    "title": "Dancing cat",
    "images": {
        "fixed_height": {"url": "https://media.example/abc.gif", "width": "200", "height": "150"},
        "fixed_height_small": {"url": "https://media.example/abc-small.gif"},
    },
}


def make_settings(**overrides) -> Settings:
    values = {"giphy_api_key": "test-key", "giphy_base_url": "https://gifs.example/v1/gifs"}
    values.update(overrides)
    return Settings(**values)


def test_normalize_gif_extracts_fixed_height_rendition():
    gif = normalize_gif(GIF_ENTRY)

    assert gif is not None
    assert gif.url == "https://media.example/abc.gif"
    assert gif.preview == "https://media.example/abc-small.gif"
    assert (gif.width, gif.height) == (200, 150)


def test_normalize_gif_skips_entries_without_url():
    assert normalize_gif({"id": "x", "images": {}}) is None


@pytest.mark.anyio
async def test_search_forwards_query_and_pagination():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"data": [GIF_ENTRY, {"id": "broken"}], "pagination": {"total_count": 40, "offset": 20}},
        )

    client = GiphyClient(make_settings(), transport=httpx.MockTransport(handler))
    page = await client.search("cats", limit=5, offset=20)

    assert [gif.id for gif in page.results] == ["abc123"]
    assert page.total_count == 40
    assert page.offset == 20
    params = seen[0].url.params
    assert seen[0].url.path.endswith("/search")
    assert params["q"] == "cats"
    assert params["api_key"] == "test-key"
    assert params["limit"] == "5"


@pytest.mark.anyio
async def test_upstream_failure_raises_giphy_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(500))
    client = GiphyClient(make_settings(), transport=transport)

    with pytest.raises(GiphyError):
        await client.trending()


@pytest.mark.anyio
async def test_missing_api_key_is_reported():
    client = GiphyClient(make_settings(giphy_api_key=None))

    with pytest.raises(GiphyError):
        await client.search("cats")


def test_http_passthrough_maps_errors_to_bad_gateway(client):
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    app.dependency_overrides[get_giphy_client] = lambda: GiphyClient(make_settings(), transport=transport)

    response = client.get("/api/giphy/search", params={"q": "cats"})

    assert response.status_code == 502


def test_http_passthrough_returns_results(client):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"data": [GIF_ENTRY]}))
    app.dependency_overrides[get_giphy_client] = lambda: GiphyClient(make_settings(), transport=transport)

    response = client.get("/api/giphy/trending")

    assert response.status_code == 200
    assert response.json()["results"][0]["title"] == "Dancing cat"
    assert response.json()["total_count"] == 1
