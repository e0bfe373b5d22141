"""Schemas for the GIF search passthrough."""

from pydantic import BaseModel, Field


class GifRead(BaseModel):
    id: str
    title: str = ""
    url: str
    preview: str | None = None
    width: int | None = None
    height: int | None = None


class GifPage(BaseModel):
    """Normalised page of GIF results."""

    results: list[GifRead] = Field(default_factory=list)
    total_count: int = 0
    offset: int = 0
