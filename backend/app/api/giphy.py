"""GIF search passthrough."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import GifPage
from app.services.giphy import GiphyClient, GiphyError

router = APIRouter(prefix="/giphy", tags=["giphy"])


def get_giphy_client() -> GiphyClient:
    return GiphyClient()


@router.get("/search", response_model=GifPage)
async def search_gifs(
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(default=20, ge=1, le=50),
    offset: int = Query(default=0, ge=0),
    client: GiphyClient = Depends(get_giphy_client),
) -> GifPage:
    try:
        return await client.search(q, limit=limit, offset=offset)
    except GiphyError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@router.get("/trending", response_model=GifPage)
async def trending_gifs(
    limit: int = Query(default=20, ge=1, le=50),
    offset: int = Query(default=0, ge=0),
    client: GiphyClient = Depends(get_giphy_client),
) -> GifPage:
    try:
        return await client.trending(limit=limit, offset=offset)
    except GiphyError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
