"""Member directory, statistics and stored file serving."""

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from agora.realtime.managers import get_lifecycle_manager, get_presence_registry
from app.core.storage import resolve_path
from app.database import get_db
from app.schemas import ChatStats, MemberRead, TopAuthor
from app.services import users as user_service

router = APIRouter()


@router.get("/members", response_model=list[MemberRead], tags=["users"])
def list_members(db: Session = Depends(get_db)) -> list[MemberRead]:
    """Known users with their message counts, most recently seen first."""

    return user_service.list_members(db)


@router.get("/stats", response_model=ChatStats, tags=["system"])
def read_stats(db: Session = Depends(get_db)) -> ChatStats:
    total_messages, top = get_lifecycle_manager().stats()
    return ChatStats(
        total_users=user_service.count_users(db),
        online_users=get_presence_registry().count(),
        total_messages=total_messages,
        top_users=[
            TopAuthor(username=username, display_name=display_name, message_count=count)
            for username, display_name, count in top
        ],
    )


uploads_router = APIRouter(tags=["uploads"])


@uploads_router.get("/uploads/{file_name}")
def serve_upload(file_name: str) -> FileResponse:
    return FileResponse(resolve_path(file_name))
