"""HTTP endpoints for reading, searching and deleting chat messages."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from agora.realtime.managers import get_gateway
from app.config import get_settings
from app.core.storage import store_attachment
from app.database import get_db
from app.schemas import (
    AttachmentUploadRead,
    MessageDeleteRequest,
    MessageDeleteResult,
    MessageRead,
)
from app.services import message_store
from app.services import users as user_service
from app.services.message_lifecycle import DELETE_REFUSED

router = APIRouter(prefix="/messages", tags=["messages"])
settings = get_settings()

logger = logging.getLogger(__name__)


@router.get("", response_model=list[MessageRead])
def read_recent_messages(
    limit: int | None = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[MessageRead]:
    return message_store.list_recent(db, limit or settings.chat_history_limit)


@router.get("/search", response_model=list[MessageRead])
def search_messages(
    q: str = Query(..., min_length=1, max_length=200),
    limit: int | None = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[MessageRead]:
    return message_store.search(db, q, limit or settings.chat_query_default_limit)


@router.post("/attachment", response_model=AttachmentUploadRead, status_code=status.HTTP_201_CREATED)
async def upload_attachment(file: UploadFile = File(...)) -> AttachmentUploadRead:
    """Store a file and return the reference to put on the next ``send`` event."""

    stored = await store_attachment(file)
    logger.info("Stored attachment %s (%s bytes)", stored.reference, stored.file_size)
    return AttachmentUploadRead(
        attachment_ref=stored.reference,
        attachment_kind=stored.kind,
        filename=stored.file_name,
        content_type=stored.content_type,
        size=stored.file_size,
    )


@router.delete("/{message_id}", response_model=MessageDeleteResult)
async def delete_message(
    message_id: int,
    payload: MessageDeleteRequest,
    db: Session = Depends(get_db),
) -> MessageDeleteResult:
    """Delete a message on behalf of the named author and notify connected clients."""

    user = await run_in_threadpool(user_service.get_user_by_username, db, payload.username)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=DELETE_REFUSED)

    gateway = get_gateway()
    result = await run_in_threadpool(gateway.lifecycle.delete_owned, message_id, user.id)
    if not result.removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result.error)

    await gateway.broadcast_deleted(message_id)
    return MessageDeleteResult(success=True, message_id=message_id)
