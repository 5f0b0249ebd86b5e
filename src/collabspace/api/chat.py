"""Project chat routes.

GET returns history oldest-first; POST stores a message and pushes a
`chat-message` event to every other member's open streams.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from collabspace.auth.dependencies import get_current_user
from collabspace.auth.strategies import CurrentUser
from collabspace.db.engine import get_db
from collabspace.realtime.broadcaster import Broadcaster
from collabspace.realtime.stream import get_broadcaster
from collabspace.schemas.collab import ChatMessageCreate
from collabspace.services.chat_service import ChatService

router = APIRouter(prefix="/chat")


def _svc(
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> ChatService:
    return ChatService(db, broadcaster)


@router.get("")
async def list_messages(
    project_id: str = Query(..., alias="projectId"),
    limit: int = Query(50, ge=1, le=200),
    before: Optional[datetime] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    svc: ChatService = Depends(_svc),
):
    return await svc.list_messages(user, project_id, limit=limit, before=before)


@router.post("", status_code=201)
async def post_message(
    body: ChatMessageCreate,
    user: CurrentUser = Depends(get_current_user),
    svc: ChatService = Depends(_svc),
):
    return await svc.post_message(user, body.project_id, body.content)
