"""Note routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from collabspace.auth.dependencies import get_current_user
from collabspace.auth.strategies import CurrentUser
from collabspace.db.engine import get_db
from collabspace.realtime.broadcaster import Broadcaster
from collabspace.realtime.stream import get_broadcaster
from collabspace.schemas.note import NoteCreate, NotePage, NoteRead, NoteUpdate
from collabspace.services.note_service import NoteService

router = APIRouter(prefix="/notes")


def _svc(
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> NoteService:
    return NoteService(db, broadcaster)


@router.get("", response_model=NotePage)
async def list_notes(
    project_id: Optional[str] = Query(None, alias="projectId"),
    tag: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    svc: NoteService = Depends(_svc),
):
    return await svc.list_notes(user, project_id, tag=tag, page=page, limit=limit)


@router.post("", response_model=NoteRead, status_code=201)
async def create_note(
    body: NoteCreate,
    user: CurrentUser = Depends(get_current_user),
    svc: NoteService = Depends(_svc),
):
    return await svc.create_note(
        user,
        title=body.title,
        body_markdown=body.body_markdown,
        project_id=body.project_id,
        tags=body.tags,
        visibility=body.visibility,
    )


@router.get("/{note_id}", response_model=NoteRead)
async def get_note(
    note_id: str,
    user: CurrentUser = Depends(get_current_user),
    svc: NoteService = Depends(_svc),
):
    return await svc.get_note(user, note_id)


@router.patch("/{note_id}", response_model=NoteRead)
async def update_note(
    note_id: str,
    body: NoteUpdate,
    user: CurrentUser = Depends(get_current_user),
    svc: NoteService = Depends(_svc),
):
    return await svc.update_note(user, note_id, body.model_dump(exclude_unset=True))


@router.delete("/{note_id}")
async def delete_note(
    note_id: str,
    user: CurrentUser = Depends(get_current_user),
    svc: NoteService = Depends(_svc),
):
    await svc.delete_note(user, note_id)
    return {"ok": True}
