"""Todo routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from collabspace.auth.dependencies import get_current_user
from collabspace.auth.strategies import CurrentUser
from collabspace.db.engine import get_db
from collabspace.schemas.todo import TodoCreate, TodoRead, TodoUpdate
from collabspace.services.todo_service import TodoService

router = APIRouter(prefix="/todos")


def _svc(db: AsyncSession = Depends(get_db)) -> TodoService:
    return TodoService(db)


@router.get("", response_model=list[TodoRead])
async def list_todos(
    project_id: Optional[str] = Query(None, alias="projectId"),
    user: CurrentUser = Depends(get_current_user),
    svc: TodoService = Depends(_svc),
):
    return await svc.list_todos(user, project_id)


@router.post("", response_model=TodoRead, status_code=201)
async def create_todo(
    body: TodoCreate,
    user: CurrentUser = Depends(get_current_user),
    svc: TodoService = Depends(_svc),
):
    return await svc.create_todo(
        user,
        title=body.title,
        project_id=body.project_id,
        tags=body.tags,
        due_date=body.due_date,
    )


@router.patch("/{todo_id}", response_model=TodoRead)
async def update_todo(
    todo_id: str,
    body: TodoUpdate,
    user: CurrentUser = Depends(get_current_user),
    svc: TodoService = Depends(_svc),
):
    return await svc.update_todo(user, todo_id, body.model_dump(exclude_unset=True))
