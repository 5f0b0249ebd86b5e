"""Project API routes.

Routes handle HTTP concerns (status codes, bodies); ProjectService does
the work and raises NotFound / Forbidden in the 404-then-403 order.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from collabspace.auth.dependencies import get_current_user
from collabspace.auth.strategies import CurrentUser
from collabspace.db.engine import get_db
from collabspace.schemas.project import ProjectCreate, ProjectRead, ProjectUpdate
from collabspace.services.project_service import ProjectService

router = APIRouter(prefix="/projects")


def _svc(db: AsyncSession = Depends(get_db)) -> ProjectService:
    return ProjectService(db)


@router.post("", response_model=ProjectRead, status_code=201)
async def create_project(
    body: ProjectCreate,
    user: CurrentUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return await svc.create_project(user, body.name, body.description)


@router.get("", response_model=list[ProjectRead])
async def list_projects(
    user: CurrentUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return await svc.list_for_user(user)


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return await svc.get_for_member(user, project_id)


@router.patch("/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: str,
    body: ProjectUpdate,
    user: CurrentUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return await svc.update_project(
        user, project_id, name=body.name, description=body.description
    )


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    await svc.delete_project(user, project_id)
    return {"ok": True}
