"""Project service — project CRUD plus the access checks every scoped
resource relies on."""

import uuid
from typing import Any, Optional

from sqlalchemy import String, cast, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified

from collabspace.auth.strategies import CurrentUser, require_role
from collabspace.db.models import Project
from collabspace.errors import Forbidden, InvalidInput, NotFound
from collabspace.services.membership import (
    MembershipResolver,
    parse_uuid,
    user_in_project,
)


class ProjectService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.membership = MembershipResolver(db)

    async def create_project(
        self, user: CurrentUser, name: str, description: str = ""
    ) -> Project:
        name = (name or "").strip()
        if len(name) < 2:
            raise InvalidInput("name required (min 2 chars)")
        project = Project(
            name=name,
            description=(description or "").strip(),
            owner_id=user.id,
            created_by=user.id,
            members=[str(user.id)],
        )
        self.db.add(project)
        await self.db.commit()
        return project

    async def list_for_user(self, user: CurrentUser) -> list[Project]:
        """Projects the user can see (all of them for admins), newest first.

        Membership lives in a JSON list. SQL narrows the rows with a text
        match on the serialized list, then user_in_project makes the exact
        check on what comes back.
        """
        stmt = select(Project).order_by(Project.created_at.desc())
        if require_role(user, "admin"):
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        stmt = stmt.where(
            or_(
                Project.owner_id == user.id,
                Project.created_by == user.id,
                cast(Project.members, String).like(f'%"{user.id}"%'),
            )
        )
        result = await self.db.execute(stmt)
        return [p for p in result.scalars().all() if user_in_project(user.id, p)]

    async def get_for_member(self, user: CurrentUser, project_id: Any) -> Project:
        """Load a project the user belongs to: 404 if absent, 403 if not a member."""
        project = await self.membership.get_project(project_id)
        if project is None:
            raise NotFound("project not found")
        if not user_in_project(user.id, project) and not require_role(user, "admin"):
            raise Forbidden("not a member of this project")
        return project

    async def get_for_owner(self, user: CurrentUser, project_id: Any) -> Project:
        project = await self.membership.get_project(project_id)
        if project is None:
            raise NotFound("not found")
        if str(project.owner_id) != str(user.id) and not require_role(user, "admin"):
            raise Forbidden()
        return project

    async def update_project(
        self,
        user: CurrentUser,
        project_id: Any,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Project:
        project = await self.get_for_owner(user, project_id)
        if name is not None:
            if len(name.strip()) < 2:
                raise InvalidInput("name required (min 2 chars)")
            project.name = name.strip()
        if description is not None:
            project.description = description.strip()
        await self.db.commit()
        return project

    async def delete_project(self, user: CurrentUser, project_id: Any) -> None:
        project = await self.get_for_owner(user, project_id)
        await self.db.delete(project)
        await self.db.commit()

    async def add_member(self, project: Project, user_id: uuid.UUID) -> bool:
        """Append a member. Returns False if they were already listed."""
        members = [str(m) for m in (project.members or [])]
        if str(user_id) in members:
            return False
        members.append(str(user_id))
        project.members = members
        flag_modified(project, "members")
        await self.db.commit()
        return True


async def resolve_scope(
    db: AsyncSession, user: CurrentUser, project_id: Optional[str]
) -> Optional[uuid.UUID]:
    """Validate an optional ?projectId= filter for list endpoints.

    Returns the parsed id, or None when no filter was given. Raises
    NotFound / Forbidden exactly like get_for_member.
    """
    if not project_id:
        return None
    if parse_uuid(project_id) is None:
        raise NotFound("project not found")
    project = await ProjectService(db).get_for_member(user, project_id)
    return project.id
