"""Membership resolver — who may read and write a project's resources.

Learn: A user belongs to a project if they own it, created it, or are
listed in its `members`. The check fails closed: unknown or malformed
project ids are simply "not a member".

Call sites look the resource up first and answer 404 when it is missing,
and only then ask is_member() and answer 403. That order keeps
"does not exist" and "not yours" distinguishable for members only.
"""

import uuid
from typing import Any, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from collabspace.auth.strategies import CurrentUser
from collabspace.db.models import Project


def parse_uuid(value: Any) -> Optional[uuid.UUID]:
    """Best-effort UUID parse; None for anything that isn't one."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def project_members(project: Project) -> set[str]:
    """Everyone with access: owner, creator, and listed members."""
    ids = {str(m) for m in (project.members or [])}
    ids.add(str(project.owner_id))
    if project.created_by is not None:
        ids.add(str(project.created_by))
    return ids


def user_in_project(user_id: Any, project: Project) -> bool:
    return str(user_id) in project_members(project)


def merge_member_lists(members: Optional[Iterable[Any]], legacy: Optional[Iterable[Any]]) -> list[str]:
    """Union of the canonical and legacy member lists.

    Order-preserving (canonical entries first), de-duplicated, stringified.
    Used by the migration that retires the legacy `member_ids` column.
    """
    merged: list[str] = []
    seen: set[str] = set()
    for value in list(members or []) + list(legacy or []):
        if value is None:
            continue
        key = str(value)
        if key not in seen:
            seen.add(key)
            merged.append(key)
    return merged


class MembershipResolver:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_project(self, project_id: Any) -> Optional[Project]:
        pid = parse_uuid(project_id)
        if pid is None:
            return None
        return await self.db.get(Project, pid)

    async def is_member(self, user: Optional[CurrentUser], project_id: Any) -> bool:
        if user is None:
            return False
        project = await self.get_project(project_id)
        if project is None:
            return False
        return user_in_project(user.id, project)
