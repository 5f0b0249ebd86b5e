"""Note service — notes scoped to their author and, optionally, a project.

Visibility rules:
- list: the caller's own notes; with ?projectId= also that project's
  `project`-visibility notes, which requires membership (403 otherwise)
- read one: `private` notes only for the author, `project` notes for
  project members and the author; admins see everything
- update / delete: author or admin; an update of a `project` note fans
  out `note-updated` to the other project members
"""

import math
from typing import Any, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from collabspace.auth.strategies import CurrentUser, require_role
from collabspace.db.models import Note, Project
from collabspace.errors import Forbidden, InvalidInput, NotFound
from collabspace.realtime.broadcaster import Broadcaster
from collabspace.realtime.events import NOTE_UPDATED
from collabspace.services.membership import MembershipResolver, parse_uuid, project_members
from collabspace.services.project_service import resolve_scope

MAX_PAGE_SIZE = 100
VISIBILITIES = ("project", "private")


class NoteService:
    def __init__(self, db: AsyncSession, broadcaster: Broadcaster):
        self.db = db
        self.broadcaster = broadcaster
        self.membership = MembershipResolver(db)

    async def _get(self, note_id: Any) -> Note:
        nid = parse_uuid(note_id)
        note = await self.db.get(Note, nid) if nid else None
        if note is None:
            raise NotFound("not found")
        return note

    async def list_notes(
        self,
        user: CurrentUser,
        project_id: Optional[str] = None,
        tag: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> dict[str, Any]:
        scope = await resolve_scope(self.db, user, project_id)
        if scope is None:
            condition = Note.author_id == user.id
        elif require_role(user, "admin"):
            condition = or_(Note.author_id == user.id, Note.project_id == scope)
        else:
            # Other authors' private notes stay hidden, as in get_note.
            condition = or_(
                Note.author_id == user.id,
                and_(Note.project_id == scope, Note.visibility == "project"),
            )

        page = max(1, page)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        query = select(Note).where(condition)
        if not tag:
            total = (
                await self.db.execute(select(func.count()).select_from(Note).where(condition))
            ).scalar_one()
            query = query.offset((page - 1) * limit).limit(limit)
        result = await self.db.execute(
            query.order_by(Note.updated_at.desc(), Note.created_at.desc())
        )
        notes = list(result.scalars().all())
        if tag:
            # tags is a JSON list, so the tag filter runs here
            notes = [n for n in notes if tag in (n.tags or [])]
            total = len(notes)
            notes = notes[(page - 1) * limit : page * limit]

        total_pages = math.ceil(total / limit) if total else 0
        return {
            "data": notes,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": total_pages,
                "hasNext": page < total_pages,
                "hasPrev": page > 1,
            },
        }

    async def get_note(self, user: CurrentUser, note_id: Any) -> Note:
        note = await self._get(note_id)
        if str(note.author_id) == str(user.id) or require_role(user, "admin"):
            return note
        if note.visibility == "project" and note.project_id is not None:
            if await self.membership.is_member(user, note.project_id):
                return note
        raise Forbidden()

    async def create_note(
        self,
        user: CurrentUser,
        title: str,
        body_markdown: str = "",
        project_id: Optional[str] = None,
        tags: Optional[list[str]] = None,
        visibility: str = "project",
    ) -> Note:
        if not title or not title.strip():
            raise InvalidInput("title required")
        if visibility not in VISIBILITIES:
            raise InvalidInput("visibility must be project or private")
        scope = await resolve_scope(self.db, user, project_id)

        note = Note(
            title=title.strip(),
            body_markdown=body_markdown or "",
            project_id=scope,
            tags=[str(t) for t in (tags or [])],
            visibility=visibility,
            author_id=user.id,
        )
        self.db.add(note)
        await self.db.commit()
        return note

    async def update_note(
        self, user: CurrentUser, note_id: Any, changes: dict[str, Any]
    ) -> Note:
        note = await self._get(note_id)
        if str(note.author_id) != str(user.id) and not require_role(user, "admin"):
            raise Forbidden()

        if "title" in changes:
            if not changes["title"] or not changes["title"].strip():
                raise InvalidInput("invalid title")
            note.title = changes["title"].strip()
        if "body_markdown" in changes:
            note.body_markdown = changes["body_markdown"] or ""
        if "tags" in changes:
            note.tags = [str(t) for t in (changes["tags"] or [])]
        if "visibility" in changes:
            if changes["visibility"] not in VISIBILITIES:
                raise InvalidInput("visibility must be project or private")
            note.visibility = changes["visibility"]
        await self.db.commit()

        if note.project_id is not None and note.visibility == "project":
            project = await self.db.get(Project, note.project_id)
            if project is not None:
                await self.broadcaster.broadcast_many(
                    project_members(project),
                    {
                        "type": NOTE_UPDATED,
                        "noteId": str(note.id),
                        "title": note.title,
                        "projectId": str(note.project_id),
                        "updatedBy": str(user.id),
                    },
                    exclude=user.id,
                )
        return note

    async def delete_note(self, user: CurrentUser, note_id: Any) -> None:
        note = await self._get(note_id)
        if str(note.author_id) != str(user.id) and not require_role(user, "admin"):
            raise Forbidden()
        await self.db.delete(note)
        await self.db.commit()
