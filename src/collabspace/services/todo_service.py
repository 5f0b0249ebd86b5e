"""Todo service — personal todos, optionally attached to a project."""

from datetime import date
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from collabspace.auth.strategies import CurrentUser, require_role
from collabspace.db.models import Todo
from collabspace.errors import Forbidden, InvalidInput, NotFound
from collabspace.services.membership import MembershipResolver, parse_uuid
from collabspace.services.project_service import resolve_scope


class TodoService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.membership = MembershipResolver(db)

    async def list_todos(
        self, user: CurrentUser, project_id: Optional[str] = None
    ) -> list[Todo]:
        """The caller's todos, or every todo of a project they belong to."""
        scope = await resolve_scope(self.db, user, project_id)
        query = select(Todo)
        if scope is None:
            query = query.where(Todo.owner_id == user.id)
        else:
            query = query.where(Todo.project_id == scope)
        result = await self.db.execute(query.order_by(Todo.created_at.desc()))
        return list(result.scalars().all())

    async def create_todo(
        self,
        user: CurrentUser,
        title: str,
        project_id: Optional[str] = None,
        tags: Optional[list[str]] = None,
        due_date: Optional[date] = None,
    ) -> Todo:
        if not title or not title.strip():
            raise InvalidInput("title required")
        scope = await resolve_scope(self.db, user, project_id)
        todo = Todo(
            title=title.strip(),
            project_id=scope,
            owner_id=user.id,
            tags=[str(t) for t in (tags or [])],
            due_date=due_date,
        )
        self.db.add(todo)
        await self.db.commit()
        return todo

    async def update_todo(
        self, user: CurrentUser, todo_id: Any, changes: dict[str, Any]
    ) -> Todo:
        tid = parse_uuid(todo_id)
        todo = await self.db.get(Todo, tid) if tid else None
        if todo is None:
            raise NotFound("not found")

        allowed = str(todo.owner_id) == str(user.id) or require_role(user, "admin")
        if not allowed and todo.project_id is not None:
            allowed = await self.membership.is_member(user, todo.project_id)
        if not allowed:
            raise Forbidden()

        if "title" in changes:
            if not changes["title"] or not changes["title"].strip():
                raise InvalidInput("title required")
            todo.title = changes["title"].strip()
        if "done" in changes and changes["done"] is not None:
            todo.done = bool(changes["done"])
        if "tags" in changes:
            todo.tags = [str(t) for t in (changes["tags"] or [])]
        if "due_date" in changes:
            todo.due_date = changes["due_date"]
        await self.db.commit()
        return todo
