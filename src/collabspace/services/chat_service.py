"""Chat service — project chat history and message posting.

Learn: post_message() commits the message first and only then fans out a
`chat-message` event to the other members. If the process dies between
the two, the message is durable and simply shows up on the next fetch.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from collabspace.auth.strategies import CurrentUser
from collabspace.db.models import ChatMessage, User
from collabspace.errors import InvalidInput
from collabspace.realtime.broadcaster import Broadcaster
from collabspace.realtime.events import CHAT_MESSAGE
from collabspace.services.membership import project_members
from collabspace.services.project_service import ProjectService

MAX_MESSAGE_LENGTH = 5000
MAX_PAGE_SIZE = 200


def author_info(user: Optional[User | CurrentUser]) -> Optional[dict]:
    if user is None:
        return None
    return {"id": str(user.id), "name": user.name, "email": user.email}


def message_to_dict(message: ChatMessage, author: Optional[dict]) -> dict[str, Any]:
    return {
        "id": str(message.id),
        "projectId": str(message.project_id),
        "authorId": str(message.author_id),
        "content": message.content,
        "createdAt": message.created_at.isoformat(),
        "author": author,
    }


class ChatService:
    def __init__(self, db: AsyncSession, broadcaster: Broadcaster):
        self.db = db
        self.broadcaster = broadcaster
        self.projects = ProjectService(db)

    async def list_messages(
        self,
        user: CurrentUser,
        project_id: Any,
        limit: int = 50,
        before: Optional[datetime] = None,
    ) -> list[dict[str, Any]]:
        """Latest `limit` messages (before `before`), oldest first."""
        project = await self.projects.get_for_member(user, project_id)
        limit = max(1, min(limit, MAX_PAGE_SIZE))

        query = select(ChatMessage).where(ChatMessage.project_id == project.id)
        if before is not None:
            query = query.where(ChatMessage.created_at < before)
        query = query.order_by(ChatMessage.created_at.desc()).limit(limit)
        result = await self.db.execute(query)
        messages = list(result.scalars().all())
        messages.reverse()

        author_ids = {m.author_id for m in messages}
        authors: dict[str, dict] = {}
        if author_ids:
            rows = await self.db.execute(select(User).where(User.id.in_(author_ids)))
            authors = {str(u.id): author_info(u) for u in rows.scalars().all()}
        return [message_to_dict(m, authors.get(str(m.author_id))) for m in messages]

    async def post_message(
        self, user: CurrentUser, project_id: Any, content: str
    ) -> dict[str, Any]:
        if not isinstance(content, str) or not content.strip():
            raise InvalidInput("content must be non-empty string")
        if len(content) > MAX_MESSAGE_LENGTH:
            raise InvalidInput(f"message too long (max {MAX_MESSAGE_LENGTH} chars)")

        project = await self.projects.get_for_member(user, project_id)
        message = ChatMessage(
            project_id=project.id,
            author_id=user.id,
            content=content.strip(),
        )
        self.db.add(message)
        await self.db.commit()

        body = message_to_dict(message, author_info(user))
        await self.broadcaster.broadcast_many(
            project_members(project),
            {"type": CHAT_MESSAGE, "projectId": str(project.id), "message": body},
            exclude=user.id,
        )
        return body
