"""Session store — opaque, expiring, server-side login sessions.

Learn: A session is a random token (the `sid` cookie value) mapped to a
user id with a fixed expiry. Nothing about the user lives in the cookie,
so logging out is just deleting the row.

Lookups are exact-match and do NOT filter on expiry; the authenticator
checks `is_expired()` itself. purge_expired() removes dead rows so an
expired cookie can never be revived.
"""

import asyncio
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from collabspace.config import settings
from collabspace.db.models import AuthSession, utcnow

logger = structlog.get_logger()

# 24 random bytes → 192 bits of entropy, 32 urlsafe characters.
SID_BYTES = 24


def new_sid() -> str:
    return secrets.token_urlsafe(SID_BYTES)


class SessionStore:
    """CRUD for AuthSession rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_session(
        self,
        user_id: uuid.UUID,
        ttl: Optional[timedelta] = None,
    ) -> AuthSession:
        """Persist a new session for a user and return it.

        Uniqueness of `sid` is enforced by the unique index; with 192 bits
        of randomness a collision is not a practical concern.
        """
        now = utcnow()
        session = AuthSession(
            sid=new_sid(),
            user_id=user_id,
            created_at=now,
            expires_at=now + (ttl or timedelta(days=settings.session_ttl_days)),
        )
        self.db.add(session)
        await self.db.commit()
        return session

    async def get_session_by_sid(self, sid: Optional[str]) -> Optional[AuthSession]:
        if not sid:
            return None
        result = await self.db.execute(
            select(AuthSession).where(AuthSession.sid == sid)
        )
        return result.scalars().first()

    async def delete_session_by_sid(self, sid: Optional[str]) -> None:
        """Delete a session. Unknown or empty sids are ignored."""
        if not sid:
            return
        await self.db.execute(delete(AuthSession).where(AuthSession.sid == sid))
        await self.db.commit()

    async def delete_sessions_for_user(
        self, user_id: uuid.UUID, keep_sid: Optional[str] = None
    ) -> int:
        """Delete every session of a user, except keep_sid when given."""
        stmt = delete(AuthSession).where(AuthSession.user_id == user_id)
        if keep_sid:
            stmt = stmt.where(AuthSession.sid != keep_sid)
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount or 0

    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete every session whose expiry has passed. Returns the count."""
        result = await self.db.execute(
            delete(AuthSession).where(AuthSession.expires_at <= (now or utcnow()))
        )
        await self.db.commit()
        return result.rowcount or 0


async def purge_loop(
    session_factory: async_sessionmaker,
    interval_seconds: float,
) -> None:
    """Background task: purge expired sessions every `interval_seconds`.

    Runs until cancelled. A failed pass is logged and retried on the next tick.
    """
    while True:
        try:
            async with session_factory() as db:
                purged = await SessionStore(db).purge_expired()
            if purged:
                logger.info("sessions.purged", count=purged)
        except Exception as e:
            logger.warning("sessions.purge_failed", error=str(e))
        await asyncio.sleep(interval_seconds)
