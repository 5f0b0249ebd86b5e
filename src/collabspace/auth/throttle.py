"""Login throttling — a pluggable failed-attempt counter.

Learn: Counts failed logins per key (client IP) inside a fixed window.
Once a key reaches max_attempts, further logins are refused until the
window that started with its first failure has elapsed. A successful login
clears the key.

The counters live in a durable AttemptStore rather than process memory,
so restarts and multiple workers see the same numbers:
- SqlAttemptStore: the login_attempts table (default)
- RedisAttemptStore: INCR + EXPIRE keys, same approach as a per-minute
  request limiter
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

import redis.asyncio as aioredis
from sqlalchemy import case, delete, select, type_coerce
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from collabspace.db.models import LoginAttempt, UTCDateTime, utcnow

_UPSERT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


class AttemptStore(Protocol):
    async def get(self, key: str) -> Optional[tuple[int, datetime]]:
        """Return (attempts, first_attempt_at) or None."""
        ...

    async def increment(self, key: str, now: datetime, window: timedelta) -> None:
        ...

    async def clear(self, key: str) -> None:
        ...


class SqlAttemptStore:
    """Attempt counters in the main database.

    increment() is a single INSERT ... ON CONFLICT DO UPDATE, so concurrent
    failures for one key neither collide on the unique key nor lose counts.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _row(self, key: str) -> Optional[LoginAttempt]:
        result = await self.db.execute(
            select(LoginAttempt)
            .where(LoginAttempt.key == key)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get(self, key: str) -> Optional[tuple[int, datetime]]:
        row = await self._row(key)
        if row is None:
            return None
        return row.attempts, row.first_attempt_at

    async def increment(self, key: str, now: datetime, window: timedelta) -> None:
        insert = _UPSERT_INSERTS.get(self.db.bind.dialect.name)
        if insert is None:
            raise RuntimeError(
                f"login throttle has no upsert for dialect {self.db.bind.dialect.name!r}"
            )
        started = type_coerce(now, UTCDateTime())
        window_over = LoginAttempt.first_attempt_at <= type_coerce(now - window, UTCDateTime())
        stmt = (
            insert(LoginAttempt)
            .values(key=key, attempts=1, first_attempt_at=now)
            .on_conflict_do_update(
                index_elements=[LoginAttempt.key],
                set_={
                    "attempts": case((window_over, 1), else_=LoginAttempt.attempts + 1),
                    "first_attempt_at": case(
                        (window_over, started), else_=LoginAttempt.first_attempt_at
                    ),
                },
            )
        )
        await self.db.execute(stmt)
        await self.db.commit()

    async def clear(self, key: str) -> None:
        await self.db.execute(delete(LoginAttempt).where(LoginAttempt.key == key))
        await self.db.commit()


class RedisAttemptStore:
    """Attempt counters in Redis; keys expire with their window."""

    def __init__(self, redis: aioredis.Redis, prefix: str = "collabspace:login"):
        self.redis = redis
        self.prefix = prefix

    def _keys(self, key: str) -> tuple[str, str]:
        return f"{self.prefix}:{key}:count", f"{self.prefix}:{key}:first"

    async def get(self, key: str) -> Optional[tuple[int, datetime]]:
        count_key, first_key = self._keys(key)
        count, first = await self.redis.mget(count_key, first_key)
        if count is None or first is None:
            return None
        return int(count), datetime.fromtimestamp(float(first), tz=timezone.utc)

    async def increment(self, key: str, now: datetime, window: timedelta) -> None:
        count_key, first_key = self._keys(key)
        ttl = int(window.total_seconds())
        # First failure in a window fixes the window start.
        created = await self.redis.set(first_key, str(now.timestamp()), nx=True, ex=ttl)
        if created:
            await self.redis.set(count_key, 1, ex=ttl)
        else:
            await self.redis.incr(count_key)

    async def clear(self, key: str) -> None:
        await self.redis.delete(*self._keys(key))


@dataclass
class ThrottleDecision:
    allowed: bool
    remaining: int
    retry_after: int = 0  # seconds


class LoginThrottle:
    """Failed-login policy over any AttemptStore."""

    def __init__(
        self,
        store: AttemptStore,
        max_attempts: int = 5,
        window: timedelta = timedelta(minutes=15),
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.window = window

    async def check(self, key: str, now: Optional[datetime] = None) -> ThrottleDecision:
        now = now or utcnow()
        record = await self.store.get(key)
        if record is None:
            return ThrottleDecision(allowed=True, remaining=self.max_attempts - 1)

        attempts, first_attempt_at = record
        if now - first_attempt_at >= self.window:
            return ThrottleDecision(allowed=True, remaining=self.max_attempts - 1)

        if attempts >= self.max_attempts:
            left = (first_attempt_at + self.window - now).total_seconds()
            return ThrottleDecision(
                allowed=False, remaining=0, retry_after=max(1, math.ceil(left))
            )
        return ThrottleDecision(
            allowed=True, remaining=max(0, self.max_attempts - attempts - 1)
        )

    async def record_failure(self, key: str, now: Optional[datetime] = None) -> None:
        await self.store.increment(key, now or utcnow(), self.window)

    async def reset(self, key: str) -> None:
        await self.store.clear(key)


def client_key(request: Request) -> str:
    """Throttle key: first X-Forwarded-For hop, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"
