"""Async SQLAlchemy engine and session factory.

SQLAlchemy 2.0 async mode: create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via
FastAPI. SQLite URLs (local dev, tests) get the driver's default pool.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from collabspace.config import settings


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"echo": settings.debug}
    # Connection pool: 5 steady, up to 20 under load.
    return {"echo": settings.debug, "pool_size": 5, "max_overflow": 15}


engine = create_async_engine(
    settings.database_url, **_engine_options(settings.database_url)
)

# Session factory: each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
