"""Test fixtures — a fresh in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. COLLAB_DATABASE_URL points at SQLite before the app is imported, so
   the module-level engine never tries to reach PostgreSQL.
2. Each test gets its own in-memory engine. StaticPool keeps a single
   connection alive, so every session sees the same database.
3. get_db is overridden to hand out that session; app.state gets a fresh
   Broadcaster so streams never leak between tests.

No mock identity here: tests register and log in through the real
endpoints, which exercises the cookie and bearer strategies end to end.
"""

import os
import uuid

os.environ.setdefault("COLLAB_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("COLLAB_BCRYPT_ROUNDS", "4")

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from collabspace.db.engine import get_db
from collabspace.db.models import Base
from collabspace.main import app
from collabspace.realtime.broadcaster import Broadcaster

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"
PASSWORD = "secure_password_123"


@pytest_asyncio.fixture()
async def db_session():
    """Per-test session on a brand-new schema."""
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest_asyncio.fixture()
async def broadcaster():
    b = Broadcaster(max_connections=50, queue_size=20)
    app.state.broadcaster = b
    yield b
    await b.close()


@pytest_asyncio.fixture()
async def client(db_session, broadcaster):
    """HTTP client with the app's get_db overridden for testing."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ─── Helpers ─────────────────────────────────────────────


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


async def register(client, prefix: str = "user", name: str = None) -> dict:
    """Register a user and return the `user` payload."""
    r = await client.post(
        "/api/auth/register",
        json={"email": unique_email(prefix), "password": PASSWORD, "name": name or prefix},
    )
    assert r.status_code == 201, r.text
    return r.json()["user"]


async def login(client, email: str, password: str = PASSWORD) -> dict:
    """Log in and return bearer-style headers for that user.

    The client's cookie jar is cleared afterwards so that each test can act
    as several users without the most recent cookie winning.
    """
    r = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    sid = r.cookies["sid"]
    client.cookies.clear()
    return {"Cookie": f"sid={sid}"}


async def signup(client, prefix: str = "user") -> tuple[dict, dict]:
    """Register + log in. Returns (user, headers)."""
    user = await register(client, prefix)
    return user, await login(client, user["email"])
