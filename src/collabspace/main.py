"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown: Redis (optional), the
expired-session purge loop, the realtime relay listener, and closing
every open realtime stream before the engine is disposed.
"""

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from collabspace import __version__
from collabspace.api import api_router
from collabspace.auth.sessions import purge_loop
from collabspace.auth.strategies import build_authenticator
from collabspace.config import settings
from collabspace.db.engine import async_session_factory, engine
from collabspace.errors import register_exception_handlers
from collabspace.realtime.broadcaster import Broadcaster
from collabspace.realtime.pubsub import RedisRelay, close_redis, init_redis

logger = structlog.get_logger()


async def _cancel(task: asyncio.Task) -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "collabspace.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )
    broadcaster: Broadcaster = app.state.broadcaster
    tasks: list[asyncio.Task] = []

    # Redis is optional: without it, throttling uses the database and
    # realtime stays in-process.
    redis = None
    try:
        redis = await init_redis()
        logger.info("collabspace.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("collabspace.redis_unavailable", error=str(e))

    if redis is not None and settings.realtime_redis_relay:
        relay = RedisRelay(redis)
        broadcaster.relay = relay
        tasks.append(asyncio.create_task(relay.listen(broadcaster)))
        logger.info("collabspace.relay_started", channel=relay.channel)

    tasks.append(
        asyncio.create_task(
            purge_loop(async_session_factory, settings.session_purge_interval_seconds)
        )
    )

    yield

    logger.info("collabspace.shutdown")
    for task in tasks:
        await _cancel(task)
    broadcaster.relay = None
    await broadcaster.close()
    await close_redis()
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="CollabSpace",
        description="Collaborative workspace — projects, notes, todos, chat and live updates",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.broadcaster = Broadcaster(
        max_connections=settings.realtime_max_connections,
        queue_size=settings.realtime_queue_size,
    )
    app.state.authenticator = build_authenticator()
    register_exception_handlers(app)

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → Security → RequestId → handler

    from collabspace.middleware.request_id import RequestIdMiddleware
    from collabspace.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    return app


# Default app instance (used by uvicorn: collabspace.main:app)
app = create_app()
