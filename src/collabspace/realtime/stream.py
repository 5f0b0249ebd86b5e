"""SSE endpoint — long-lived stream of realtime events for the current user.

Learn: GET /api/realtime/updates never completes on its own. The handler
subscribes a fresh EventStream with the broadcaster and returns a
StreamingResponse whose body generator forwards that stream's frames.
When the client goes away Starlette cancels the generator, and its
`finally` block unsubscribes the stream.

Frames on the wire:
    data: {"type":"connected","userId":"..."}\\n\\n    (always first)
    data: {...event...}\\n\\n
    : heartbeat\\n\\n                                    (after idle periods)
"""

import asyncio
from collections.abc import AsyncIterator

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from collabspace.auth.dependencies import get_current_user
from collabspace.auth.strategies import CurrentUser
from collabspace.config import settings
from collabspace.db.engine import get_db
from collabspace.errors import ServiceUnavailable
from collabspace.realtime.broadcaster import (
    Broadcaster,
    ConnectionLimitExceeded,
    EventStream,
)

logger = structlog.get_logger()
router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def get_broadcaster(request: Request) -> Broadcaster:
    """The app's broadcaster (one per process, created in create_app)."""
    return request.app.state.broadcaster


async def sse_frames(
    broadcaster: Broadcaster,
    user_id: str,
    stream: EventStream,
    heartbeat_seconds: float,
) -> AsyncIterator[str]:
    """Response body for one subscribed stream."""
    try:
        async for frame in stream.frames(heartbeat_seconds):
            yield frame
    finally:
        stream.close()
        logger.info("realtime.disconnected", user_id=user_id)
        # Runs while the response task is being cancelled; the slot must still be freed.
        await asyncio.shield(broadcaster.unsubscribe(user_id, stream))


@router.get("/realtime/updates")
async def realtime_updates(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    user_id = str(user.id)
    stream = broadcaster.open_stream()
    try:
        await broadcaster.subscribe(user_id, stream)
    except ConnectionLimitExceeded:
        logger.warning("realtime.connection_limit", user_id=user_id)
        raise ServiceUnavailable(
            "too many realtime connections", headers={"Retry-After": "30"}
        )

    # Auth is done; don't pin a pooled DB connection for the stream's lifetime.
    await db.close()

    return StreamingResponse(
        sse_frames(broadcaster, user_id, stream, settings.realtime_heartbeat_seconds),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
