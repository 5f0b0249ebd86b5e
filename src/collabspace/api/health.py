"""Health check endpoint.

Verifies the server is running, the database answers, and reports how
many realtime streams this process is holding.
"""

from fastapi import APIRouter, Request
from sqlalchemy import text

from collabspace import __version__
from collabspace.db.engine import engine

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    status = "healthy" if checks["database"] == "ok" else "degraded"
    broadcaster = getattr(request.app.state, "broadcaster", None)
    return {
        "status": status,
        **checks,
        "realtimeConnections": broadcaster.connection_count() if broadcaster else 0,
    }
