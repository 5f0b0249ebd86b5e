"""Health endpoint tests."""

import pytest


@pytest.mark.asyncio
async def test_health_returns_ok(client):
    """Health endpoint should return server status, version and DB state."""
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["server"] == "ok"
    assert data["database"] == "ok"
    assert data["status"] == "healthy"
    assert "version" in data


@pytest.mark.asyncio
async def test_health_reports_realtime_connections(client, broadcaster):
    await broadcaster.subscribe("someone", broadcaster.open_stream())
    resp = await client.get("/api/health")
    assert resp.json()["realtimeConnections"] == 1
