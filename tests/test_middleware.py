"""Tests for middleware — security headers, request IDs, error shapes."""

import pytest
from httpx import ASGITransport, AsyncClient

from collabspace.main import app


@pytest.mark.asyncio
async def test_security_headers_on_health(client):
    r = await client.get("/api/health")
    assert r.status_code == 200
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["X-XSS-Protection"] == "1; mode=block"
    assert r.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "Strict-Transport-Security" not in r.headers
    assert "Cache-Control" not in r.headers


@pytest.mark.asyncio
async def test_request_id_generated(client):
    r1 = await client.get("/api/health")
    r2 = await client.get("/api/health")
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_propagated(client):
    r = await client.get("/api/health", headers={"X-Request-ID": "test-trace-12345"})
    assert r.headers["X-Request-ID"] == "test-trace-12345"


@pytest.mark.asyncio
async def test_unknown_route_json_error(client):
    r = await client.get("/api/does-not-exist")
    assert r.status_code == 404
    assert r.json() == {"error": "Not Found"}


@pytest.mark.asyncio
async def test_realtime_requires_auth(client):
    r = await client.get("/api/realtime/updates")
    assert r.status_code == 401
    assert r.json() == {"error": "unauthenticated"}


@pytest.mark.asyncio
async def test_unexpected_error_is_opaque_500(client, monkeypatch):
    """Storage failures surface as a bare 500 without internals."""
    from collabspace.services.project_service import ProjectService
    from conftest import signup

    _, headers = await signup(client, "boom")

    async def explode(self, user):
        raise RuntimeError("connection reset by peer")

    monkeypatch.setattr(ProjectService, "list_for_user", explode)

    # Starlette re-raises after the 500 handler runs; keep the response instead.
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.get("/api/projects", headers=headers)
    assert r.status_code == 500
    assert r.json() == {"error": "internal"}
