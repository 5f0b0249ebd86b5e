"""The SSE endpoint over a raw ASGI connection.

httpx's ASGITransport buffers the whole response body, so a stream that
never ends can't be read through `client`. These tests drive the app with
hand-written receive/send callables instead, the same way a server would.
"""

import asyncio
import json

import pytest

from collabspace.main import app

from conftest import signup


class RawConnection:
    """One GET request held open until disconnect() is called."""

    def __init__(self, path: str, headers: dict):
        self.scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": path,
            "raw_path": path.encode(),
            "query_string": b"",
            "root_path": "",
            "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
            "client": ("127.0.0.1", 50000),
            "server": ("test", 80),
        }
        self.messages: list[dict] = []
        self._requested = False
        self._gone = asyncio.Event()
        self.task: asyncio.Task = None

    async def receive(self) -> dict:
        if not self._requested:
            self._requested = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await self._gone.wait()
        return {"type": "http.disconnect"}

    async def send(self, message: dict) -> None:
        self.messages.append(message)

    def start(self) -> None:
        self.task = asyncio.create_task(app(self.scope, self.receive, self.send))

    async def disconnect(self) -> None:
        self._gone.set()
        await asyncio.wait_for(self.task, timeout=5)

    @property
    def status(self) -> int:
        return self.messages[0]["status"]

    @property
    def headers(self) -> dict[str, str]:
        return {k.decode(): v.decode() for k, v in self.messages[0]["headers"]}

    def body(self) -> str:
        return "".join(
            m.get("body", b"").decode()
            for m in self.messages
            if m["type"] == "http.response.body"
        )

    def events(self) -> list[dict]:
        return [
            json.loads(chunk[len("data: "):])
            for chunk in self.body().split("\n\n")
            if chunk.startswith("data: ")
        ]

    async def wait_for_event(self, event_type: str, timeout: float = 5) -> dict:
        async def poll():
            while True:
                for event in self.events():
                    if event["type"] == event_type:
                        return event
                await asyncio.sleep(0.01)

        return await asyncio.wait_for(poll(), timeout)


@pytest.mark.asyncio
async def test_stream_delivers_events_and_frees_slot_on_disconnect(client, broadcaster):
    alice, alice_h = await signup(client, "alice")
    bob, bob_h = await signup(client, "bob")
    r = await client.post("/api/projects", headers=alice_h, json={"name": "Live"})
    project = r.json()
    r = await client.post(
        "/api/invitations",
        headers=alice_h,
        json={"projectId": project["id"], "invitedUserEmail": bob["email"]},
    )
    await client.patch(
        "/api/invitations", headers=bob_h, json={"id": r.json()["id"], "action": "accept"}
    )

    conn = RawConnection("/api/realtime/updates", alice_h)
    conn.start()
    try:
        connected = await conn.wait_for_event("connected")
        assert connected["userId"] == alice["id"]
        assert conn.status == 200
        assert conn.headers["content-type"].startswith("text/event-stream")
        assert conn.headers["cache-control"] == "no-cache"
        assert conn.headers["connection"] == "keep-alive"
        assert conn.headers["x-accel-buffering"] == "no"
        assert broadcaster.has_user(alice["id"])

        r = await client.post(
            "/api/chat", headers=bob_h, json={"projectId": project["id"], "content": "ping"}
        )
        assert r.status_code == 201
        message = await conn.wait_for_event("chat-message")
        assert message["message"]["content"] == "ping"
        assert message["projectId"] == project["id"]
    finally:
        await conn.disconnect()

    assert not broadcaster.has_user(alice["id"])
    assert broadcaster.connection_count() == 0


@pytest.mark.asyncio
async def test_stream_refused_at_connection_cap(client, broadcaster):
    user, headers = await signup(client, "crowd")
    broadcaster.max_connections = 1
    await broadcaster.subscribe("someone-else", broadcaster.open_stream())

    r = await client.get("/api/realtime/updates", headers=headers)
    assert r.status_code == 503
    assert r.headers["retry-after"] == "30"
    assert not broadcaster.has_user(user["id"])
    assert broadcaster.connection_count() == 1
