"""Broadcaster — per-user fan-out of realtime events to open streams.

Learn: The broadcaster owns the only shared mutable state in the core: a
map of user id → set of open EventStreams (one per browser tab / device).
Every mutation of the map happens under a single asyncio.Lock, so a
subscribe racing a broadcast or an unsubscribe on the same user is safe.

Writes never block: each stream has a bounded queue and write() either
enqueues the pre-encoded frame or raises StreamClosed. A stream that fails
a write is closed and dropped; the other streams still get the frame and
the caller never sees the error. Posting a chat message must succeed
whether or not anyone is listening.

This state lives in one process. It does not survive restarts, and other
workers only see it through the optional RedisRelay (see pubsub.py).
"""

import asyncio
from collections.abc import AsyncIterator, Iterable
from typing import Any, Optional, Protocol

import structlog

from collabspace.realtime.events import HEARTBEAT_FRAME, connected_event, encode_event

logger = structlog.get_logger()

_CLOSE = object()


class StreamClosed(Exception):
    """Raised when writing to a stream that is closed or backed up."""


class ConnectionLimitExceeded(Exception):
    """Raised by subscribe() when the per-process stream cap is reached."""


class EventStream:
    """One open realtime connection: a bounded queue of SSE frames."""

    def __init__(self, maxsize: int = 100):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def write(self, frame: str) -> None:
        if self.closed:
            raise StreamClosed("stream is closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            raise StreamClosed("stream buffer is full")

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._queue.put_nowait(_CLOSE)
        except asyncio.QueueFull:
            # Reader is behind; it notices `closed` after its next frame.
            pass

    def drain(self) -> list[str]:
        """Pop every queued frame without waiting."""
        frames = []
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return frames
            if item is not _CLOSE:
                frames.append(item)

    async def frames(self, heartbeat_seconds: float) -> AsyncIterator[str]:
        """Yield frames in write order, plus a heartbeat after each idle period."""
        while not self.closed:
            try:
                item = await asyncio.wait_for(self._queue.get(), heartbeat_seconds)
            except asyncio.TimeoutError:
                yield HEARTBEAT_FRAME
                continue
            if item is _CLOSE:
                return
            yield item


class Relay(Protocol):
    """Cross-process transport the broadcaster can publish through."""

    async def publish(self, user_id: str, event: dict[str, Any]) -> None:
        ...


class Broadcaster:
    """Process-wide registry of open streams, keyed by user id."""

    def __init__(
        self,
        max_connections: int = 1000,
        queue_size: int = 100,
        relay: Optional[Relay] = None,
    ):
        self.max_connections = max_connections
        self.queue_size = queue_size
        self.relay = relay
        self._streams: dict[str, set[EventStream]] = {}
        self._count = 0
        self._lock = asyncio.Lock()

    def open_stream(self) -> EventStream:
        return EventStream(maxsize=self.queue_size)

    # ─── Registration ───────────────────────────────────

    async def subscribe(self, user_id: Any, stream: EventStream) -> None:
        """Register a stream and send it the `connected` acknowledgement."""
        uid = str(user_id)
        async with self._lock:
            if self._count >= self.max_connections:
                raise ConnectionLimitExceeded(
                    f"{self._count} realtime connections already open"
                )
            self._streams.setdefault(uid, set()).add(stream)
            self._count += 1
            stream.write(encode_event(connected_event(uid)))
        logger.info("realtime.subscribed", user_id=uid, connections=self._count)

    async def unsubscribe(self, user_id: Any, stream: EventStream) -> None:
        async with self._lock:
            self._discard(str(user_id), stream)

    def _discard(self, uid: str, stream: EventStream) -> None:
        # Caller holds the lock.
        streams = self._streams.get(uid)
        if not streams or stream not in streams:
            return
        streams.remove(stream)
        self._count -= 1
        if not streams:
            del self._streams[uid]

    # ─── Delivery ───────────────────────────────────────

    async def broadcast(self, user_id: Any, event: dict[str, Any]) -> int:
        """Push an event to every open stream of a user. Never raises.

        Returns the number of local streams reached; 0 when the event went
        out through the relay (delivery happens in the listener).
        """
        uid = str(user_id)
        try:
            if self.relay is not None:
                try:
                    await self.relay.publish(uid, event)
                    return 0
                except Exception as e:
                    logger.warning("realtime.relay_publish_failed", user_id=uid, error=str(e))
            return await self.deliver_local(uid, event)
        except Exception as e:
            logger.warning(
                "realtime.broadcast_failed",
                user_id=uid,
                event_type=event.get("type") if isinstance(event, dict) else None,
                error=str(e),
            )
            return 0

    async def broadcast_many(
        self,
        user_ids: Iterable[Any],
        event: dict[str, Any],
        exclude: Optional[Any] = None,
    ) -> None:
        skip = str(exclude) if exclude is not None else None
        for uid in {str(u) for u in user_ids}:
            if uid != skip:
                await self.broadcast(uid, event)

    async def deliver_local(self, user_id: Any, event: dict[str, Any]) -> int:
        """Write to this process's streams for a user. Returns streams reached."""
        uid = str(user_id)
        frame = encode_event(event)
        delivered = 0
        async with self._lock:
            for stream in list(self._streams.get(uid, ())):
                try:
                    stream.write(frame)
                    delivered += 1
                except Exception as e:
                    logger.warning("realtime.write_failed", user_id=uid, error=str(e))
                    stream.close()
                    self._discard(uid, stream)
        return delivered

    # ─── Introspection / lifecycle ──────────────────────

    def connection_count(self, user_id: Optional[Any] = None) -> int:
        if user_id is None:
            return self._count
        return len(self._streams.get(str(user_id), ()))

    def has_user(self, user_id: Any) -> bool:
        return str(user_id) in self._streams

    async def close(self) -> None:
        """Close every stream (app shutdown)."""
        async with self._lock:
            for streams in self._streams.values():
                for stream in streams:
                    stream.close()
            self._streams.clear()
            self._count = 0
