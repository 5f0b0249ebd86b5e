"""Redis pub/sub relay — cross-process broadcast for multi-worker deployments.

Learn: The in-process broadcaster only reaches streams held by the worker
that handled the request. With the relay enabled, broadcast() publishes
{userId, event} on one Redis channel instead, and every worker runs a
listener that hands each message to its own broadcaster's deliver_local().

Redis pub/sub is fire-and-forget, which matches the realtime contract:
if no one is listening the message is lost and clients re-fetch lists
after reconnecting.
"""

import asyncio
import json
from typing import Any, Optional

import redis.asyncio as aioredis
import structlog

from collabspace.config import settings

logger = structlog.get_logger()

CHANNEL = "collabspace:realtime"

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    """Initialize the Redis connection pool.

    The pool is only published once a ping succeeds, so redis_available()
    never reports a server that was down at startup.
    """
    global _redis
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise
    _redis = client
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


def redis_available() -> bool:
    return _redis is not None


class RedisRelay:
    """Publishes broadcasts to Redis and delivers them back locally."""

    def __init__(self, redis: aioredis.Redis, channel: str = CHANNEL):
        self.redis = redis
        self.channel = channel

    async def publish(self, user_id: str, event: dict[str, Any]) -> None:
        payload = json.dumps({"userId": user_id, "event": event}, default=str)
        await self.redis.publish(self.channel, payload)

    async def listen(self, broadcaster) -> None:
        """Forward relay messages to local streams until cancelled."""
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    data = json.loads(message["data"])
                    await broadcaster.deliver_local(data["userId"], data["event"])
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning("realtime.relay_bad_message", error=str(e))
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
