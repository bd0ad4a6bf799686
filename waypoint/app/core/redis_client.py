"""
Redis client and short-lived guard keys.

Redis is optional infrastructure for the engine: it only holds TTL'd
guard keys (e.g. the per-participant route in-flight marker). When it is
unreachable, guard helpers report "unavailable" instead of raising, and
callers carry on unguarded.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from waypoint.app.core.config import settings

logger = logging.getLogger("waypoint.redis")

# Create async Redis client
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """FastAPI dependency returning the Redis client; overridden in tests."""
    return redis_client


async def ping_redis() -> bool:
    """True if Redis answers a PING."""
    try:
        return bool(await redis_client.ping())
    except (RedisError, OSError):
        return False


async def acquire_guard(client, key: str, ttl_seconds: int) -> Optional[bool]:
    """
    SET key NX EX ttl.

    Returns:
        True if the guard was taken, False if someone else holds it,
        None if Redis is unavailable
    """
    try:
        acquired = await client.set(key, "1", nx=True, ex=ttl_seconds)
    except (RedisError, OSError) as exc:
        logger.warning("Guard %s unavailable: %s", key, exc)
        return None
    return bool(acquired)


async def release_guard(client, key: str) -> None:
    try:
        await client.delete(key)
    except (RedisError, OSError) as exc:
        # The TTL clears it eventually
        logger.warning("Could not release guard %s: %s", key, exc)
