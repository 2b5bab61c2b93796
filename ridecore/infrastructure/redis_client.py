"""
Redis connection pool.

Redis only backs the dispatch sweeper lock, so a short socket timeout is
enough: a sweep that cannot reach Redis fails its cycle (logged by the
worker loop) and the next cycle retries.
"""

import redis.asyncio as aioredis

from ridecore.config import settings

_pool = aioredis.ConnectionPool.from_url(
    settings.redis_url,
    decode_responses=True,
    socket_timeout=settings.redis_socket_timeout_seconds,
)


async def get_redis() -> aioredis.Redis:
    return aioredis.Redis(connection_pool=_pool)


async def close_redis() -> None:
    """Drop pooled connections on shutdown."""
    await _pool.disconnect()
