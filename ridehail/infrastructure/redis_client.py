"""
Shared Redis connection pool.

Only the payment lock talks to Redis.  The pool is created on first use
so importing the API does not require a reachable server, and is closed
from the application lifespan.
"""

from typing import Optional

import redis.asyncio as aioredis

from ridehail.config import settings

_pool: Optional[aioredis.ConnectionPool] = None


async def get_redis() -> aioredis.Redis:
    """Return a Redis client backed by the shared connection pool."""
    global _pool
    if _pool is None:
        _pool = aioredis.ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=settings.redis_socket_timeout,
        )
    return aioredis.Redis(connection_pool=_pool)


async def close_redis() -> None:
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None
