"""
Redis connection used for distributed locks.

Locks guard the notification cycle and settings initialisation; every
command is a single ``SET NX`` or release script, so a capped pool suffices.
"""

import redis.asyncio as aioredis

from ridebooking.config import settings

_pool = aioredis.ConnectionPool.from_url(
    settings.redis_url,
    decode_responses=True,
    max_connections=settings.redis_max_connections,
)


async def get_redis() -> aioredis.Redis:
    """Client on the shared lock pool; callers never close it."""
    return aioredis.Redis(connection_pool=_pool)
