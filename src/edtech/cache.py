"""Redis connection used by the rate limiter.

Learn: Redis is optional. With EDTECH_REDIS_URL unset the app never
connects and rate limiting is skipped; the auth flow itself keeps all
of its state in the database.
"""

from typing import Optional

import redis.asyncio as aioredis


async def connect_redis(url: str) -> Optional[aioredis.Redis]:
    """Open a connection pool and verify it. Returns None when url is empty."""
    if not url:
        return None
    client = aioredis.from_url(url, encoding="utf-8", decode_responses=True)
    await client.ping()
    return client


async def close_redis(client: Optional[aioredis.Redis]) -> None:
    if client is not None:
        await client.aclose()
