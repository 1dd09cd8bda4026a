"""
Redis connection management.

Redis only backs the token revocation list, so the client is created
lazily on first use and the API keeps working (fail-open) when Redis is down.
"""

from typing import Optional

import redis.asyncio as redis
from backend.app.core.config import settings

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """Return the shared async Redis client, creating it on first call."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            decode_responses=settings.redis_decode_responses,
        )
    return _redis_client


def set_redis_client(client) -> None:
    """Swap the shared client (used by the test suite's in-memory stand-in)."""
    global _redis_client
    _redis_client = client


async def ping_redis() -> bool:
    try:
        return bool(await get_redis_client().ping())
    except Exception:
        return False


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
