"""
Redis Configuration

Async Redis client backing request rate limits.
Redis is optional: when it is down the rate limiter falls back to memory.
"""

from redis.asyncio import Redis, from_url

from appointments.core.config import settings

redis_client: Redis | None = None


async def init_redis() -> Redis:
    """
    Initialize Redis connection.

    Call this on application startup.
    """
    global redis_client
    client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    await client.ping()
    redis_client = client
    return redis_client


async def get_redis() -> Redis | None:
    """Get Redis client instance, or None if Redis is not available."""
    return redis_client


def is_redis_available() -> bool:
    return redis_client is not None


async def close_redis() -> None:
    """Close Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
