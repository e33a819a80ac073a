"""
Rate Limiting Module

Sliding-window request limits for the public write endpoints
(application submission and approver decisions). Uses Redis sorted sets
when Redis is connected and falls back to in-process memory otherwise.
"""

import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import HTTPException, Request, status
from redis.asyncio import Redis

from appointments.core import redis as redis_module

logger = logging.getLogger(__name__)

# In-memory fallback: {key: [timestamp, ...]} and {key: window_seconds}
_memory_store: dict[str, list[float]] = {}
_memory_windows: dict[str, int] = {}
_last_sweep = 0.0

SWEEP_INTERVAL_SECONDS = 60


class RateLimitExceeded(HTTPException):
    """Exception raised when rate limit is exceeded."""

    def __init__(self, limit: int, window_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "RATE_LIMIT_EXCEEDED",
                "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after_seconds": window_seconds,
            },
            headers={"Retry-After": str(window_seconds)},
        )


async def _check_rate_limit_redis(
    client: Redis,
    key: str,
    limit: int,
    window_seconds: int,
) -> bool:
    """
    Sliding window check using a Redis sorted set.

    Returns:
        True if request is allowed, False if rate limit exceeded
    """
    now = time.time()
    window_start = now - window_seconds

    pipe = client.pipeline()
    pipe.zremrangebyscore(key, 0, window_start)
    pipe.zcard(key)
    # Member must be unique even for requests in the same instant
    pipe.zadd(key, {f"{now}:{uuid.uuid4().hex}": now})
    pipe.expire(key, window_seconds)

    results = await pipe.execute()
    current_count = results[1]

    return current_count < limit


def _sweep_memory_store(now: float) -> None:
    """Drop keys whose timestamps have all left their window."""
    global _last_sweep

    if now - _last_sweep < SWEEP_INTERVAL_SECONDS:
        return
    _last_sweep = now

    for key in list(_memory_store):
        window_start = now - _memory_windows.get(key, 0)
        if not any(ts > window_start for ts in _memory_store[key]):
            del _memory_store[key]
            _memory_windows.pop(key, None)


def _check_rate_limit_memory(key: str, limit: int, window_seconds: int) -> bool:
    """
    Sliding window check using process memory.

    Only accurate for a single server instance.
    """
    now = time.time()
    window_start = now - window_seconds

    _sweep_memory_store(now)
    _memory_windows[key] = window_seconds

    timestamps = [ts for ts in _memory_store.get(key, []) if ts > window_start]

    if len(timestamps) >= limit:
        _memory_store[key] = timestamps
        return False

    timestamps.append(now)
    _memory_store[key] = timestamps
    return True


async def check_rate_limit(key: str, limit: int, window_seconds: int) -> bool:
    """
    Check if a request is within rate limits.

    Tries Redis first, falls back to in-memory storage.

    Args:
        key: Unique key for this rate limit (e.g., "approve:10.0.0.1")
        limit: Maximum requests allowed in the window
        window_seconds: Time window in seconds

    Returns:
        True if request is allowed, False if rate limit exceeded
    """
    client = redis_module.redis_client

    if client is not None:
        try:
            return await _check_rate_limit_redis(client, key, limit, window_seconds)
        except Exception as e:
            logger.warning(f"Redis rate limit check failed, using memory: {e}")

    return _check_rate_limit_memory(key, limit, window_seconds)


def client_ip_key(request: Request) -> str:
    """Default rate limit key: client IP + endpoint path."""
    client_ip = request.client.host if request.client else "unknown"
    return f"rate_limit:{client_ip}:{request.url.path}"


def rate_limiter(
    limit: int | Callable[[], int],
    window_seconds: int = 60,
    key_func: Callable[[Request], str] = client_ip_key,
) -> Callable[[Request], Awaitable[None]]:
    """
    Build a FastAPI dependency enforcing a rate limit.

    Usage:
        @router.post("", dependencies=[Depends(rate_limiter(10))])

    Args:
        limit: Maximum requests per window, or a callable read per request
        window_seconds: Time window in seconds
        key_func: Function deriving the rate limit key from the request

    Raises:
        RateLimitExceeded: When rate limit is exceeded (HTTP 429)
    """

    async def dependency(request: Request) -> None:
        max_requests = limit() if callable(limit) else limit
        key = key_func(request)

        if not await check_rate_limit(key, max_requests, window_seconds):
            logger.warning(f"Rate limit exceeded for {key}: {max_requests}/{window_seconds}s")
            raise RateLimitExceeded(max_requests, window_seconds)

    return dependency


def reset_memory_store() -> None:
    global _last_sweep

    _memory_store.clear()
    _memory_windows.clear()
    _last_sweep = 0.0


__all__ = [
    "rate_limiter",
    "check_rate_limit",
    "client_ip_key",
    "reset_memory_store",
    "RateLimitExceeded",
]
