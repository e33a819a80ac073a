"""
Per-Record Locks

Serializes read-validate-write sequences on a single application inside
this process. Different application ids never contend. Cross-process
safety comes from the optimistic ``version`` column on the row.

Usage:
    async with record_lock(application_id):
        ...
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

_locks: dict[str, asyncio.Lock] = {}
_waiters: dict[str, int] = {}


@asynccontextmanager
async def record_lock(key: str) -> AsyncIterator[None]:
    """Hold the lock for ``key`` for the duration of the block."""
    lock = _locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _locks[key] = lock
    _waiters[key] = _waiters.get(key, 0) + 1

    try:
        async with lock:
            yield
    finally:
        _waiters[key] -= 1
        if _waiters[key] == 0:
            # Nobody else holds or awaits this key
            del _waiters[key]
            del _locks[key]


def active_lock_count() -> int:
    """Number of keys currently held or awaited."""
    return len(_locks)
