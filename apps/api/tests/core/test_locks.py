"""
Unit tests for per-record locks.
"""

import asyncio

import pytest

from appointments.core.locks import active_lock_count, record_lock


@pytest.mark.asyncio
async def test_same_key_is_serialized():
    events: list[str] = []

    async def worker(name: str):
        async with record_lock("APP-1"):
            events.append(f"{name}-start")
            await asyncio.sleep(0.01)
            events.append(f"{name}-end")

    await asyncio.gather(worker("a"), worker("b"))

    assert events in (
        ["a-start", "a-end", "b-start", "b-end"],
        ["b-start", "b-end", "a-start", "a-end"],
    )


@pytest.mark.asyncio
async def test_different_keys_do_not_block():
    inside = asyncio.Event()

    async def holder():
        async with record_lock("APP-1"):
            await inside.wait()

    task = asyncio.create_task(holder())
    await asyncio.sleep(0)

    async with record_lock("APP-2"):
        inside.set()

    await task


@pytest.mark.asyncio
async def test_locks_are_released():
    async with record_lock("APP-3"):
        assert active_lock_count() >= 1

    with pytest.raises(RuntimeError):
        async with record_lock("APP-3"):
            raise RuntimeError("fail inside")

    assert active_lock_count() == 0
