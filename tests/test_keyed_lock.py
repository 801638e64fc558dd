"""Tests for the per-key lock registry."""

import asyncio

import pytest

from heimdall.util.keyed_lock import KeyedLock


@pytest.mark.asyncio
async def test_same_key_is_serialised():
    locks = KeyedLock()
    order = []

    async def worker(tag):
        async with locks.hold("member"):
            order.append(f"{tag}-start")
            await asyncio.sleep(0.01)
            order.append(f"{tag}-end")

    await asyncio.gather(worker("a"), worker("b"))

    assert order == ["a-start", "a-end", "b-start", "b-end"]


@pytest.mark.asyncio
async def test_different_keys_do_not_contend():
    locks = KeyedLock()
    entered = asyncio.Event()

    async def holder():
        async with locks.hold("one"):
            await entered.wait()

    task = asyncio.create_task(holder())
    await asyncio.sleep(0)
    assert locks.is_locked("one")

    async with locks.hold("two"):
        entered.set()
    await task


@pytest.mark.asyncio
async def test_registry_is_emptied_after_release():
    locks = KeyedLock()

    async with locks.hold(("guild", "user")):
        assert len(locks) == 1

    assert len(locks) == 0
    assert not locks.is_locked(("guild", "user"))


@pytest.mark.asyncio
async def test_lock_released_on_error():
    locks = KeyedLock()

    with pytest.raises(ValueError):
        async with locks.hold("k"):
            raise ValueError("boom")

    assert len(locks) == 0
