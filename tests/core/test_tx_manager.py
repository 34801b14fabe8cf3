# tests/core/test_tx_manager.py
from __future__ import annotations

import asyncio

import pytest

from pharmastock.core.errors import ConcurrencyConflict, ValidationError
from pharmastock.core.tx import TxManager
from pharmastock.db.locks import KeyedLocks, product_key


@pytest.mark.asyncio
async def test_conflict_is_retried_then_published(async_session_maker):
    published = []

    async def publisher(events):
        published.extend(events)

    tx = TxManager(async_session_maker, max_retries=3, backoff_ms=0, publisher=publisher)
    attempts = []

    async def work(uow):
        attempts.append(1)
        uow.collect(f"event-{len(attempts)}")
        if len(attempts) < 3:
            raise ConcurrencyConflict("stale")
        return "done"

    assert await tx.run(work, op="test") == "done"
    assert len(attempts) == 3
    # 只有最终提交的那次尝试的事件被发布
    assert published == ["event-3"]


@pytest.mark.asyncio
async def test_retries_exhausted_reraises(async_session_maker):
    tx = TxManager(async_session_maker, max_retries=2, backoff_ms=0)
    calls = []

    async def work(uow):
        calls.append(1)
        raise ConcurrencyConflict("always")

    with pytest.raises(ConcurrencyConflict):
        await tx.run(work)
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_other_errors_not_retried_and_nothing_published(async_session_maker):
    published = []

    async def publisher(events):
        published.extend(events)

    tx = TxManager(async_session_maker, backoff_ms=0, publisher=publisher)
    calls = []

    async def work(uow):
        calls.append(1)
        uow.collect("never")
        raise ValidationError("bad input")

    with pytest.raises(ValidationError):
        await tx.run(work)
    assert calls == [1]
    assert published == []


@pytest.mark.asyncio
async def test_same_key_is_serialized():
    locks = KeyedLocks()
    key = product_key(1, 1)
    order = []

    async def worker(name):
        async with locks.hold([key]):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))
    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])
    assert locks.held_keys() == []


@pytest.mark.asyncio
async def test_different_keys_do_not_block():
    locks = KeyedLocks()
    entered = asyncio.Event()

    async def holder():
        async with locks.hold([product_key(1, 1)]):
            await asyncio.wait_for(entered.wait(), timeout=1)

    async def other():
        async with locks.hold([product_key(1, 2)]):
            entered.set()

    await asyncio.gather(holder(), other())
