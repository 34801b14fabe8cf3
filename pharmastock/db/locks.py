# pharmastock/db/locks.py
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable, Iterable, List, Tuple

LockKey = Tuple[Hashable, ...]


def product_key(tenant_id: int, product_id: int) -> LockKey:
    return (int(tenant_id), "product", int(product_id))


def purchase_order_key(tenant_id: int, order_id: int) -> LockKey:
    return (int(tenant_id), "po", int(order_id))


class KeyedLocks:
    """
    进程内按 key 的互斥锁表：

    - 同一 key 的工作单元串行执行（锁覆盖整个事务，含 commit）
    - 无人持有/等待的 key 会被回收，表不会无限增长
    - 多 key 时按排序后的顺序加锁，避免交叉死锁

    跨进程的串行化由事务内的 SELECT ... FOR UPDATE 负责。
    """

    def __init__(self) -> None:
        self._locks: Dict[LockKey, asyncio.Lock] = {}
        self._waiters: Dict[LockKey, int] = {}

    def _acquire_entry(self, key: LockKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
            self._waiters[key] = 0
        self._waiters[key] += 1
        return lock

    def _release_entry(self, key: LockKey) -> None:
        self._waiters[key] -= 1
        if self._waiters[key] <= 0:
            self._waiters.pop(key, None)
            self._locks.pop(key, None)

    @asynccontextmanager
    async def hold(self, keys: Iterable[LockKey]) -> AsyncIterator[None]:
        ordered: List[LockKey] = sorted(set(keys), key=repr)
        acquired: List[LockKey] = []
        try:
            for key in ordered:
                lock = self._acquire_entry(key)
                try:
                    await lock.acquire()
                except BaseException:
                    self._release_entry(key)
                    raise
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
                self._release_entry(key)

    def held_keys(self) -> List[LockKey]:
        return [k for k, lock in self._locks.items() if lock.locked()]
