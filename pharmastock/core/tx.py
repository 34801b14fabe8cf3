# pharmastock/core/tx.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pharmastock.core.errors import ConcurrencyConflict
from pharmastock.db.locks import KeyedLocks, LockKey
from pharmastock.db.uow import UnitOfWork
from pharmastock.metrics import CONCURRENCY_RETRIES

log = logging.getLogger("pharmastock.tx")

T = TypeVar("T")


class TxManager:
    """
    统一的事务执行器：

    - 每次尝试 = 一个全新的 UnitOfWork（新 session + 新事务 + 锁）
    - ConcurrencyConflict 整单重试，最多 max_retries 次，之后原样抛出
    - 其他异常不重试，直接透传（事务已回滚）
    - 提交成功后把工作单元收集到的事件交给 publisher（失败与事务无关）

    Handler 内部不得控事务。
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        locks: Optional[KeyedLocks] = None,
        max_retries: int = 3,
        backoff_ms: int = 20,
        publisher: Optional[Callable[[Sequence[Any]], Awaitable[None]]] = None,
    ) -> None:
        self.session_maker = session_maker
        self.locks = locks or KeyedLocks()
        self.max_retries = int(max_retries)
        self.backoff_ms = int(backoff_ms)
        self.publisher = publisher

    async def run(
        self,
        fn: Callable[[UnitOfWork], Awaitable[T]],
        *,
        lock_keys: Sequence[LockKey] = (),
        op: str = "stock",
    ) -> T:
        attempt = 0
        while True:
            uow = UnitOfWork(self.session_maker, self.locks, lock_keys=tuple(lock_keys))
            try:
                async with uow:
                    result = await fn(uow)
            except ConcurrencyConflict as e:
                if attempt >= self.max_retries:
                    log.warning("[tx] %s conflict, retries exhausted (%d): %s", op, attempt, e.message)
                    raise
                attempt += 1
                CONCURRENCY_RETRIES.labels(op=op).inc()
                log.info("[tx] %s conflict, retry %d/%d: %s", op, attempt, self.max_retries, e.message)
                if self.backoff_ms:
                    await asyncio.sleep(self.backoff_ms * attempt / 1000.0)
                continue

            if uow.events and self.publisher is not None:
                await self.publisher(list(uow.events))
            return result
