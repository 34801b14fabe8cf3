# pharmastock/db/uow.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pharmastock.db.locks import KeyedLocks, LockKey


@dataclass
class UnitOfWork:
    """
    事务边界：进入即加锁 + 开事务；正常退出 commit，异常 rollback；最后释放锁。

    - lock_keys：本工作单元需要串行化的 key（商品 / 采购单）
    - events：提交成功后才允许发布的领域事件（由 TxManager 统一发布）
    """

    session_maker: async_sessionmaker[AsyncSession]
    locks: KeyedLocks
    lock_keys: Sequence[LockKey] = ()
    session: Optional[AsyncSession] = None
    events: List[Any] = field(default_factory=list)
    committed: bool = False
    _lock_cm: Any = None

    async def __aenter__(self) -> "UnitOfWork":
        self._lock_cm = self.locks.hold(self.lock_keys)
        await self._lock_cm.__aenter__()
        try:
            self.session = self.session_maker()
            await self.session.begin()
        except BaseException as exc:
            await self._lock_cm.__aexit__(type(exc), exc, exc.__traceback__)
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if self.session is not None:
                try:
                    if exc_type is None:
                        await self.session.commit()
                        self.committed = True
                    else:
                        await self.session.rollback()
                finally:
                    await self.session.close()
        finally:
            await self._lock_cm.__aexit__(exc_type, exc, tb)

    def collect(self, event: Any) -> None:
        self.events.append(event)
