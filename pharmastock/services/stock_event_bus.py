# pharmastock/services/stock_event_bus.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence, Set

from pharmastock.metrics import STOCK_MUTATIONS
from pharmastock.services.stock_events import StockChanged

log = logging.getLogger("pharmastock.events")

Handler = Callable[[StockChanged], Awaitable[None]]


class StockEventBus:
    """
    库存事件总线（进程内）：

    - 只接收“已提交”的事件（由 TxManager 在 commit 之后调用 publish）
    - inline：按订阅顺序逐个 await handler
    - background：每个事件调度为 asyncio task，drain() 等待全部完成
    - handler 异常只记日志，绝不影响已提交的库存变更
    """

    def __init__(self, *, mode: str = "inline") -> None:
        if mode not in ("inline", "background"):
            raise ValueError(f"unknown event dispatch mode: {mode!r}")
        self.mode = mode
        self._handlers: List[Handler] = []
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, handler: Handler) -> None:
        self._handlers.append(handler)

    async def publish(self, events: Sequence[StockChanged]) -> None:
        for ev in events:
            STOCK_MUTATIONS.labels(movement_type=ev.movement_type).inc()
            if self.mode == "inline":
                await self._dispatch(ev)
            else:
                task = asyncio.create_task(self._dispatch(ev))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

    async def _dispatch(self, event: StockChanged) -> None:
        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception:
                log.exception(
                    "[events] handler %r failed tenant=%s product=%s type=%s",
                    getattr(handler, "__qualname__", handler),
                    event.tenant_id,
                    event.product_id,
                    event.movement_type,
                )

    async def drain(self) -> None:
        """等待所有后台分发任务结束（测试 / 优雅停机用）。"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
