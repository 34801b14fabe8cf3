# pharmastock/services/fefo_allocator.py
from __future__ import annotations

from typing import List, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from pharmastock.core.errors import InsufficientStock
from pharmastock.models.batch import Batch
from pharmastock.services.batch_store import BatchStore

Allocation = List[Tuple[Batch, int]]


class FefoAllocator:
    """
    FEFO 分配器

    核心思想：
    ------------------------------------------
    • 输入批次必须已按 FEFO 排好序（BatchStore.list_active_batches）
    • 只分配“未预占”部分：free = quantity - reserved_quantity
    • 贪心切片：每个批次取 min(剩余需求, free)
    • 不足 → InsufficientStock，且不做任何修改
    ------------------------------------------

    使用方式（必须由外层控制事务）：

        batches = await BatchStore.list_active_batches(session, t, p, for_update=True)
        plan = FefoAllocator.plan(batches, need=7, product_id=p)
        await FefoAllocator.apply(session, plan)
    """

    @staticmethod
    def plan(batches: Sequence[Batch], *, need: int, product_id: int) -> Allocation:
        remaining = int(need)
        out: Allocation = []
        for b in batches:
            if remaining <= 0:
                break
            take = min(remaining, b.free_quantity)
            if take > 0:
                out.append((b, take))
                remaining -= take

        if remaining > 0:
            available = int(need) - remaining
            raise InsufficientStock(
                f"insufficient stock for product {product_id}: need={need}, available={available}",
                context={
                    "product_id": int(product_id),
                    "required_qty": int(need),
                    "available_qty": int(available),
                    "short_qty": int(remaining),
                },
            )
        return out

    @staticmethod
    async def apply(session: AsyncSession, allocation: Allocation) -> None:
        """按计划逐批扣减；扣到 0 的批次自动失活。"""
        for batch, take in allocation:
            await BatchStore.mutate_batch_quantity(session, batch, -int(take))

    @staticmethod
    async def reserve(session: AsyncSession, allocation: Allocation) -> None:
        for batch, take in allocation:
            await BatchStore.reserve(session, batch, int(take))
