# pharmastock/services/batch_store.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pharmastock.core.errors import InvalidQuantity, NotFound, ValidationError
from pharmastock.models.batch import Batch


def fefo_order():
    """
    FEFO 排序（全系统唯一口径）：
        1. expiry_date ASC，NULL 排最后
        2. received_date ASC
        3. id ASC（稳定 tie-breaker）
    """
    return (
        Batch.expiry_date.is_(None).asc(),
        Batch.expiry_date.asc(),
        Batch.received_date.asc(),
        Batch.id.asc(),
    )


class BatchStore:
    """
    批次存储：回答“商品 X 实物在手多少、分布在哪些批次”。

    - current_stock = 活跃批次 quantity 之和（计算投影，不缓存运行总量）
    - 所有写方法只改 ORM 对象并 flush，事务由外层 UnitOfWork 控制
    """

    @staticmethod
    async def current_stock(session: AsyncSession, tenant_id: int, product_id: int) -> int:
        row = await session.execute(
            select(func.coalesce(func.sum(Batch.quantity), 0)).where(
                Batch.tenant_id == int(tenant_id),
                Batch.product_id == int(product_id),
                Batch.is_active.is_(True),
            )
        )
        return int(row.scalar_one() or 0)

    @staticmethod
    async def reserved_stock(session: AsyncSession, tenant_id: int, product_id: int) -> int:
        row = await session.execute(
            select(func.coalesce(func.sum(Batch.reserved_quantity), 0)).where(
                Batch.tenant_id == int(tenant_id),
                Batch.product_id == int(product_id),
                Batch.is_active.is_(True),
            )
        )
        return int(row.scalar_one() or 0)

    @staticmethod
    async def list_active_batches(
        session: AsyncSession,
        tenant_id: int,
        product_id: int,
        *,
        for_update: bool = False,
    ) -> List[Batch]:
        """活跃批次，按 FEFO 排序（到期早的在前，无效期的最后）。"""
        stmt = (
            select(Batch)
            .where(
                Batch.tenant_id == int(tenant_id),
                Batch.product_id == int(product_id),
                Batch.is_active.is_(True),
            )
            .order_by(*fefo_order())
        )
        if for_update:
            stmt = stmt.with_for_update()
        return list((await session.execute(stmt)).scalars().all())

    @staticmethod
    async def get_batch(
        session: AsyncSession,
        tenant_id: int,
        batch_id: int,
        *,
        for_update: bool = False,
    ) -> Batch:
        stmt = select(Batch).where(Batch.id == int(batch_id), Batch.tenant_id == int(tenant_id))
        if for_update:
            stmt = stmt.with_for_update()
        batch = (await session.execute(stmt)).scalars().first()
        if batch is None:
            raise NotFound(f"Batch not found: id={batch_id}", context={"batch_id": int(batch_id)})
        return batch

    @staticmethod
    async def create_batch(
        session: AsyncSession,
        *,
        tenant_id: int,
        product_id: int,
        quantity: int,
        unit_cost: Any,
        received_date: date,
        expiry_date: Optional[date] = None,
        batch_number: Optional[str] = None,
        lot_number: Optional[str] = None,
        warehouse_id: Optional[int] = None,
        supplier_id: Optional[int] = None,
        purchase_order_id: Optional[int] = None,
    ) -> Batch:
        qty = int(quantity)
        if qty <= 0:
            raise ValidationError("新批次数量必须 > 0", context={"quantity": qty})

        batch = Batch(
            tenant_id=int(tenant_id),
            product_id=int(product_id),
            quantity=qty,
            reserved_quantity=0,
            unit_cost=Decimal(str(unit_cost)) if unit_cost is not None else None,
            batch_number=(batch_number or None),
            lot_number=(lot_number or None),
            expiry_date=expiry_date,
            received_date=received_date,
            warehouse_id=warehouse_id,
            supplier_id=supplier_id,
            purchase_order_id=purchase_order_id,
            is_active=True,
        )
        session.add(batch)
        await session.flush()
        return batch

    @staticmethod
    async def mutate_batch_quantity(session: AsyncSession, batch: Batch, delta: int) -> int:
        """
        批次数量增减：

        - 结果 < 0 或 < reserved_quantity → InvalidQuantity（对象不做任何修改）
        - 结果 == 0 ⇔ is_active = False
        """
        d = int(delta)
        new_qty = int(batch.quantity) + d
        if new_qty < 0:
            raise InvalidQuantity(
                f"batch quantity would go negative: qty={batch.quantity}, delta={d}",
                context={"batch_id": batch.id, "quantity": int(batch.quantity), "delta": d},
            )
        if new_qty < int(batch.reserved_quantity or 0):
            raise InvalidQuantity(
                f"batch quantity would drop below reserved: reserved={batch.reserved_quantity}, "
                f"new_qty={new_qty}",
                context={"batch_id": batch.id, "reserved_quantity": int(batch.reserved_quantity)},
            )

        batch.quantity = new_qty
        batch.is_active = new_qty > 0
        await session.flush()
        return new_qty

    @staticmethod
    async def reserve(session: AsyncSession, batch: Batch, qty: int) -> int:
        q = int(qty)
        if q <= 0:
            raise ValidationError("预占数量必须 > 0", context={"quantity": q})
        if q > batch.free_quantity:
            raise InvalidQuantity(
                f"reserve exceeds free quantity: free={batch.free_quantity}, qty={q}",
                context={"batch_id": batch.id, "free_quantity": batch.free_quantity},
            )
        batch.reserved_quantity = int(batch.reserved_quantity or 0) + q
        await session.flush()
        return int(batch.reserved_quantity)

    @staticmethod
    async def release(session: AsyncSession, batch: Batch, qty: int) -> int:
        q = int(qty)
        if q <= 0:
            raise ValidationError("释放数量必须 > 0", context={"quantity": q})
        if q > int(batch.reserved_quantity or 0):
            raise InvalidQuantity(
                f"release exceeds reserved: reserved={batch.reserved_quantity}, qty={q}",
                context={"batch_id": batch.id, "reserved_quantity": int(batch.reserved_quantity)},
            )
        batch.reserved_quantity = int(batch.reserved_quantity) - q
        await session.flush()
        return int(batch.reserved_quantity)
