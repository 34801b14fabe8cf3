# pharmastock/services/stock_service_reserve.py
from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from pharmastock.core.errors import ValidationError
from pharmastock.core.identity import Actor
from pharmastock.services.batch_store import BatchStore
from pharmastock.services.fefo_allocator import FefoAllocator
from pharmastock.services.product_catalog import ProductCatalog


async def reserve_impl(
    session: AsyncSession, *, actor: Actor, product_id: int, quantity: int
) -> Tuple[int, List[Tuple[int, int]]]:
    """
    预占：按 FEFO 把未预占单位转入 reserved_quantity。

    只改 reserved_quantity，不改在手总量，因此不写台账、不发事件。
    """
    product = await ProductCatalog.get_product(session, actor.tenant_id, product_id, for_update=True)
    batches = await BatchStore.list_active_batches(
        session, actor.tenant_id, product.id, for_update=True
    )
    plan = FefoAllocator.plan(batches, need=quantity, product_id=product.id)
    await FefoAllocator.reserve(session, plan)
    reserved = await BatchStore.reserved_stock(session, actor.tenant_id, product.id)
    return reserved, [(int(b.id), int(q)) for b, q in plan]


async def release_impl(
    session: AsyncSession,
    *,
    actor: Actor,
    product_id: int,
    quantity: int,
    batch_id: Optional[int] = None,
) -> Tuple[int, List[Tuple[int, int]]]:
    """释放预占：指定批次只释放该批次；否则按 FEFO 顺序释放。"""
    product = await ProductCatalog.get_product(session, actor.tenant_id, product_id, for_update=True)

    if batch_id is not None:
        batch = await BatchStore.get_batch(session, actor.tenant_id, batch_id, for_update=True)
        if int(batch.product_id) != int(product.id):
            raise ValidationError(
                f"batch {batch_id} does not belong to product {product.id}",
                context={"batch_id": int(batch_id), "product_id": int(product.id)},
            )
        candidates = [batch]
    else:
        candidates = await BatchStore.list_active_batches(
            session, actor.tenant_id, product.id, for_update=True
        )

    remaining = quantity
    plan = []
    for b in candidates:
        if remaining <= 0:
            break
        take = min(remaining, int(b.reserved_quantity or 0))
        if take > 0:
            plan.append((b, take))
            remaining -= take
    if remaining > 0:
        raise ValidationError(
            f"cannot release {quantity}, only {quantity - remaining} reserved",
            context={"product_id": int(product.id), "reserved_qty": int(quantity - remaining)},
        )

    for b, take in plan:
        await BatchStore.release(session, b, take)
    reserved = await BatchStore.reserved_stock(session, actor.tenant_id, product.id)
    return reserved, [(int(b.id), int(q)) for b, q in plan]
