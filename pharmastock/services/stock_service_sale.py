# pharmastock/services/stock_service_sale.py
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from pharmastock.core.errors import InsufficientStock
from pharmastock.core.identity import Actor
from pharmastock.models.enums import MovementType
from pharmastock.models.stock_transaction import StockTransaction
from pharmastock.services.batch_store import BatchStore
from pharmastock.services.fefo_allocator import FefoAllocator
from pharmastock.services.ledger_writer import write_ledger
from pharmastock.services.product_catalog import ProductCatalog
from pharmastock.services.stock_events import StockChanged


async def sale_impl(
    session: AsyncSession,
    *,
    actor: Actor,
    product_id: int,
    quantity: int,
    unit_price: Optional[Decimal],
    reference_id: Optional[int] = None,
    consume_reserved: bool = False,
    notes: Optional[str] = None,
) -> Tuple[StockTransaction, StockChanged, List[Tuple[int, int]]]:
    """
    POS 出库：与 adjustment remove 相同的 FEFO 扣减，流水类型 sale。

    consume_reserved=True：扣减的是此前预占的单位（先释放预占再扣数量），
    用于“先预占、后结算”的处方 / 订单流程。
    """
    tenant_id = actor.tenant_id
    product = await ProductCatalog.get_product(session, tenant_id, product_id, for_update=True)
    before = await BatchStore.current_stock(session, tenant_id, product.id)
    batches = await BatchStore.list_active_batches(session, tenant_id, product.id, for_update=True)

    allocations: List[Tuple[int, int]] = []
    if consume_reserved:
        remaining = quantity
        plan = []
        for b in batches:
            if remaining <= 0:
                break
            take = min(remaining, int(b.reserved_quantity or 0))
            if take > 0:
                plan.append((b, take))
                remaining -= take
        if remaining > 0:
            raise InsufficientStock(
                f"only {quantity - remaining} reserved units for product {product.id}",
                context={
                    "product_id": int(product.id),
                    "required_qty": int(quantity),
                    "reserved_qty": int(quantity - remaining),
                },
            )
        for b, take in plan:
            await BatchStore.release(session, b, take)
            await BatchStore.mutate_batch_quantity(session, b, -take)
            allocations.append((int(b.id), int(take)))
    else:
        plan = FefoAllocator.plan(batches, need=quantity, product_id=product.id)
        await FefoAllocator.apply(session, plan)
        allocations = [(int(b.id), int(take)) for b, take in plan]

    single = plan[0][0] if len(plan) == 1 else None
    tx = await write_ledger(
        session,
        tenant_id=tenant_id,
        product_id=product.id,
        transaction_type=MovementType.SALE,
        quantity_before=before,
        quantity_change=-quantity,
        batch_id=single.id if single is not None else None,
        unit_price=unit_price,
        reference_type="sale",
        reference_id=reference_id,
        batch_number=single.batch_number if single is not None else None,
        expiry_date=single.expiry_date if single is not None else None,
        notes=(notes or "").strip() or f"Sale - {product.name}",
        created_by=actor.actor_id,
        created_by_name=actor.display_name,
    )
    event = StockChanged.from_transaction(
        tx, product_name=product.name, threshold=product.min_stock_level
    )
    return tx, event, allocations
