# pharmastock/services/stock_service_adjust.py
from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from pharmastock.core.errors import InsufficientStock, ValidationError
from pharmastock.core.identity import Actor
from pharmastock.models.batch import Batch
from pharmastock.models.enums import AdjustmentReason, AdjustmentType, MovementType
from pharmastock.models.product import Product
from pharmastock.models.stock_transaction import StockTransaction
from pharmastock.services.batch_store import BatchStore
from pharmastock.services.fefo_allocator import FefoAllocator
from pharmastock.services.ledger_writer import write_ledger
from pharmastock.services.product_catalog import ProductCatalog
from pharmastock.services.stock_events import StockChanged

log = logging.getLogger("pharmastock.adjust")


async def _named_batch(
    session: AsyncSession, product: Product, batch_id: int
) -> Batch:
    batch = await BatchStore.get_batch(session, product.tenant_id, batch_id, for_update=True)
    if int(batch.product_id) != int(product.id):
        raise ValidationError(
            f"batch {batch_id} does not belong to product {product.id}",
            context={"batch_id": int(batch_id), "product_id": int(product.id)},
        )
    return batch


async def adjust_impl(  # noqa: C901
    session: AsyncSession,
    *,
    actor: Actor,
    product_id: int,
    adjustment_type: AdjustmentType,
    quantity: int,
    reason: AdjustmentReason,
    batch_id: Optional[int],
    notes: Optional[str],
    today: date,
) -> Tuple[StockTransaction, StockChanged]:
    """
    手工库存调整（在调用方的工作单元内执行，入参已校验）：

    - add：
          指定了活跃批次 → 该批次加量；
          未指定 / 指定批次已失活 → 新建批次（今日入库，商品参考进价）。

    - remove：
          可用量 = 在手 - 预占；quantity > 可用量 → InsufficientStock；
          指定批次 → 只扣该批次未预占部分，不足即 InsufficientStock（不溢出到其他批次）；
          未指定 → FEFO 逐批扣减，扣空的批次失活。

    - 无论涉及多少批次，只写一条台账。
    """
    tenant_id = actor.tenant_id
    product = await ProductCatalog.get_product(session, tenant_id, product_id, for_update=True)
    before = await BatchStore.current_stock(session, tenant_id, product.id)

    touched: Optional[Batch] = None

    if adjustment_type == AdjustmentType.ADD:
        target: Optional[Batch] = None
        if batch_id is not None:
            named = await _named_batch(session, product, batch_id)
            if named.is_active:
                target = named
        if target is not None:
            await BatchStore.mutate_batch_quantity(session, target, quantity)
        else:
            target = await BatchStore.create_batch(
                session,
                tenant_id=tenant_id,
                product_id=product.id,
                quantity=quantity,
                unit_cost=product.purchase_price,
                received_date=today,
            )
        touched = target
        movement = MovementType.ADJUSTMENT_ADD
        change = quantity
    else:
        reserved = await BatchStore.reserved_stock(session, tenant_id, product.id)
        available = before - reserved
        if quantity > available:
            raise InsufficientStock(
                f"cannot remove {quantity}, only {available} available",
                context={
                    "product_id": int(product.id),
                    "required_qty": int(quantity),
                    "available_qty": int(available),
                    "reserved_qty": int(reserved),
                },
            )

        if batch_id is not None:
            named = await _named_batch(session, product, batch_id)
            if not named.is_active:
                raise ValidationError(
                    f"batch {batch_id} is inactive", context={"batch_id": int(batch_id)}
                )
            if quantity > named.free_quantity:
                raise InsufficientStock(
                    f"batch {batch_id} holds only {named.free_quantity} unreserved units",
                    context={
                        "batch_id": int(batch_id),
                        "required_qty": int(quantity),
                        "available_qty": int(named.free_quantity),
                    },
                )
            await BatchStore.mutate_batch_quantity(session, named, -quantity)
            touched = named
        else:
            batches = await BatchStore.list_active_batches(
                session, tenant_id, product.id, for_update=True
            )
            plan = FefoAllocator.plan(batches, need=quantity, product_id=product.id)
            await FefoAllocator.apply(session, plan)
            if len(plan) == 1:
                touched = plan[0][0]
        movement = MovementType.ADJUSTMENT_REMOVE
        change = -quantity

    tx = await write_ledger(
        session,
        tenant_id=tenant_id,
        product_id=product.id,
        transaction_type=movement,
        quantity_before=before,
        quantity_change=change,
        batch_id=touched.id if touched is not None else None,
        unit_price=product.purchase_price,
        batch_number=touched.batch_number if touched is not None else None,
        expiry_date=touched.expiry_date if touched is not None else None,
        reason_code=reason.value,
        notes=(notes or "").strip() or f"{reason.label} - {product.name}",
        created_by=actor.actor_id,
        created_by_name=actor.display_name,
    )
    log.info(
        "[adjust] tenant=%s product=%s %s %+d -> %s",
        tenant_id,
        product.id,
        reason.value,
        change,
        tx.quantity_after,
    )
    event = StockChanged.from_transaction(
        tx, product_name=product.name, threshold=product.min_stock_level
    )
    return tx, event
