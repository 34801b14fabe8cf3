# pharmastock/services/stock_service_receive.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from pharmastock.core.identity import Actor
from pharmastock.models.batch import Batch
from pharmastock.models.enums import MovementType
from pharmastock.models.stock_transaction import StockTransaction
from pharmastock.services.batch_store import BatchStore
from pharmastock.services.ledger_writer import write_ledger
from pharmastock.services.product_catalog import ProductCatalog
from pharmastock.services.stock_events import StockChanged


async def receive_impl(
    session: AsyncSession,
    *,
    actor: Actor,
    product_id: int,
    quantity: int,
    received_date: date,
    unit_cost: Optional[Decimal] = None,
    expiry_date: Optional[date] = None,
    batch_number: Optional[str] = None,
    lot_number: Optional[str] = None,
    supplier_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
    purchase_order_id: Optional[int] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    notes: Optional[str] = None,
) -> Tuple[Batch, StockTransaction, StockChanged]:
    """
    入库：一个新批次 + 一条 purchase 台账（同一工作单元）。

    unit_cost 缺省取商品参考进价；直接入库与采购单收货共用本函数。
    """
    tenant_id = actor.tenant_id
    product = await ProductCatalog.get_product(session, tenant_id, product_id, for_update=True)
    before = await BatchStore.current_stock(session, tenant_id, product.id)

    cost = unit_cost if unit_cost is not None else product.purchase_price
    batch = await BatchStore.create_batch(
        session,
        tenant_id=tenant_id,
        product_id=product.id,
        quantity=quantity,
        unit_cost=cost,
        received_date=received_date,
        expiry_date=expiry_date,
        batch_number=batch_number,
        lot_number=lot_number,
        warehouse_id=warehouse_id,
        supplier_id=supplier_id,
        purchase_order_id=purchase_order_id,
    )

    tx = await write_ledger(
        session,
        tenant_id=tenant_id,
        product_id=product.id,
        transaction_type=MovementType.PURCHASE,
        quantity_before=before,
        quantity_change=quantity,
        batch_id=batch.id,
        unit_price=cost,
        reference_type=reference_type,
        reference_id=reference_id,
        batch_number=batch.batch_number,
        expiry_date=batch.expiry_date,
        notes=notes,
        created_by=actor.actor_id,
        created_by_name=actor.display_name,
    )
    event = StockChanged.from_transaction(
        tx, product_name=product.name, threshold=product.min_stock_level
    )
    return batch, tx, event
