# tests/helpers/inventory.py
from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pharmastock.core.identity import Actor
from pharmastock.models.batch import Batch
from pharmastock.models.product import Product
from pharmastock.models.stock_transaction import StockTransaction
from pharmastock.services.wiring import Services

# 固定“今天”，效期相关断言与运行日期无关
TODAY = date(2026, 3, 15)

__all__ = [
    "TODAY",
    "make_product",
    "receive",
    "batches_of",
    "ledger_of",
]


async def make_product(
    services: Services,
    actor: Actor,
    *,
    name: str = "Paracetamol 500mg",
    min_stock_level: int = 0,
    purchase_price: str = "1.50",
    barcode: Optional[str] = None,
) -> Product:
    return await services.stock.create_product(
        actor,
        name=name,
        barcode=barcode,
        min_stock_level=min_stock_level,
        reorder_quantity=0,
        purchase_price=purchase_price,
    )


async def receive(
    services: Services,
    actor: Actor,
    product_id: int,
    qty: int,
    *,
    expiry: Optional[date] = None,
    batch_number: Optional[str] = None,
    unit_cost: Optional[str] = None,
) -> Batch:
    res = await services.stock.receive_stock(
        actor,
        product_id=product_id,
        quantity=qty,
        expiry_date=expiry,
        batch_number=batch_number,
        unit_cost=unit_cost,
    )
    return res.batch


async def batches_of(session: AsyncSession, product_id: int) -> List[Batch]:
    rows = await session.execute(
        select(Batch).where(Batch.product_id == product_id).order_by(Batch.id.asc())
    )
    return list(rows.scalars().all())


async def ledger_of(session: AsyncSession, product_id: int) -> List[StockTransaction]:
    rows = await session.execute(
        select(StockTransaction)
        .where(StockTransaction.product_id == product_id)
        .order_by(StockTransaction.seq.asc())
    )
    return list(rows.scalars().all())
