from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pharmastock.core.errors import ConcurrencyConflict, InsufficientStock, ValidationError
from pharmastock.models.enums import MovementType
from pharmastock.models.stock_transaction import StockTransaction

log = logging.getLogger("pharmastock.ledger")


async def last_entry(
    session: AsyncSession, tenant_id: int, product_id: int
) -> Optional[StockTransaction]:
    stmt = (
        select(StockTransaction)
        .where(
            StockTransaction.tenant_id == int(tenant_id),
            StockTransaction.product_id == int(product_id),
        )
        .order_by(StockTransaction.seq.desc())
        .limit(1)
    )
    return (await session.execute(stmt)).scalars().first()


def _money(v: Any) -> Optional[Decimal]:
    if v is None:
        return None
    return Decimal(str(v))


async def write_ledger(
    session: AsyncSession,
    *,
    tenant_id: int,
    product_id: int,
    transaction_type: MovementType | str,
    quantity_before: int,
    quantity_change: int,
    batch_id: Optional[int] = None,
    unit_price: Any = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    batch_number: Optional[str] = None,
    expiry_date: Optional[date] = None,
    reason_code: Optional[str] = None,
    notes: Optional[str] = None,
    created_by: Optional[str] = None,
    created_by_name: Optional[str] = None,
) -> StockTransaction:
    """
    追加一条台账（只增不改）：

    - 在调用方的工作单元内读取该商品最后一条台账，
      要求 quantity_before == last.quantity_after（无台账时为 0），否则 ConcurrencyConflict
    - quantity_after = quantity_before + quantity_change，< 0 → InsufficientStock
    - seq = last.seq + 1；并发写者撞唯一约束 uq_stock_tx_product_seq → ConcurrencyConflict
    - total_value = |quantity_change| × unit_price
    """
    try:
        mt = MovementType(str(transaction_type))
    except ValueError as e:
        raise ValidationError(
            f"未知的流水类型: {transaction_type!r}",
            context={"transaction_type": str(transaction_type)},
        ) from e

    change = int(quantity_change)
    before = int(quantity_before)
    if change == 0:
        raise ValidationError("quantity_change 不能为 0", context={"product_id": int(product_id)})

    last = await last_entry(session, tenant_id, product_id)
    expected_before = int(last.quantity_after) if last is not None else 0
    if before != expected_before:
        raise ConcurrencyConflict(
            f"stale quantity_before for product {product_id}: "
            f"given={before}, ledger={expected_before}",
            context={
                "product_id": int(product_id),
                "quantity_before": before,
                "ledger_quantity_after": expected_before,
            },
        )

    after = before + change
    if after < 0:
        raise InsufficientStock(
            f"ledger would go negative for product {product_id}: {before}{change:+d}",
            context={"product_id": int(product_id), "quantity_before": before, "quantity_change": change},
        )

    price = _money(unit_price)
    tx = StockTransaction(
        tenant_id=int(tenant_id),
        product_id=int(product_id),
        batch_id=batch_id,
        seq=(int(last.seq) + 1) if last is not None else 1,
        transaction_type=mt.value,
        quantity_change=change,
        quantity_before=before,
        quantity_after=after,
        unit_price=price,
        total_value=(abs(change) * price) if price is not None else None,
        reference_type=reference_type,
        reference_id=reference_id,
        batch_number=batch_number,
        expiry_date=expiry_date,
        reason_code=reason_code,
        notes=notes,
        created_by=created_by,
        created_by_name=created_by_name,
    )
    session.add(tx)
    try:
        await session.flush()
    except IntegrityError as e:
        log.warning(
            "[ledger] seq collision tenant=%s product=%s seq=%s", tenant_id, product_id, tx.seq
        )
        raise ConcurrencyConflict(
            f"concurrent ledger append for product {product_id}",
            context={"product_id": int(product_id), "seq": tx.seq},
        ) from e
    return tx
