# pharmastock/services/ledger_queries.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pharmastock.models.enums import ADJUSTMENT_MOVEMENTS
from pharmastock.models.stock_transaction import StockTransaction
from pharmastock.services.batch_store import BatchStore
from pharmastock.services.ledger_writer import last_entry
from pharmastock.services.pagination import Page, PageRequest


@dataclass
class LedgerCheck:
    """台账对账结果：ok ⇔ 链条无断点 且 重放总量 == 批次在手总量。"""

    product_id: int
    entries: int
    replayed_total: int
    current_stock: int
    broken_at_seq: Optional[int] = None
    problem: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.broken_at_seq is None and self.replayed_total == self.current_stock

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "ok": self.ok,
            "entries": self.entries,
            "replayed_total": self.replayed_total,
            "current_stock": self.current_stock,
            "broken_at_seq": self.broken_at_seq,
            "problem": self.problem,
        }


class LedgerQueries:
    """台账只读查询（无 update / delete）。"""

    last_entry = staticmethod(last_entry)

    @staticmethod
    async def list_for_product(
        session: AsyncSession,
        tenant_id: int,
        product_id: int,
        *,
        page: PageRequest = PageRequest(),
    ) -> Page[StockTransaction]:
        cond = (
            StockTransaction.tenant_id == int(tenant_id),
            StockTransaction.product_id == int(product_id),
        )
        total = (
            await session.execute(select(func.count(StockTransaction.id)).where(*cond))
        ).scalar_one()
        rows = (
            await session.execute(
                select(StockTransaction)
                .where(*cond)
                .order_by(StockTransaction.seq.desc())
                .offset(page.offset)
                .limit(page.per_page)
            )
        ).scalars().all()
        return Page(data=list(rows), total=int(total), page=page.page, per_page=page.per_page)

    @staticmethod
    async def list_adjustments(
        session: AsyncSession,
        tenant_id: int,
        *,
        product_id: Optional[int] = None,
        page: PageRequest = PageRequest(),
    ) -> Page[StockTransaction]:
        """只返回 adjustment_add / adjustment_remove，最新的在前。"""
        cond = [
            StockTransaction.tenant_id == int(tenant_id),
            StockTransaction.transaction_type.in_([m.value for m in ADJUSTMENT_MOVEMENTS]),
        ]
        if product_id is not None:
            cond.append(StockTransaction.product_id == int(product_id))

        total = (
            await session.execute(select(func.count(StockTransaction.id)).where(*cond))
        ).scalar_one()
        rows = (
            await session.execute(
                select(StockTransaction)
                .where(*cond)
                .order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc())
                .offset(page.offset)
                .limit(page.per_page)
            )
        ).scalars().all()
        return Page(data=list(rows), total=int(total), page=page.page, per_page=page.per_page)

    @staticmethod
    async def verify_chain(session: AsyncSession, tenant_id: int, product_id: int) -> LedgerCheck:
        """
        按 seq 升序重放台账，校验：

        - seq 从 1 开始且无缝
        - 每条 quantity_after == quantity_before + quantity_change
        - 每条 quantity_before == 上一条 quantity_after（第一条为 0）
        - 重放结果 == 当前批次在手总量
        """
        rows = (
            await session.execute(
                select(StockTransaction)
                .where(
                    StockTransaction.tenant_id == int(tenant_id),
                    StockTransaction.product_id == int(product_id),
                )
                .order_by(StockTransaction.seq.asc())
            )
        ).scalars().all()

        current = await BatchStore.current_stock(session, tenant_id, product_id)
        check = LedgerCheck(
            product_id=int(product_id),
            entries=len(rows),
            replayed_total=0,
            current_stock=current,
        )

        running = 0
        for idx, tx in enumerate(rows, start=1):
            if check.broken_at_seq is None:
                if int(tx.seq) != idx:
                    check.broken_at_seq, check.problem = int(tx.seq), f"seq gap: expected {idx}"
                elif int(tx.quantity_before) != running:
                    check.broken_at_seq, check.problem = (
                        int(tx.seq),
                        f"quantity_before={tx.quantity_before}, expected {running}",
                    )
                elif int(tx.quantity_before) + int(tx.quantity_change) != int(tx.quantity_after):
                    check.broken_at_seq, check.problem = int(tx.seq), "unbalanced entry"
            running += int(tx.quantity_change)

        check.replayed_total = running
        if check.broken_at_seq is None and running != current:
            check.problem = f"replayed total {running} != current stock {current}"
        return check
