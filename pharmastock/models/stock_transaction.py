# pharmastock/models/stock_transaction.py
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from pharmastock.db.base import Base

UTC = timezone.utc


class StockTransaction(Base):
    """
    库存台账（只增不改）

    - quantity_before / quantity_after 为“商品级”运行总量，不是批次数量
    - seq：同一 (tenant_id, product_id) 下从 1 开始的无缝序号；
      唯一约束 uq_stock_tx_product_seq 即数据库层的 CAS：
      两个写者基于同一个“最后一条”追加时，后提交者必然撞约束
    - 可重放：按 seq 升序，
        quantity_after[n] = quantity_before[n] + quantity_change[n] = quantity_before[n+1]
    """

    __tablename__ = "stock_transactions"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    product_id: Mapped[int] = mapped_column(
        sa.Integer,
        sa.ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
    )
    batch_id: Mapped[Optional[int]] = mapped_column(
        sa.Integer,
        sa.ForeignKey("batches.id", ondelete="RESTRICT"),
        nullable=True,
    )

    seq: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    transaction_type: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    quantity_change: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    quantity_before: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    quantity_after: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    unit_price: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(14, 2), nullable=True)
    total_value: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(16, 2), nullable=True)

    reference_type: Mapped[Optional[str]] = mapped_column(sa.String(32), nullable=True)
    reference_id: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)

    batch_number: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    expiry_date: Mapped[Optional[date]] = mapped_column(sa.Date, nullable=True)

    reason_code: Mapped[Optional[str]] = mapped_column(sa.String(32), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)

    created_by: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    created_by_name: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
    )

    __table_args__ = (
        sa.UniqueConstraint("tenant_id", "product_id", "seq", name="uq_stock_tx_product_seq"),
        sa.CheckConstraint("quantity_before >= 0", name="ck_stock_tx_before_nonneg"),
        sa.CheckConstraint("quantity_after >= 0", name="ck_stock_tx_after_nonneg"),
        sa.CheckConstraint(
            "quantity_after = quantity_before + quantity_change",
            name="ck_stock_tx_balance",
        ),
        sa.Index("ix_stock_tx_tenant_type", "tenant_id", "transaction_type"),
        sa.Index("ix_stock_tx_reference", "reference_type", "reference_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<StockTx #{self.seq} {self.transaction_type} product={self.product_id} "
            f"{self.quantity_before}{self.quantity_change:+d}={self.quantity_after}>"
        )
