# pharmastock/models/batch.py
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from pharmastock.db.base import Base

UTC = timezone.utc


class Batch(Base):
    """
    批次（一次实物入库的批量）

    数量口径：
        - quantity           在手数量（唯一真实库存来源，商品库存 = 活跃批次之和）
        - reserved_quantity  预占数量，恒有 0 <= reserved_quantity <= quantity

    生命周期：
        - 创建即 active，reserved_quantity = 0
        - quantity 归零 ⇔ is_active = False（不物理删除，保留审计链）

    FEFO 排序：expiry_date ASC（NULL 最后）, received_date ASC, id ASC
    """

    __tablename__ = "batches"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)

    product_id: Mapped[int] = mapped_column(
        sa.Integer,
        sa.ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    warehouse_id: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    supplier_id: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    purchase_order_id: Mapped[Optional[int]] = mapped_column(
        sa.Integer,
        sa.ForeignKey("purchase_orders.id", ondelete="RESTRICT"),
        nullable=True,
    )

    quantity: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    reserved_quantity: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    unit_cost: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(14, 2), nullable=True)

    # 原厂批号 / 批次号（有则填）
    batch_number: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    lot_number: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)

    expiry_date: Mapped[Optional[date]] = mapped_column(sa.Date, nullable=True)
    received_date: Mapped[date] = mapped_column(sa.Date, nullable=False)

    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=True, server_default=sa.true()
    )

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        server_default=func.now(),
    )

    __table_args__ = (
        sa.CheckConstraint("quantity >= 0", name="ck_batches_qty_nonneg"),
        sa.CheckConstraint(
            "reserved_quantity >= 0 AND reserved_quantity <= quantity",
            name="ck_batches_reserved_range",
        ),
        sa.Index("ix_batches_fefo", "tenant_id", "product_id", "is_active", "expiry_date"),
        sa.Index("ix_batches_expiry_date", "expiry_date"),
    )

    @property
    def free_quantity(self) -> int:
        """未被预占、可扣减的数量。"""
        return int(self.quantity) - int(self.reserved_quantity or 0)

    def __repr__(self) -> str:
        return (
            f"<Batch id={self.id} product={self.product_id} qty={self.quantity} "
            f"reserved={self.reserved_quantity} exp={self.expiry_date} active={self.is_active}>"
        )
