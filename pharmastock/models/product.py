# pharmastock/models/product.py
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from pharmastock.db.base import Base

UTC = timezone.utc


class Product(Base):
    """
    商品主档（按租户隔离）：

        min_stock_level   补货阈值：库存 < 阈值 → low 信号
        reorder_quantity  建议补货量
        purchase_price    参考进价（手工加库存时新批次的单位成本）
        is_active         软停用；被批次引用的商品永不物理删除
    """

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)

    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    barcode: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)

    min_stock_level: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    reorder_quantity: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    purchase_price: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(14, 2), nullable=True)

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
        sa.CheckConstraint("min_stock_level >= 0", name="ck_products_min_stock_nonneg"),
        sa.CheckConstraint("reorder_quantity >= 0", name="ck_products_reorder_qty_nonneg"),
        sa.Index("ix_products_tenant_name", "tenant_id", "name"),
        sa.Index("ix_products_tenant_barcode", "tenant_id", "barcode"),
    )

    def __repr__(self) -> str:
        return (
            f"<Product id={self.id} tenant={self.tenant_id} name={self.name!r} "
            f"min={self.min_stock_level} active={self.is_active}>"
        )
