# pharmastock/models/purchase_order_item.py
from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pharmastock.db.base import Base

if TYPE_CHECKING:
    from pharmastock.models.purchase_order import PurchaseOrder


class PurchaseOrderItem(Base):
    """
    采购单行

    - quantity_received：收货前为 NULL；收货时写入且只写一次
    - line_total = unit_price × quantity_ordered × (1 − discount_percent/100)
    - received_batch_id：收货生成的批次
    """

    __tablename__ = "purchase_order_items"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    purchase_order_id: Mapped[int] = mapped_column(
        sa.Integer,
        sa.ForeignKey("purchase_orders.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    line_no: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    product_id: Mapped[int] = mapped_column(
        sa.Integer,
        sa.ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
    )
    product_name: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)

    quantity_ordered: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    quantity_received: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)

    unit_price: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False)
    discount_percent: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    line_total: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False)

    received_batch_id: Mapped[Optional[int]] = mapped_column(
        sa.Integer,
        sa.ForeignKey("batches.id", ondelete="RESTRICT"),
        nullable=True,
    )

    order: Mapped["PurchaseOrder"] = relationship("PurchaseOrder", back_populates="items")

    __table_args__ = (
        sa.UniqueConstraint("purchase_order_id", "line_no", name="uq_po_items_order_line"),
        sa.CheckConstraint("quantity_ordered > 0", name="ck_po_items_qty_ordered_pos"),
        sa.CheckConstraint(
            "quantity_received IS NULL OR quantity_received >= 0",
            name="ck_po_items_qty_received_nonneg",
        ),
        sa.CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name="ck_po_items_discount_range",
        ),
    )

    @property
    def is_received(self) -> bool:
        return self.quantity_received is not None

    def __repr__(self) -> str:
        return (
            f"<POItem id={self.id} po={self.purchase_order_id} line={self.line_no} "
            f"product={self.product_id} ordered={self.quantity_ordered} "
            f"received={self.quantity_received}>"
        )
