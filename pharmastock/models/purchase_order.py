# pharmastock/models/purchase_order.py
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from pharmastock.db.base import Base
from pharmastock.models.enums import PurchaseOrderStatus

if TYPE_CHECKING:
    from pharmastock.models.purchase_order_item import PurchaseOrderItem

UTC = timezone.utc


class PurchaseOrder(Base):
    """
    采购单头表

    - 数量与金额以行表（purchase_order_items）为事实来源，头表只存汇总
    - status 见 PurchaseOrderStatus；取消是终态，不是删除
    - po_number：租户内唯一，PO-<tenant>-<seq>
    """

    __tablename__ = "purchase_orders"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)
    po_number: Mapped[str] = mapped_column(sa.String(32), nullable=False)

    supplier_id: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True, index=True)
    supplier_name: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)
    warehouse_id: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)

    status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=PurchaseOrderStatus.DRAFT.value
    )

    order_date: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    expected_date: Mapped[Optional[date]] = mapped_column(sa.Date, nullable=True)
    received_date: Mapped[Optional[date]] = mapped_column(sa.Date, nullable=True)
    payment_terms: Mapped[Optional[str]] = mapped_column(sa.String(32), nullable=True)

    subtotal: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(
        sa.Numeric(14, 2), nullable=False, default=Decimal("0")
    )

    notes: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    created_by_name: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)

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

    items: Mapped[List["PurchaseOrderItem"]] = relationship(
        "PurchaseOrderItem",
        back_populates="order",
        order_by="PurchaseOrderItem.line_no",
        lazy="selectin",
    )

    __table_args__ = (
        sa.UniqueConstraint("tenant_id", "po_number", name="uq_purchase_orders_tenant_number"),
        sa.Index("ix_purchase_orders_tenant_status", "tenant_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<PurchaseOrder id={self.id} {self.po_number} status={self.status}>"
