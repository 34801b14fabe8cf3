# pharmastock/services/stock_events.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pharmastock.models.stock_transaction import StockTransaction

UTC = timezone.utc


@dataclass(frozen=True)
class StockChanged:
    """
    库存已变更（仅在工作单元提交成功后发布）。

    threshold 为变更时刻商品的 min_stock_level 快照，订阅方无需回查数据库。
    """

    tenant_id: int
    product_id: int
    product_name: str
    movement_type: str
    quantity_change: int
    quantity_before: int
    quantity_after: int
    threshold: int
    transaction_id: Optional[int] = None
    batch_id: Optional[int] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    actor_id: Optional[str] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_transaction(
        cls, tx: StockTransaction, *, product_name: str, threshold: int
    ) -> "StockChanged":
        return cls(
            tenant_id=int(tx.tenant_id),
            product_id=int(tx.product_id),
            product_name=product_name,
            movement_type=str(tx.transaction_type),
            quantity_change=int(tx.quantity_change),
            quantity_before=int(tx.quantity_before),
            quantity_after=int(tx.quantity_after),
            threshold=int(threshold or 0),
            transaction_id=tx.id,
            batch_id=tx.batch_id,
            reference_type=tx.reference_type,
            reference_id=tx.reference_id,
            actor_id=tx.created_by,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "movement_type": self.movement_type,
            "quantity_change": self.quantity_change,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "transaction_id": self.transaction_id,
            "batch_id": self.batch_id,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
        }


@dataclass(frozen=True)
class StockSignal:
    """低库存 / 缺货信号（AlertEmitter → NotificationDispatcher）。"""

    tenant_id: int
    product_id: int
    product_name: str
    kind: str
    current_quantity: int
    threshold: int
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_payload(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "kind": self.kind,
            "current_quantity": self.current_quantity,
            "threshold": self.threshold,
        }
