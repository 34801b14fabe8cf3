# pharmastock/services/purchase_order_state.py
from __future__ import annotations

from typing import Dict, FrozenSet

from pharmastock.core.errors import InvalidStateTransition
from pharmastock.models.enums import PurchaseOrderStatus as S
from pharmastock.models.purchase_order import PurchaseOrder

# 允许的迁移；received 只能经由收货流程到达
TRANSITIONS: Dict[S, FrozenSet[S]] = {
    S.DRAFT: frozenset({S.SENT, S.CANCELLED}),
    S.SENT: frozenset({S.CONFIRMED, S.CANCELLED, S.RECEIVED}),
    S.CONFIRMED: frozenset({S.RECEIVED}),
    S.RECEIVED: frozenset(),
    S.CANCELLED: frozenset(),
}

RECEIVABLE: FrozenSet[S] = frozenset({S.SENT, S.CONFIRMED})


def can_transition(current: str, target: str) -> bool:
    return S(target) in TRANSITIONS.get(S(current), frozenset())


def ensure_transition(order: PurchaseOrder, target: S) -> None:
    if not can_transition(order.status, target):
        raise InvalidStateTransition(
            f"purchase order {order.po_number}: {order.status} → {target.value} is not allowed",
            context={"order_id": order.id, "from": order.status, "to": target.value},
        )


def ensure_not_partially_received(order: PurchaseOrder) -> None:
    """已有行盖章（库存已入账）的采购单只能继续收货，不能取消。"""
    stamped = [int(it.id) for it in order.items if it.quantity_received is not None]
    if stamped:
        raise InvalidStateTransition(
            f"purchase order {order.po_number} has received lines and cannot be cancelled",
            context={
                "order_id": order.id,
                "from": order.status,
                "to": S.CANCELLED.value,
                "received_item_ids": stamped,
            },
        )


def apply_transition(order: PurchaseOrder, target: S) -> PurchaseOrder:
    ensure_transition(order, target)
    if target == S.CANCELLED:
        ensure_not_partially_received(order)
    order.status = target.value
    return order
