# pharmastock/services/purchase_order_receive.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

from pharmastock.core.errors import InvalidStateTransition, ValidationError
from pharmastock.core.identity import Actor
from pharmastock.core.tx import TxManager
from pharmastock.db.locks import product_key, purchase_order_key
from pharmastock.db.uow import UnitOfWork
from pharmastock.models.enums import PurchaseOrderStatus
from pharmastock.models.purchase_order import PurchaseOrder
from pharmastock.models.purchase_order_item import PurchaseOrderItem
from pharmastock.services.purchase_order_queries import get_order
from pharmastock.services.purchase_order_state import RECEIVABLE, apply_transition
from pharmastock.services.stock_service_receive import receive_impl

log = logging.getLogger("pharmastock.po")


@dataclass(frozen=True)
class LinePlan:
    item_id: int
    product_id: int
    quantity: int
    batch_number: Optional[str] = None
    lot_number: Optional[str] = None
    expiry_date: Optional[date] = None


def _as_date(v: Any) -> Optional[date]:
    if v is None or isinstance(v, date):
        return v
    try:
        return date.fromisoformat(str(v))
    except ValueError as e:
        raise ValidationError(f"expiry_date 不是合法日期: {v!r}", context={"expiry_date": v}) from e


def plan_lines(order: PurchaseOrder, received_lines: Optional[List[Dict[str, Any]]]) -> List[LinePlan]:
    """
    收货计划（任何写入之前完成全部校验）：

    - received_lines 中的 item_id 必须属于该采购单，否则 ValidationError
    - received_lines 指向已盖章的行 → InvalidStateTransition（每行只能收一次）
    - 只为尚未盖章（quantity_received IS NULL）的行生成计划，按 line_no 顺序
    - 数量缺省 = quantity_ordered；负数 → ValidationError；0 合法（只盖章不入库）
    """
    by_item = {int(it.id): it for it in order.items}
    supplied: Dict[int, Dict[str, Any]] = {}
    for raw in received_lines or []:
        item_id = raw.get("item_id")
        if item_id is None or int(item_id) not in by_item:
            raise ValidationError(
                f"item {item_id} does not belong to purchase order {order.po_number}",
                context={"order_id": order.id, "item_id": item_id},
            )
        if int(item_id) in supplied:
            raise ValidationError(f"item {item_id} 重复出现", context={"item_id": item_id})
        if by_item[int(item_id)].is_received:
            raise InvalidStateTransition(
                f"item {item_id} of purchase order {order.po_number} is already received",
                context={
                    "order_id": order.id,
                    "item_id": int(item_id),
                    "quantity_received": by_item[int(item_id)].quantity_received,
                },
            )
        supplied[int(item_id)] = raw

    plans: List[LinePlan] = []
    for item in order.items:
        if item.is_received:
            continue
        raw = supplied.get(int(item.id), {})
        qty_raw = raw.get("quantity_received")
        if qty_raw is None:
            qty = int(item.quantity_ordered)
        else:
            if isinstance(qty_raw, bool):
                raise ValidationError("quantity_received 必须为整数", context={"item_id": item.id})
            try:
                qty = int(qty_raw)
            except (TypeError, ValueError) as e:
                raise ValidationError(
                    "quantity_received 必须为整数", context={"item_id": item.id}
                ) from e
            if qty < 0:
                raise ValidationError(
                    "quantity_received 不能为负数",
                    context={"item_id": item.id, "quantity_received": qty},
                )
        plans.append(
            LinePlan(
                item_id=int(item.id),
                product_id=int(item.product_id),
                quantity=qty,
                batch_number=raw.get("batch_number") or None,
                lot_number=raw.get("lot_number") or None,
                expiry_date=_as_date(raw.get("expiry_date")),
            )
        )
    return plans


async def receive_order_impl(
    tx: TxManager,
    *,
    actor: Actor,
    order_id: int,
    received_lines: Optional[List[Dict[str, Any]]],
    today: date,
) -> PurchaseOrder:
    """
    采购单收货：

    - 整个调用持有采购单级锁 (tenant, "po", order_id)，同一采购单的收货串行
    - 每个未盖章行一个独立工作单元（锁商品）：建批次 + purchase 台账 + 盖章
    - 全部行完成后，最后一个工作单元把状态置为 received
    - 中途失败：已盖章行保持提交，采购单保持原状态，可再次 receive 只补未盖章行
    """
    tenant_id = actor.tenant_id

    async with tx.locks.hold([purchase_order_key(tenant_id, order_id)]):
        async with tx.session_maker() as session:
            order = await get_order(session, tenant_id, order_id)
            if order.status == PurchaseOrderStatus.RECEIVED.value:
                raise InvalidStateTransition(
                    f"purchase order {order.po_number} is already received",
                    context={"order_id": order.id, "from": order.status, "to": "received"},
                )
            if order.status not in RECEIVABLE:
                raise InvalidStateTransition(
                    f"purchase order {order.po_number} cannot be received from {order.status}",
                    context={"order_id": order.id, "from": order.status, "to": "received"},
                )
            plans = plan_lines(order, received_lines)
            po_number = order.po_number
            warehouse_id = order.warehouse_id
            supplier_id = order.supplier_id

        for plan in plans:

            async def _line(uow: UnitOfWork, plan: LinePlan = plan) -> None:
                s = uow.session
                item = await s.get(PurchaseOrderItem, plan.item_id, with_for_update=True)
                if item is None or item.is_received:
                    return
                if plan.quantity > 0:
                    batch, _tx, event = await receive_impl(
                        s,
                        actor=actor,
                        product_id=plan.product_id,
                        quantity=plan.quantity,
                        received_date=today,
                        unit_cost=item.unit_price,
                        expiry_date=plan.expiry_date,
                        batch_number=plan.batch_number,
                        lot_number=plan.lot_number,
                        supplier_id=supplier_id,
                        warehouse_id=warehouse_id,
                        purchase_order_id=int(order_id),
                        reference_type="purchase_order",
                        reference_id=int(order_id),
                        notes=f"PO {po_number}",
                    )
                    item.received_batch_id = batch.id
                    uow.collect(event)
                item.quantity_received = plan.quantity
                await s.flush()

            await tx.run(
                _line, lock_keys=[product_key(tenant_id, plan.product_id)], op="po_receive"
            )
            log.info(
                "[po] %s item=%s received qty=%s", po_number, plan.item_id, plan.quantity
            )

        async def _finalize(uow: UnitOfWork) -> PurchaseOrder:
            order = await get_order(uow.session, tenant_id, order_id, for_update=True)
            apply_transition(order, PurchaseOrderStatus.RECEIVED)
            order.received_date = today
            await uow.session.flush()
            return order

        return await tx.run(_finalize, op="po_receive")
