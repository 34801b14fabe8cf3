# pharmastock/services/purchase_order_service.py
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pharmastock.core.identity import Actor
from pharmastock.core.tx import TxManager
from pharmastock.db.locks import purchase_order_key
from pharmastock.db.uow import UnitOfWork
from pharmastock.models.enums import PurchaseOrderStatus
from pharmastock.models.purchase_order import PurchaseOrder
from pharmastock.services.pagination import Page, PageRequest
from pharmastock.services.purchase_order_create import create_order_impl, normalize_items
from pharmastock.services.purchase_order_queries import get_order, list_orders
from pharmastock.services.purchase_order_receive import receive_order_impl
from pharmastock.services.purchase_order_state import apply_transition

UTC = timezone.utc


class PurchaseOrderService:
    """
    采购单服务

    - create：头 + 多行，状态 draft，不影响库存
    - send / confirm / cancel：纯状态迁移（采购单级锁）
    - receive：逐行入库（每行一个商品级工作单元），最后置 received

    金额约定：
    - line_total = unit_price × quantity_ordered × (1 − discount_percent/100)，分位 HALF_UP
    - subtotal = Σ line_total；total_amount = subtotal（税不在本系统范围内）
    """

    def __init__(self, tx: TxManager, *, today: Callable[[], date] = date.today) -> None:
        self.tx = tx
        self.today = today

    async def create(
        self,
        actor: Actor,
        *,
        supplier_id: Optional[int],
        supplier_name: Optional[str],
        warehouse_id: Optional[int],
        items: List[Dict[str, Any]],
        expected_date: Optional[date] = None,
        payment_terms: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PurchaseOrder:
        normalized = normalize_items(items)

        async def _work(uow: UnitOfWork) -> PurchaseOrder:
            return await create_order_impl(
                uow.session,
                actor=actor,
                supplier_id=supplier_id,
                supplier_name=supplier_name,
                warehouse_id=warehouse_id,
                items=normalized,
                order_date=datetime.now(UTC),
                expected_date=expected_date,
                payment_terms=payment_terms,
                notes=notes,
            )

        return await self.tx.run(_work, op="po_create")

    async def _transition(
        self, actor: Actor, order_id: int, target: PurchaseOrderStatus
    ) -> PurchaseOrder:
        async def _work(uow: UnitOfWork) -> PurchaseOrder:
            order = await get_order(uow.session, actor.tenant_id, order_id, for_update=True)
            apply_transition(order, target)
            await uow.session.flush()
            return order

        return await self.tx.run(
            _work, lock_keys=[purchase_order_key(actor.tenant_id, order_id)], op="po_state"
        )

    async def send(self, actor: Actor, order_id: int) -> PurchaseOrder:
        return await self._transition(actor, order_id, PurchaseOrderStatus.SENT)

    async def confirm(self, actor: Actor, order_id: int) -> PurchaseOrder:
        return await self._transition(actor, order_id, PurchaseOrderStatus.CONFIRMED)

    async def cancel(self, actor: Actor, order_id: int) -> PurchaseOrder:
        return await self._transition(actor, order_id, PurchaseOrderStatus.CANCELLED)

    async def receive(
        self,
        actor: Actor,
        order_id: int,
        received_lines: Optional[List[Dict[str, Any]]] = None,
    ) -> PurchaseOrder:
        return await receive_order_impl(
            self.tx,
            actor=actor,
            order_id=order_id,
            received_lines=received_lines,
            today=self.today(),
        )

    async def get(self, actor: Actor, order_id: int) -> PurchaseOrder:
        async with self.tx.session_maker() as session:
            return await get_order(session, actor.tenant_id, order_id)

    async def list(
        self,
        actor: Actor,
        *,
        status: Optional[str] = None,
        supplier_id: Optional[int] = None,
        page: PageRequest = PageRequest(),
    ) -> Page[PurchaseOrder]:
        async with self.tx.session_maker() as session:
            return await list_orders(
                session, actor.tenant_id, status=status, supplier_id=supplier_id, page=page
            )
