# pharmastock/services/stock_service.py
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pharmastock.core.identity import Actor
from pharmastock.core.tx import TxManager
from pharmastock.db.locks import product_key
from pharmastock.db.uow import UnitOfWork
from pharmastock.models.batch import Batch
from pharmastock.models.product import Product
from pharmastock.services.batch_store import BatchStore, fefo_order
from pharmastock.services.ledger_queries import LedgerCheck, LedgerQueries
from pharmastock.services.pagination import Page, PageRequest
from pharmastock.services.product_catalog import ProductCatalog
from pharmastock.services.stock_helpers import (
    AdjustmentResult,
    ReceiptResult,
    ReservationResult,
    SaleResult,
    non_negative_money,
    parse_adjustment_type,
    parse_reason,
    positive_int,
)
from pharmastock.services.stock_service_adjust import adjust_impl
from pharmastock.services.stock_service_receive import receive_impl
from pharmastock.services.stock_service_reserve import release_impl, reserve_impl
from pharmastock.services.stock_service_sale import sale_impl


class StockService:
    """
    库存内核门面（按商品串行化的工作单元）

    写操作统一形态：
    ------------------------------------------
    1) 入参校验（任何写入之前）
    2) TxManager.run(..., lock_keys=[(tenant, "product", product_id)])
       - 进程内 keyed lock 覆盖整个事务（含 commit）
       - 事务内 SELECT ... FOR UPDATE 锁商品行
       - ConcurrencyConflict 整单重试
    3) 提交成功后发布 StockChanged（告警 / webhook 订阅）
    ------------------------------------------
    """

    def __init__(self, tx: TxManager, *, today: Callable[[], date] = date.today) -> None:
        self.tx = tx
        self.today = today

    def _session(self) -> AsyncSession:
        return self.tx.session_maker()

    # ---------------------------------------------------------------
    # 写：调整 / 入库 / 销售 / 预占
    # ---------------------------------------------------------------
    async def adjust(
        self,
        actor: Actor,
        *,
        product_id: int,
        adjustment_type: Any,
        quantity: Any,
        reason_code: Any,
        batch_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> AdjustmentResult:
        kind = parse_adjustment_type(adjustment_type)
        qty = positive_int("quantity", quantity)
        reason = parse_reason(reason_code)

        async def _work(uow: UnitOfWork) -> AdjustmentResult:
            tx, event = await adjust_impl(
                uow.session,
                actor=actor,
                product_id=product_id,
                adjustment_type=kind,
                quantity=qty,
                reason=reason,
                batch_id=batch_id,
                notes=notes,
                today=self.today(),
            )
            uow.collect(event)
            return AdjustmentResult(new_total=int(tx.quantity_after), transaction=tx)

        return await self.tx.run(
            _work, lock_keys=[product_key(actor.tenant_id, product_id)], op="adjust"
        )

    async def receive_stock(
        self,
        actor: Actor,
        *,
        product_id: int,
        quantity: Any,
        unit_cost: Any = None,
        expiry_date: Optional[date] = None,
        batch_number: Optional[str] = None,
        lot_number: Optional[str] = None,
        supplier_id: Optional[int] = None,
        warehouse_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> ReceiptResult:
        qty = positive_int("quantity", quantity)
        cost = non_negative_money("unit_cost", unit_cost)

        async def _work(uow: UnitOfWork) -> ReceiptResult:
            batch, tx, event = await receive_impl(
                uow.session,
                actor=actor,
                product_id=product_id,
                quantity=qty,
                received_date=self.today(),
                unit_cost=cost,
                expiry_date=expiry_date,
                batch_number=batch_number,
                lot_number=lot_number,
                supplier_id=supplier_id,
                warehouse_id=warehouse_id,
                reference_type="manual_receipt",
                notes=notes,
            )
            uow.collect(event)
            return ReceiptResult(new_total=int(tx.quantity_after), batch=batch, transaction=tx)

        return await self.tx.run(
            _work, lock_keys=[product_key(actor.tenant_id, product_id)], op="receive"
        )

    async def record_sale(
        self,
        actor: Actor,
        *,
        product_id: int,
        quantity: Any,
        unit_price: Any = None,
        reference_id: Optional[int] = None,
        consume_reserved: bool = False,
        notes: Optional[str] = None,
    ) -> SaleResult:
        qty = positive_int("quantity", quantity)
        price = non_negative_money("unit_price", unit_price)

        async def _work(uow: UnitOfWork) -> SaleResult:
            tx, event, allocations = await sale_impl(
                uow.session,
                actor=actor,
                product_id=product_id,
                quantity=qty,
                unit_price=price,
                reference_id=reference_id,
                consume_reserved=consume_reserved,
                notes=notes,
            )
            uow.collect(event)
            return SaleResult(
                new_total=int(tx.quantity_after), transaction=tx, allocations=allocations
            )

        return await self.tx.run(
            _work, lock_keys=[product_key(actor.tenant_id, product_id)], op="sale"
        )

    async def reserve(self, actor: Actor, *, product_id: int, quantity: Any) -> ReservationResult:
        qty = positive_int("quantity", quantity)

        async def _work(uow: UnitOfWork) -> ReservationResult:
            reserved, allocations = await reserve_impl(
                uow.session, actor=actor, product_id=product_id, quantity=qty
            )
            return ReservationResult(
                product_id=int(product_id), reserved_total=reserved, allocations=allocations
            )

        return await self.tx.run(
            _work, lock_keys=[product_key(actor.tenant_id, product_id)], op="reserve"
        )

    async def release_reservation(
        self,
        actor: Actor,
        *,
        product_id: int,
        quantity: Any,
        batch_id: Optional[int] = None,
    ) -> ReservationResult:
        qty = positive_int("quantity", quantity)

        async def _work(uow: UnitOfWork) -> ReservationResult:
            reserved, allocations = await release_impl(
                uow.session, actor=actor, product_id=product_id, quantity=qty, batch_id=batch_id
            )
            return ReservationResult(
                product_id=int(product_id), reserved_total=reserved, allocations=allocations
            )

        return await self.tx.run(
            _work, lock_keys=[product_key(actor.tenant_id, product_id)], op="release"
        )

    # ---------------------------------------------------------------
    # 商品目录（写操作也走工作单元；阈值修改与库存写入按商品串行）
    # ---------------------------------------------------------------
    async def create_product(self, actor: Actor, **fields: Any) -> Product:
        async def _work(uow: UnitOfWork) -> Product:
            return await ProductCatalog.create_product(uow.session, actor.tenant_id, **fields)

        return await self.tx.run(_work, op="catalog")

    async def update_product(
        self, actor: Actor, product_id: int, changes: Dict[str, Any]
    ) -> Product:
        async def _work(uow: UnitOfWork) -> Product:
            return await ProductCatalog.update_product(
                uow.session, actor.tenant_id, product_id, changes
            )

        return await self.tx.run(
            _work, lock_keys=[product_key(actor.tenant_id, product_id)], op="catalog"
        )

    async def deactivate_product(self, actor: Actor, product_id: int) -> Product:
        async def _work(uow: UnitOfWork) -> Product:
            return await ProductCatalog.deactivate_product(uow.session, actor.tenant_id, product_id)

        return await self.tx.run(
            _work, lock_keys=[product_key(actor.tenant_id, product_id)], op="catalog"
        )

    async def get_product(self, actor: Actor, product_id: int) -> Dict[str, Any]:
        async with self._session() as session:
            product = await ProductCatalog.get_product(session, actor.tenant_id, product_id)
            current = await BatchStore.current_stock(session, actor.tenant_id, product.id)
        return {"product": product, "current_stock": current}

    async def list_products(
        self,
        actor: Actor,
        *,
        search: Optional[str] = None,
        active_only: bool = True,
        low_stock_only: bool = False,
        page: PageRequest = PageRequest(),
    ) -> Page[Dict[str, Any]]:
        async with self._session() as session:
            return await ProductCatalog.list_products(
                session,
                actor.tenant_id,
                search=search,
                active_only=active_only,
                low_stock_only=low_stock_only,
                page=page,
            )

    # ---------------------------------------------------------------
    # 读
    # ---------------------------------------------------------------
    async def get_stock_level(self, actor: Actor, product_id: int) -> Dict[str, int]:
        async with self._session() as session:
            product = await ProductCatalog.get_product(session, actor.tenant_id, product_id)
            total = await BatchStore.current_stock(session, actor.tenant_id, product.id)
            reserved = await BatchStore.reserved_stock(session, actor.tenant_id, product.id)
        return {
            "product_id": int(product.id),
            "total": total,
            "reserved": reserved,
            "available": total - reserved,
        }

    async def list_batches(
        self,
        actor: Actor,
        *,
        product_id: Optional[int] = None,
        include_inactive: bool = False,
        expiring_within_days: Optional[int] = None,
        expired_only: bool = False,
    ) -> Dict[str, Any]:
        """
        批次列表（FEFO 排序）+ 库存估值 Σ quantity × unit_cost。

        - expiring_within_days：只要 今天 <= expiry_date <= 今天 + N 的批次
        - expired_only：只要 expiry_date < 今天 的批次
        """
        today = self.today()
        stmt = (
            select(Batch, Product.name)
            .join(Product, Product.id == Batch.product_id)
            .where(Batch.tenant_id == int(actor.tenant_id))
        )
        if product_id is not None:
            stmt = stmt.where(Batch.product_id == int(product_id))
        if not include_inactive:
            stmt = stmt.where(Batch.is_active.is_(True))
        if expired_only:
            stmt = stmt.where(Batch.expiry_date.is_not(None), Batch.expiry_date < today)
        elif expiring_within_days is not None:
            horizon = today + timedelta(days=int(expiring_within_days))
            stmt = stmt.where(
                Batch.expiry_date.is_not(None),
                Batch.expiry_date >= today,
                Batch.expiry_date <= horizon,
            )
        stmt = stmt.order_by(*fefo_order())

        async with self._session() as session:
            if product_id is not None:
                await ProductCatalog.get_product(session, actor.tenant_id, product_id)
            rows = (await session.execute(stmt)).all()

        items: List[Dict[str, Any]] = []
        valuation = Decimal("0")
        total_qty = 0
        for batch, product_name in rows:
            days = (batch.expiry_date - today).days if batch.expiry_date is not None else None
            items.append({"batch": batch, "product_name": product_name, "days_until_expiry": days})
            total_qty += int(batch.quantity)
            if batch.unit_cost is not None:
                valuation += Decimal(batch.quantity) * Decimal(batch.unit_cost)

        return {
            "batches": items,
            "total_quantity": total_qty,
            "valuation": valuation.quantize(Decimal("0.01")),
        }

    async def list_adjustment_history(
        self,
        actor: Actor,
        *,
        product_id: Optional[int] = None,
        page: PageRequest = PageRequest(),
    ):
        async with self._session() as session:
            return await LedgerQueries.list_adjustments(
                session, actor.tenant_id, product_id=product_id, page=page
            )

    async def list_transactions(
        self, actor: Actor, product_id: int, *, page: PageRequest = PageRequest()
    ):
        async with self._session() as session:
            await ProductCatalog.get_product(session, actor.tenant_id, product_id)
            return await LedgerQueries.list_for_product(
                session, actor.tenant_id, product_id, page=page
            )

    async def verify_ledger(self, actor: Actor, product_id: int) -> LedgerCheck:
        async with self._session() as session:
            await ProductCatalog.get_product(session, actor.tenant_id, product_id)
            return await LedgerQueries.verify_chain(session, actor.tenant_id, product_id)
