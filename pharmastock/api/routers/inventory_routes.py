# pharmastock/api/routers/inventory_routes.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from pharmastock.api.deps import get_actor, get_services
from pharmastock.core.identity import Actor
from pharmastock.models.product import Product
from pharmastock.schemas.inventory import (
    AdjustmentIn,
    AdjustmentOut,
    AlertsOut,
    AllocationOut,
    BatchListOut,
    BatchOut,
    LedgerCheckOut,
    ProductCreateIn,
    ProductListOut,
    ProductOut,
    ProductUpdateIn,
    ReceiptOut,
    ReceiveStockIn,
    ReleaseIn,
    ReservationIn,
    ReservationOut,
    SaleIn,
    SaleOut,
    StockLevelOut,
    TransactionListOut,
    TransactionOut,
)
from pharmastock.services.pagination import PageRequest
from pharmastock.services.wiring import Services


def _product_out(product: Product, current_stock: Optional[int] = None) -> ProductOut:
    out = ProductOut.model_validate(product)
    if current_stock is not None:
        out = out.model_copy(update={"current_stock": int(current_stock)})
    return out


def _batch_out(row: Dict[str, Any]) -> BatchOut:
    return BatchOut.model_validate(row["batch"]).model_copy(
        update={"product_name": row["product_name"], "days_until_expiry": row["days_until_expiry"]}
    )


def _allocations(pairs) -> list[AllocationOut]:
    return [AllocationOut(batch_id=b, quantity=q) for b, q in pairs]


def register(router: APIRouter) -> None:
    # ---------------------------------------------------------------
    # 商品目录
    # ---------------------------------------------------------------
    @router.get("/products", response_model=ProductListOut)
    async def list_products(
        search: Optional[str] = Query(None),
        active_only: bool = Query(True),
        low_stock_only: bool = Query(False),
        page: int = Query(1),
        per_page: int = Query(50),
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> ProductListOut:
        result = await services.stock.list_products(
            actor,
            search=search,
            active_only=active_only,
            low_stock_only=low_stock_only,
            page=PageRequest(page=page, per_page=per_page),
        )
        return ProductListOut(
            data=[_product_out(r["product"], r["current_stock"]) for r in result.data],
            total=result.total,
            page=result.page,
            per_page=result.per_page,
            total_pages=result.total_pages,
        )

    @router.post("/products", response_model=ProductOut, status_code=201)
    async def create_product(
        payload: ProductCreateIn,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> ProductOut:
        product = await services.stock.create_product(actor, **payload.model_dump())
        return _product_out(product, 0)

    @router.get("/products/{product_id}", response_model=ProductOut)
    async def get_product(
        product_id: int,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> ProductOut:
        row = await services.stock.get_product(actor, product_id)
        return _product_out(row["product"], row["current_stock"])

    @router.patch("/products/{product_id}", response_model=ProductOut)
    async def update_product(
        product_id: int,
        payload: ProductUpdateIn,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> ProductOut:
        product = await services.stock.update_product(
            actor, product_id, payload.model_dump(exclude_unset=True)
        )
        return _product_out(product)

    @router.delete("/products/{product_id}", response_model=ProductOut)
    async def deactivate_product(
        product_id: int,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> ProductOut:
        product = await services.stock.deactivate_product(actor, product_id)
        return _product_out(product)

    @router.get("/products/{product_id}/stock-level", response_model=StockLevelOut)
    async def get_stock_level(
        product_id: int,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> StockLevelOut:
        return StockLevelOut(**await services.stock.get_stock_level(actor, product_id))

    @router.get("/products/{product_id}/transactions", response_model=TransactionListOut)
    async def list_transactions(
        product_id: int,
        page: int = Query(1),
        per_page: int = Query(50),
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> TransactionListOut:
        result = await services.stock.list_transactions(
            actor, product_id, page=PageRequest(page=page, per_page=per_page)
        )
        return TransactionListOut(
            data=[TransactionOut.model_validate(t) for t in result.data],
            total=result.total,
            page=result.page,
            per_page=result.per_page,
            total_pages=result.total_pages,
        )

    @router.get("/products/{product_id}/ledger-check", response_model=LedgerCheckOut)
    async def ledger_check(
        product_id: int,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> LedgerCheckOut:
        check = await services.stock.verify_ledger(actor, product_id)
        return LedgerCheckOut(**check.to_dict())

    # ---------------------------------------------------------------
    # 批次 / 入库 / 销售 / 预占
    # ---------------------------------------------------------------
    @router.get("/stock", response_model=BatchListOut)
    async def list_batches(
        product_id: Optional[int] = Query(None),
        include_inactive: bool = Query(False),
        expiring_within_days: Optional[int] = Query(None, ge=0),
        expired_only: bool = Query(False),
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> BatchListOut:
        result = await services.stock.list_batches(
            actor,
            product_id=product_id,
            include_inactive=include_inactive,
            expiring_within_days=expiring_within_days,
            expired_only=expired_only,
        )
        return BatchListOut(
            batches=[_batch_out(r) for r in result["batches"]],
            total_quantity=result["total_quantity"],
            valuation=result["valuation"],
        )

    @router.post("/stock", response_model=ReceiptOut, status_code=201)
    async def receive_stock(
        payload: ReceiveStockIn,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> ReceiptOut:
        result = await services.stock.receive_stock(actor, **payload.model_dump())
        return ReceiptOut(
            new_total=result.new_total,
            batch=BatchOut.model_validate(result.batch),
            transaction=TransactionOut.model_validate(result.transaction),
        )

    @router.post("/sales", response_model=SaleOut)
    async def record_sale(
        payload: SaleIn,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> SaleOut:
        result = await services.stock.record_sale(actor, **payload.model_dump())
        return SaleOut(
            new_total=result.new_total,
            transaction=TransactionOut.model_validate(result.transaction),
            allocations=_allocations(result.allocations),
        )

    @router.post("/reservations", response_model=ReservationOut)
    async def reserve(
        payload: ReservationIn,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> ReservationOut:
        result = await services.stock.reserve(
            actor, product_id=payload.product_id, quantity=payload.quantity
        )
        return ReservationOut(
            product_id=result.product_id,
            reserved_total=result.reserved_total,
            allocations=_allocations(result.allocations),
        )

    @router.post("/reservations/release", response_model=ReservationOut)
    async def release_reservation(
        payload: ReleaseIn,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> ReservationOut:
        result = await services.stock.release_reservation(
            actor,
            product_id=payload.product_id,
            quantity=payload.quantity,
            batch_id=payload.batch_id,
        )
        return ReservationOut(
            product_id=result.product_id,
            reserved_total=result.reserved_total,
            allocations=_allocations(result.allocations),
        )

    # ---------------------------------------------------------------
    # 手工调整
    # ---------------------------------------------------------------
    @router.post("/adjustments", response_model=AdjustmentOut)
    async def adjust_stock(
        payload: AdjustmentIn,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> AdjustmentOut:
        result = await services.stock.adjust(
            actor,
            product_id=payload.product_id,
            adjustment_type=payload.adjustment_type,
            quantity=payload.quantity,
            reason_code=payload.reason_code,
            batch_id=payload.batch_id,
            notes=payload.notes,
        )
        return AdjustmentOut(
            new_total=result.new_total,
            transaction=TransactionOut.model_validate(result.transaction),
        )

    @router.get("/adjustments", response_model=TransactionListOut)
    async def list_adjustments(
        product_id: Optional[int] = Query(None),
        page: int = Query(1),
        per_page: int = Query(50),
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> TransactionListOut:
        result = await services.stock.list_adjustment_history(
            actor, product_id=product_id, page=PageRequest(page=page, per_page=per_page)
        )
        return TransactionListOut(
            data=[TransactionOut.model_validate(t) for t in result.data],
            total=result.total,
            page=result.page,
            per_page=result.per_page,
            total_pages=result.total_pages,
        )

    # ---------------------------------------------------------------
    # 告警报表
    # ---------------------------------------------------------------
    @router.get("/alerts", response_model=AlertsOut)
    async def stock_alerts(
        type: Optional[str] = Query(None, description="low_stock | expiring | expired | all"),
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> AlertsOut:
        async with services.session_maker() as session:
            report = await services.alerts_report.build(
                session, actor.tenant_id, alert_type=type, today=services.stock.today()
            )
        return AlertsOut(**report)


__all__ = ["register"]
