# pharmastock/api/routers/purchase_orders_routes.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from pharmastock.api.deps import get_actor, get_services
from pharmastock.core.identity import Actor
from pharmastock.schemas.purchase_order import (
    PurchaseOrderCreateIn,
    PurchaseOrderListOut,
    PurchaseOrderOut,
    PurchaseOrderReceiveIn,
)
from pharmastock.services.pagination import PageRequest
from pharmastock.services.wiring import Services


def register(router: APIRouter) -> None:
    @router.post("", response_model=PurchaseOrderOut, status_code=201)
    async def create_purchase_order(
        payload: PurchaseOrderCreateIn,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> PurchaseOrderOut:
        po = await services.purchase_orders.create(
            actor,
            supplier_id=payload.supplier_id,
            supplier_name=payload.supplier_name,
            warehouse_id=payload.warehouse_id,
            items=[it.model_dump() for it in payload.items],
            expected_date=payload.expected_date,
            payment_terms=payload.payment_terms,
            notes=payload.notes,
        )
        return PurchaseOrderOut.model_validate(po)

    @router.get("", response_model=PurchaseOrderListOut)
    async def list_purchase_orders(
        status: Optional[str] = Query(None),
        supplier_id: Optional[int] = Query(None),
        page: int = Query(1),
        per_page: int = Query(50),
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> PurchaseOrderListOut:
        result = await services.purchase_orders.list(
            actor,
            status=status,
            supplier_id=supplier_id,
            page=PageRequest(page=page, per_page=per_page),
        )
        return PurchaseOrderListOut(
            data=[PurchaseOrderOut.model_validate(po) for po in result.data],
            total=result.total,
            page=result.page,
            per_page=result.per_page,
            total_pages=result.total_pages,
        )

    @router.get("/{order_id}", response_model=PurchaseOrderOut)
    async def get_purchase_order(
        order_id: int,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> PurchaseOrderOut:
        return PurchaseOrderOut.model_validate(await services.purchase_orders.get(actor, order_id))

    @router.post("/{order_id}/send", response_model=PurchaseOrderOut)
    async def send_purchase_order(
        order_id: int,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> PurchaseOrderOut:
        return PurchaseOrderOut.model_validate(await services.purchase_orders.send(actor, order_id))

    @router.post("/{order_id}/confirm", response_model=PurchaseOrderOut)
    async def confirm_purchase_order(
        order_id: int,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> PurchaseOrderOut:
        return PurchaseOrderOut.model_validate(
            await services.purchase_orders.confirm(actor, order_id)
        )

    @router.post("/{order_id}/cancel", response_model=PurchaseOrderOut)
    async def cancel_purchase_order(
        order_id: int,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> PurchaseOrderOut:
        return PurchaseOrderOut.model_validate(
            await services.purchase_orders.cancel(actor, order_id)
        )

    @router.post("/{order_id}/receive", response_model=PurchaseOrderOut)
    async def receive_purchase_order(
        order_id: int,
        payload: Optional[PurchaseOrderReceiveIn] = None,
        actor: Actor = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> PurchaseOrderOut:
        lines = [ln.model_dump() for ln in payload.lines] if payload is not None else None
        po = await services.purchase_orders.receive(actor, order_id, lines)
        return PurchaseOrderOut.model_validate(po)
