# pharmastock/services/purchase_order_queries.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pharmastock.core.errors import NotFound, ValidationError
from pharmastock.models.enums import PurchaseOrderStatus
from pharmastock.models.purchase_order import PurchaseOrder
from pharmastock.services.pagination import Page, PageRequest


async def get_order(
    session: AsyncSession,
    tenant_id: int,
    order_id: int,
    *,
    for_update: bool = False,
) -> PurchaseOrder:
    """采购单（头 + 行，行按 line_no 排序）；不存在或属于其他租户 → NotFound。"""
    stmt = select(PurchaseOrder).where(
        PurchaseOrder.id == int(order_id),
        PurchaseOrder.tenant_id == int(tenant_id),
    )
    if for_update:
        stmt = stmt.with_for_update()
    order = (await session.execute(stmt)).scalars().first()
    if order is None:
        raise NotFound(
            f"Purchase order not found: id={order_id}", context={"order_id": int(order_id)}
        )
    return order


async def list_orders(
    session: AsyncSession,
    tenant_id: int,
    *,
    status: Optional[str] = None,
    supplier_id: Optional[int] = None,
    page: PageRequest = PageRequest(),
) -> Page[PurchaseOrder]:
    cond = [PurchaseOrder.tenant_id == int(tenant_id)]
    if status:
        try:
            cond.append(PurchaseOrder.status == PurchaseOrderStatus(status).value)
        except ValueError as e:
            raise ValidationError(f"未知的采购单状态: {status!r}", context={"status": status}) from e
    if supplier_id is not None:
        cond.append(PurchaseOrder.supplier_id == int(supplier_id))

    total = (
        await session.execute(select(func.count(PurchaseOrder.id)).where(*cond))
    ).scalar_one()
    rows = (
        await session.execute(
            select(PurchaseOrder)
            .where(*cond)
            .order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
            .offset(page.offset)
            .limit(page.per_page)
        )
    ).scalars().all()
    return Page(data=list(rows), total=int(total), page=page.page, per_page=page.per_page)


async def next_po_number(session: AsyncSession, tenant_id: int) -> str:
    """PO-<tenant>-<seq:05d>；并发抢号由唯一约束兜底（撞号 → 整单重试）。"""
    n = (
        await session.execute(
            select(func.count(PurchaseOrder.id)).where(PurchaseOrder.tenant_id == int(tenant_id))
        )
    ).scalar_one()
    return f"PO-{int(tenant_id)}-{int(n) + 1:05d}"
