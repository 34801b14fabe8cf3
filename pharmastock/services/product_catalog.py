# pharmastock/services/product_catalog.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pharmastock.core.errors import NotFound, ValidationError
from pharmastock.models.batch import Batch
from pharmastock.models.product import Product
from pharmastock.services.pagination import Page, PageRequest
from pharmastock.services.stock_helpers import non_negative_money

log = logging.getLogger("pharmastock.catalog")

_UPDATABLE = {"name", "barcode", "min_stock_level", "reorder_quantity", "purchase_price"}


def _clean_name(name: Any) -> str:
    s = str(name or "").strip()
    if not s:
        raise ValidationError("商品名称 name 不能为空")
    return s


def _non_negative_int(field: str, value: Any) -> int:
    try:
        v = int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field} 必须为整数", context={field: value}) from e
    if v < 0:
        raise ValidationError(f"{field} 必须 >= 0", context={field: v})
    return v


def _stock_subquery():
    return (
        select(
            Batch.product_id.label("product_id"),
            func.coalesce(func.sum(Batch.quantity), 0).label("qty"),
        )
        .where(Batch.is_active.is_(True))
        .group_by(Batch.product_id)
        .subquery()
    )


class ProductCatalog:
    """
    商品目录（库存各组件只读它：阈值 / 参考进价 / 显示名）

    写操作（建档 / 改阈值 / 软停用）由目录管理入口调用，事务由调用方控制。
    """

    @staticmethod
    async def get_product(
        session: AsyncSession,
        tenant_id: int,
        product_id: int,
        *,
        for_update: bool = False,
    ) -> Product:
        """
        按 (tenant_id, product_id) 取商品；不存在或属于其他租户 → NotFound。

        for_update=True：在当前事务里锁商品行（PostgreSQL 行锁；sqlite 无操作），
        同一商品的库存写操作借此跨进程串行。
        """
        stmt = select(Product).where(
            Product.id == int(product_id),
            Product.tenant_id == int(tenant_id),
        )
        if for_update:
            stmt = stmt.with_for_update()
        product = (await session.execute(stmt)).scalars().first()
        if product is None:
            raise NotFound(
                f"Product not found: id={product_id}",
                context={"product_id": int(product_id)},
            )
        return product

    @staticmethod
    async def list_products(
        session: AsyncSession,
        tenant_id: int,
        *,
        search: Optional[str] = None,
        active_only: bool = True,
        low_stock_only: bool = False,
        page: PageRequest = PageRequest(),
    ) -> Page[Dict[str, Any]]:
        """
        商品列表（带当前库存）。

        low_stock_only：只要 min_stock_level > 0 且 库存 < min_stock_level 的商品（含缺货）。
        """
        stock = _stock_subquery()
        current = func.coalesce(stock.c.qty, 0)

        cond = [Product.tenant_id == int(tenant_id)]
        if active_only:
            cond.append(Product.is_active.is_(True))
        if search and search.strip():
            like = f"%{search.strip()}%"
            cond.append(or_(Product.name.ilike(like), Product.barcode.ilike(like)))
        if low_stock_only:
            cond.append(Product.min_stock_level > 0)
            cond.append(current < Product.min_stock_level)

        base = select(Product, current.label("current_stock")).outerjoin(
            stock, stock.c.product_id == Product.id
        )
        base = base.where(*cond)

        total = (
            await session.execute(select(func.count()).select_from(base.subquery()))
        ).scalar_one()

        rows = (
            await session.execute(
                base.order_by(Product.name.asc(), Product.id.asc())
                .offset(page.offset)
                .limit(page.per_page)
            )
        ).all()

        data = [{"product": p, "current_stock": int(qty or 0)} for p, qty in rows]
        return Page(data=data, total=int(total), page=page.page, per_page=page.per_page)

    @staticmethod
    async def create_product(
        session: AsyncSession,
        tenant_id: int,
        *,
        name: str,
        barcode: Optional[str] = None,
        min_stock_level: int = 0,
        reorder_quantity: int = 0,
        purchase_price: Any = None,
    ) -> Product:
        product = Product(
            tenant_id=int(tenant_id),
            name=_clean_name(name),
            barcode=(barcode.strip() or None) if barcode else None,
            min_stock_level=_non_negative_int("min_stock_level", min_stock_level),
            reorder_quantity=_non_negative_int("reorder_quantity", reorder_quantity),
            purchase_price=non_negative_money("purchase_price", purchase_price),
            is_active=True,
        )
        session.add(product)
        await session.flush()
        log.info("product created tenant=%s id=%s name=%r", tenant_id, product.id, product.name)
        return product

    @staticmethod
    async def update_product(
        session: AsyncSession,
        tenant_id: int,
        product_id: int,
        changes: Dict[str, Any],
    ) -> Product:
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValidationError(
                f"不支持修改的字段: {sorted(unknown)}", context={"fields": sorted(unknown)}
            )

        product = await ProductCatalog.get_product(session, tenant_id, product_id, for_update=True)
        if "name" in changes:
            product.name = _clean_name(changes["name"])
        if "barcode" in changes:
            bc = changes["barcode"]
            product.barcode = (str(bc).strip() or None) if bc is not None else None
        if "min_stock_level" in changes:
            product.min_stock_level = _non_negative_int("min_stock_level", changes["min_stock_level"])
        if "reorder_quantity" in changes:
            product.reorder_quantity = _non_negative_int(
                "reorder_quantity", changes["reorder_quantity"]
            )
        if "purchase_price" in changes:
            product.purchase_price = non_negative_money("purchase_price", changes["purchase_price"])
        await session.flush()
        return product

    @staticmethod
    async def deactivate_product(session: AsyncSession, tenant_id: int, product_id: int) -> Product:
        """软停用：批次与台账保留，商品不再出现在默认列表中。"""
        product = await ProductCatalog.get_product(session, tenant_id, product_id, for_update=True)
        product.is_active = False
        await session.flush()
        log.info("product deactivated tenant=%s id=%s", tenant_id, product_id)
        return product
