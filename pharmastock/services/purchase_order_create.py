# pharmastock/services/purchase_order_create.py
from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pharmastock.core.errors import ConcurrencyConflict, ValidationError
from pharmastock.core.identity import Actor
from pharmastock.models.enums import PurchaseOrderStatus
from pharmastock.models.purchase_order import PurchaseOrder
from pharmastock.models.purchase_order_item import PurchaseOrderItem
from pharmastock.services.product_catalog import ProductCatalog
from pharmastock.services.purchase_order_queries import next_po_number
from pharmastock.services.stock_helpers import non_negative_money, positive_int

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def compute_line_total(unit_price: Decimal, quantity: int, discount_percent: Decimal) -> Decimal:
    """unit_price × quantity × (1 − discount/100)，四舍五入到分（HALF_UP）。"""
    gross = Decimal(unit_price) * int(quantity)
    net = gross * (HUNDRED - Decimal(discount_percent)) / HUNDRED
    return net.quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    行项目校验（不访问数据库）：

    - 至少一行
    - product_id 必填
    - quantity_ordered > 0
    - unit_price >= 0（必填）
    - discount_percent ∈ [0, 100]（缺省 0）
    """
    if not items:
        raise ValidationError("采购单至少需要一行 items")

    out: List[Dict[str, Any]] = []
    for idx, raw in enumerate(items, start=1):
        pid = raw.get("product_id")
        if pid is None:
            raise ValidationError(f"第 {idx} 行缺少 product_id", context={"line_no": idx})
        qty = positive_int("quantity_ordered", raw.get("quantity_ordered"))

        if raw.get("unit_price") is None:
            raise ValidationError(f"第 {idx} 行缺少 unit_price", context={"line_no": idx})
        price = non_negative_money("unit_price", raw.get("unit_price"))

        raw_disc = raw.get("discount_percent")
        try:
            disc = Decimal(str(raw_disc)) if raw_disc is not None else Decimal("0")
        except (InvalidOperation, ValueError) as e:
            raise ValidationError(
                "discount_percent 不是合法数字", context={"line_no": idx}
            ) from e
        if disc < 0 or disc > HUNDRED:
            raise ValidationError(
                "discount_percent 必须在 0..100 之间",
                context={"line_no": idx, "discount_percent": str(disc)},
            )

        out.append(
            {
                "line_no": idx,
                "product_id": int(pid),
                "quantity_ordered": qty,
                "unit_price": price,
                "discount_percent": disc,
                "line_total": compute_line_total(price, qty, disc),
            }
        )
    return out


async def create_order_impl(
    session: AsyncSession,
    *,
    actor: Actor,
    supplier_id: Optional[int],
    supplier_name: Optional[str],
    warehouse_id: Optional[int],
    items: List[Dict[str, Any]],
    order_date: datetime,
    expected_date: Optional[date] = None,
    payment_terms: Optional[str] = None,
    notes: Optional[str] = None,
) -> PurchaseOrder:
    """创建“头 + 多行”的采购单，状态 draft，不影响库存。items 需已经过 normalize_items。"""
    tenant_id = actor.tenant_id

    lines: List[PurchaseOrderItem] = []
    subtotal = Decimal("0")
    for it in items:
        product = await ProductCatalog.get_product(session, tenant_id, it["product_id"])
        lines.append(
            PurchaseOrderItem(
                line_no=it["line_no"],
                product_id=product.id,
                product_name=product.name,
                quantity_ordered=it["quantity_ordered"],
                quantity_received=None,
                unit_price=it["unit_price"],
                discount_percent=it["discount_percent"],
                line_total=it["line_total"],
            )
        )
        subtotal += it["line_total"]

    order = PurchaseOrder(
        tenant_id=tenant_id,
        po_number=await next_po_number(session, tenant_id),
        supplier_id=supplier_id,
        supplier_name=(supplier_name or None),
        warehouse_id=warehouse_id,
        status=PurchaseOrderStatus.DRAFT.value,
        order_date=order_date,
        expected_date=expected_date,
        payment_terms=payment_terms,
        subtotal=subtotal,
        total_amount=subtotal,
        notes=notes,
        created_by=actor.actor_id,
        created_by_name=actor.display_name,
    )
    order.items = lines
    session.add(order)
    try:
        await session.flush()
    except IntegrityError as e:
        raise ConcurrencyConflict(
            f"po_number {order.po_number} already taken", context={"po_number": order.po_number}
        ) from e
    return order
