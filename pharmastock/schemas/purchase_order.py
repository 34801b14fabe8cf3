# pharmastock/schemas/purchase_order.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PurchaseOrderItemIn(BaseModel):
    product_id: int = Field(..., description="商品 ID（必须属于当前租户）")
    quantity_ordered: int = Field(..., description="订购数量（> 0）")
    unit_price: Decimal = Field(..., description="单价（>= 0）")
    discount_percent: Decimal = Field(Decimal("0"), description="折扣百分比 0..100")


class PurchaseOrderCreateIn(BaseModel):
    """
    创建“头 + 多行”的请求体：

    - 状态固定为 draft，不影响库存
    - items 至少一行（空列表在服务层拒绝）
    """

    supplier_id: Optional[int] = None
    supplier_name: Optional[str] = None
    warehouse_id: Optional[int] = None
    expected_date: Optional[date] = None
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    items: List[PurchaseOrderItemIn] = Field(default_factory=list)


class ReceiveLineIn(BaseModel):
    item_id: int
    quantity_received: Optional[int] = Field(None, description="缺省 = 订购数量")
    batch_number: Optional[str] = None
    lot_number: Optional[str] = None
    expiry_date: Optional[date] = None


class PurchaseOrderReceiveIn(BaseModel):
    lines: List[ReceiveLineIn] = Field(default_factory=list)


class PurchaseOrderItemOut(BaseModel):
    id: int
    line_no: int
    product_id: int
    product_name: Optional[str] = None
    quantity_ordered: int
    quantity_received: Optional[int] = None
    unit_price: Decimal
    discount_percent: Decimal
    line_total: Decimal
    received_batch_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class PurchaseOrderOut(BaseModel):
    id: int
    po_number: str
    supplier_id: Optional[int] = None
    supplier_name: Optional[str] = None
    warehouse_id: Optional[int] = None
    status: str
    order_date: datetime
    expected_date: Optional[date] = None
    received_date: Optional[date] = None
    payment_terms: Optional[str] = None
    subtotal: Decimal
    total_amount: Decimal
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_by_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    items: List[PurchaseOrderItemOut] = []

    model_config = ConfigDict(from_attributes=True)


class PurchaseOrderListOut(BaseModel):
    data: List[PurchaseOrderOut]
    total: int
    page: int
    per_page: int
    total_pages: int
