# pharmastock/schemas/inventory.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# =======================================================
# 商品目录
# =======================================================


class ProductCreateIn(BaseModel):
    name: str = Field(..., description="商品名称")
    barcode: Optional[str] = Field(None, description="条码（可选）")
    min_stock_level: int = Field(0, description="补货阈值，低于它即低库存")
    reorder_quantity: int = Field(0, description="建议补货数量")
    purchase_price: Optional[Decimal] = Field(None, description="参考进价（调整入库的成本）")


class ProductUpdateIn(BaseModel):
    """只提交需要修改的字段（exclude_unset）。"""

    name: Optional[str] = None
    barcode: Optional[str] = None
    min_stock_level: Optional[int] = None
    reorder_quantity: Optional[int] = None
    purchase_price: Optional[Decimal] = None


class ProductOut(BaseModel):
    id: int
    name: str
    barcode: Optional[str] = None
    min_stock_level: int
    reorder_quantity: int
    purchase_price: Optional[Decimal] = None
    is_active: bool
    current_stock: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProductListOut(BaseModel):
    data: List[ProductOut]
    total: int
    page: int
    per_page: int
    total_pages: int


class StockLevelOut(BaseModel):
    product_id: int
    total: int
    reserved: int
    available: int


# =======================================================
# 批次 / 台账
# =======================================================


class BatchOut(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    warehouse_id: Optional[int] = None
    supplier_id: Optional[int] = None
    purchase_order_id: Optional[int] = None
    quantity: int
    reserved_quantity: int
    unit_cost: Optional[Decimal] = None
    batch_number: Optional[str] = None
    lot_number: Optional[str] = None
    expiry_date: Optional[date] = None
    received_date: date
    is_active: bool
    days_until_expiry: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class BatchListOut(BaseModel):
    batches: List[BatchOut]
    total_quantity: int
    valuation: Decimal


class TransactionOut(BaseModel):
    id: int
    product_id: int
    batch_id: Optional[int] = None
    seq: int
    transaction_type: str
    quantity_change: int
    quantity_before: int
    quantity_after: int
    unit_price: Optional[Decimal] = None
    total_value: Optional[Decimal] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    reason_code: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_by_name: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TransactionListOut(BaseModel):
    data: List[TransactionOut]
    total: int
    page: int
    per_page: int
    total_pages: int


class LedgerCheckOut(BaseModel):
    product_id: int
    ok: bool
    entries: int
    replayed_total: int
    current_stock: int
    broken_at_seq: Optional[int] = None
    problem: Optional[str] = None


# =======================================================
# 写操作
# =======================================================


class ReceiveStockIn(BaseModel):
    product_id: int
    quantity: int
    unit_cost: Optional[Decimal] = Field(None, description="缺省取商品参考进价")
    expiry_date: Optional[date] = None
    batch_number: Optional[str] = None
    lot_number: Optional[str] = None
    supplier_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    notes: Optional[str] = None


class ReceiptOut(BaseModel):
    new_total: int
    batch: BatchOut
    transaction: TransactionOut


class AdjustmentIn(BaseModel):
    """
    手工调整请求体：

    - adjustment_type: add | remove
    - reason_code: 封闭枚举（count_correction / damage / theft / expiry / ...）
    - batch_id: 可选；add 时加到该批次，remove 时只扣该批次
    """

    product_id: int
    adjustment_type: str
    quantity: int
    reason_code: Optional[str] = None
    batch_id: Optional[int] = None
    notes: Optional[str] = None


class AdjustmentOut(BaseModel):
    new_total: int
    transaction: TransactionOut


class AllocationOut(BaseModel):
    batch_id: int
    quantity: int


class SaleIn(BaseModel):
    product_id: int
    quantity: int
    unit_price: Optional[Decimal] = Field(None, description="售价（用于台账金额）")
    reference_id: Optional[int] = Field(None, description="POS 单据 ID")
    consume_reserved: bool = False
    notes: Optional[str] = None


class SaleOut(BaseModel):
    new_total: int
    transaction: TransactionOut
    allocations: List[AllocationOut]


class ReservationIn(BaseModel):
    product_id: int
    quantity: int


class ReleaseIn(BaseModel):
    product_id: int
    quantity: int
    batch_id: Optional[int] = None


class ReservationOut(BaseModel):
    product_id: int
    reserved_total: int
    allocations: List[AllocationOut]


class AlertsOut(BaseModel):
    alerts: List[Dict[str, Any]]
    summary: Dict[str, int]
