# pharmastock/models/enums.py
from __future__ import annotations

from enum import StrEnum


class MovementType(StrEnum):
    """
    库存流水类型（落入 stock_transactions.transaction_type）：

    本子系统只写 PURCHASE / SALE / ADJUSTMENT_ADD / ADJUSTMENT_REMOVE，
    其余值保留给系统内其他写入方（处方出库、退货、调拨 ...），台账一律接受。
    """

    PURCHASE = "purchase"
    SALE = "sale"
    PRESCRIPTION = "prescription"
    ADJUSTMENT_ADD = "adjustment_add"
    ADJUSTMENT_REMOVE = "adjustment_remove"
    RETURN_SUPPLIER = "return_supplier"
    RETURN_CUSTOMER = "return_customer"
    EXPIRED = "expired"
    DAMAGE = "damage"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"


ADJUSTMENT_MOVEMENTS = (MovementType.ADJUSTMENT_ADD, MovementType.ADJUSTMENT_REMOVE)


class AdjustmentType(StrEnum):
    ADD = "add"
    REMOVE = "remove"


class AdjustmentReason(StrEnum):
    """手工调整原因码（封闭枚举，非法值在边界处拒绝）。"""

    COUNT_CORRECTION = "count_correction"
    DAMAGE = "damage"
    THEFT = "theft"
    EXPIRY = "expiry"
    QUALITY_ISSUE = "quality_issue"
    DATA_ENTRY_ERROR = "data_entry_error"
    INITIAL_STOCK = "initial_stock"
    OTHER = "other"

    @property
    def label(self) -> str:
        return _REASON_LABELS[self]


_REASON_LABELS = {
    AdjustmentReason.COUNT_CORRECTION: "Inventory Count Correction",
    AdjustmentReason.DAMAGE: "Damaged Product",
    AdjustmentReason.THEFT: "Theft",
    AdjustmentReason.EXPIRY: "Expired Product",
    AdjustmentReason.QUALITY_ISSUE: "Quality Issue",
    AdjustmentReason.DATA_ENTRY_ERROR: "Data Entry Error",
    AdjustmentReason.INITIAL_STOCK: "Initial Stock",
    AdjustmentReason.OTHER: "Other",
}


class PurchaseOrderStatus(StrEnum):
    """
    采购单状态机：

        draft → sent → confirmed → received
        draft / sent → cancelled

    received / cancelled 为终态。
    """

    DRAFT = "draft"
    SENT = "sent"
    CONFIRMED = "confirmed"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class AlertKind(StrEnum):
    LOW = "low"
    OUT = "out"


__all__ = [
    "ADJUSTMENT_MOVEMENTS",
    "AdjustmentReason",
    "AdjustmentType",
    "AlertKind",
    "MovementType",
    "PurchaseOrderStatus",
]
