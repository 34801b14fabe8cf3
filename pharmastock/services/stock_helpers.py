# pharmastock/services/stock_helpers.py
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Tuple

from pharmastock.core.errors import ValidationError
from pharmastock.models.batch import Batch
from pharmastock.models.enums import AdjustmentReason, AdjustmentType
from pharmastock.models.stock_transaction import StockTransaction


def positive_int(field_name: str, value: Any) -> int:
    """严格的正整数：拒绝 bool / 非整数浮点 / 无法解析的字符串 / <= 0。"""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} 必须为正整数", context={field_name: value})
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{field_name} 必须为整数", context={field_name: value})
    try:
        v = int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field_name} 必须为整数", context={field_name: value}) from e
    if v <= 0:
        raise ValidationError(f"{field_name} 必须 > 0", context={field_name: v})
    return v


def non_negative_money(field_name: str, value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field_name} 不是合法金额", context={field_name: str(value)}) from e
    if not d.is_finite():
        raise ValidationError(f"{field_name} 不是合法金额", context={field_name: str(value)})
    if d < 0:
        raise ValidationError(f"{field_name} 必须 >= 0", context={field_name: str(d)})
    return d


def parse_adjustment_type(value: Any) -> AdjustmentType:
    try:
        return AdjustmentType(str(value))
    except ValueError as e:
        raise ValidationError(
            "adjustment_type 必须为 add 或 remove", context={"adjustment_type": value}
        ) from e


def parse_reason(value: Any) -> AdjustmentReason:
    if value is None or not str(value).strip():
        raise ValidationError("reason_code 必填")
    try:
        return AdjustmentReason(str(value).strip())
    except ValueError as e:
        raise ValidationError(
            f"未知的 reason_code: {value!r}",
            context={"reason_code": value, "allowed": [r.value for r in AdjustmentReason]},
        ) from e


@dataclass
class AdjustmentResult:
    new_total: int
    transaction: StockTransaction


@dataclass
class ReceiptResult:
    new_total: int
    batch: Batch
    transaction: StockTransaction


@dataclass
class SaleResult:
    new_total: int
    transaction: StockTransaction
    allocations: List[Tuple[int, int]] = field(default_factory=list)


@dataclass
class ReservationResult:
    product_id: int
    reserved_total: int
    allocations: List[Tuple[int, int]] = field(default_factory=list)
