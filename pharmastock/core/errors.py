# pharmastock/core/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional


class InventoryError(Exception):
    """
    库存域错误基类：

    - code:   机器可读错误码（API 层原样透出为 error_code）
    - status: 对应的 HTTP 状态码
    - context: 附加定位信息（product_id / batch_id / order_id ...）
    """

    code = "inventory_error"
    status = 400

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status: int | None = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        if code:
            self.code = code
        if status:
            self.status = status
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})


class ValidationError(InventoryError):
    """入参非法：在任何写入之前拒绝。"""

    code = "validation_error"
    status = 422


class InvalidQuantity(ValidationError):
    """批次数量变动后会 < 0（或低于预占量）。"""

    code = "invalid_quantity"


class NotFound(InventoryError):
    """商品 / 批次 / 采购单不存在，或不属于当前租户。"""

    code = "not_found"
    status = 404


class InsufficientStock(InventoryError):
    code = "insufficient_stock"
    status = 409


class InvalidStateTransition(InventoryError):
    code = "invalid_state_transition"
    status = 409


class ConcurrencyConflict(InventoryError):
    """
    工作单元前置条件被并发写者破坏（quantity_before 过期 / seq 冲突）。
    唯一允许自动重试的错误类别。
    """

    code = "concurrency_conflict"
    status = 409


class DownstreamNotificationFailure(InventoryError):
    """通知协作方失败：只记日志，绝不向库存变更的调用方传播。"""

    code = "notification_failed"
    status = 502
