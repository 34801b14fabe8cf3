# pharmastock/services/alert_emitter.py
from __future__ import annotations

import logging
from typing import Optional

from pharmastock.core.errors import DownstreamNotificationFailure
from pharmastock.metrics import ALERT_SIGNALS, NOTIFY_FAILURES
from pharmastock.models.enums import AlertKind
from pharmastock.services.notification_dispatcher import NotificationDispatcher
from pharmastock.services.stock_events import StockChanged, StockSignal

log = logging.getLogger("pharmastock.alerts")


def evaluate(new_total: int, reorder_threshold: int) -> Optional[AlertKind]:
    """out ⇔ 库存为 0；否则 low ⇔ 库存 < 阈值；两者不会同时成立。"""
    total = int(new_total)
    if total == 0:
        return AlertKind.OUT
    if total < int(reorder_threshold or 0):
        return AlertKind.LOW
    return None


class AlertEmitter:
    """
    无状态告警发射器：订阅 StockChanged，对变更后的总量求值，
    命中 low / out 时交给通知协作方。

    协作方失败 → DownstreamNotificationFailure，记日志 + 计数，绝不向上传播。
    """

    def __init__(self, dispatcher: NotificationDispatcher) -> None:
        self.dispatcher = dispatcher

    async def on_stock_changed(self, event: StockChanged) -> Optional[StockSignal]:
        kind = evaluate(event.quantity_after, event.threshold)
        if kind is None:
            return None

        signal = StockSignal(
            tenant_id=event.tenant_id,
            product_id=event.product_id,
            product_name=event.product_name,
            kind=kind.value,
            current_quantity=event.quantity_after,
            threshold=event.threshold,
        )
        ALERT_SIGNALS.labels(kind=kind.value).inc()

        try:
            try:
                await self.dispatcher.send(signal)
            except DownstreamNotificationFailure:
                raise
            except Exception as e:
                raise DownstreamNotificationFailure(
                    f"dispatcher failed for {kind.value} signal: {e}",
                    context={"product_id": event.product_id, "kind": kind.value},
                ) from e
        except DownstreamNotificationFailure:
            NOTIFY_FAILURES.labels(channel="alert").inc()
            log.exception(
                "[alert] notification failed tenant=%s product=%s kind=%s",
                event.tenant_id,
                event.product_id,
                kind.value,
            )
        return signal
