# pharmastock/services/notification_dispatcher.py
from __future__ import annotations

import hashlib
import hmac
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol, Tuple

import httpx
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pharmastock.core.errors import DownstreamNotificationFailure
from pharmastock.metrics import NOTIFY_FAILURES
from pharmastock.models.enums import MovementType
from pharmastock.models.webhook_subscription import WebhookSubscription
from pharmastock.services.stock_events import StockChanged, StockSignal
from pharmastock.services.webhook_subscriptions import deliverable_subscriptions

log = logging.getLogger("pharmastock.notify")

UTC = timezone.utc

_MOVEMENT_EVENTS = {
    MovementType.PURCHASE.value: "stock.received",
    MovementType.SALE.value: "stock.sold",
    MovementType.ADJUSTMENT_ADD.value: "stock.adjusted",
    MovementType.ADJUSTMENT_REMOVE.value: "stock.adjusted",
}


class NotificationDispatcher(Protocol):
    """通知协作方：把低库存 / 缺货信号送出去（文案翻译与渠道由其负责）。"""

    async def send(self, signal: StockSignal) -> None: ...


class LoggingNotificationDispatcher:
    """未配置 webhook 时的默认实现：只写日志。"""

    async def send(self, signal: StockSignal) -> None:
        log.warning(
            "[alert] %s stock tenant=%s product=%s(%s) qty=%s threshold=%s",
            signal.kind,
            signal.tenant_id,
            signal.product_id,
            signal.product_name,
            signal.current_quantity,
            signal.threshold,
        )


def sign_payload(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    if not signature or not signature.startswith("sha256="):
        return False
    return hmac.compare_digest(sign_payload(body, secret), signature)


def movement_event_name(movement_type: str) -> str:
    return _MOVEMENT_EVENTS.get(str(movement_type), "stock.changed")


class WebhookNotifier:
    """
    Webhook 通知（按租户订阅投递）：

    - send(signal)            → stock.low / stock.out
    - on_stock_changed(event) → stock.received / stock.sold / stock.adjusted
    - 只投递给触发租户自己的、启用中的、订阅了该事件的端点（webhook_subscriptions）
    - payload = {event, tenant_id, timestamp, data}，POST JSON
    - 端点配置了 secret 时附带 X-Webhook-Signature: sha256=<hmac hex>

    单个端点失败不影响其他端点；全部尝试完后若有失败，
    包装为 DownstreamNotificationFailure 抛给调用方（AlertEmitter / 事件总线），
    由调用方记日志，库存变更不受影响。
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        timeout_s: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.session_maker = session_maker
        self.timeout_s = float(timeout_s)
        self._client = client

    async def send(self, signal: StockSignal) -> None:
        await self.deliver(
            f"stock.{signal.kind}",
            tenant_id=signal.tenant_id,
            data=signal.to_payload(),
        )

    async def on_stock_changed(self, event: StockChanged) -> None:
        await self.deliver(
            movement_event_name(event.movement_type),
            tenant_id=event.tenant_id,
            data=event.to_payload(),
        )

    @staticmethod
    def build_request(
        event_name: str,
        *,
        tenant_id: int,
        data: Dict[str, Any],
        secret: Optional[str] = None,
    ) -> Tuple[bytes, Dict[str, str]]:
        body = json.dumps(
            {
                "event": event_name,
                "tenant_id": int(tenant_id),
                "timestamp": datetime.now(UTC).isoformat(),
                "data": data,
            },
            ensure_ascii=False,
            default=str,
        ).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-Webhook-Event": event_name,
            "X-Webhook-Delivery-Id": str(uuid.uuid4()),
        }
        if secret:
            headers["X-Webhook-Signature"] = sign_payload(body, secret)
        return body, headers

    async def _post(self, url: str, body: bytes, headers: Dict[str, str]) -> httpx.Response:
        if self._client is not None:
            resp = await self._client.post(url, content=body, headers=headers, timeout=self.timeout_s)
        else:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                resp = await client.post(url, content=body, headers=headers)
        resp.raise_for_status()
        return resp

    async def deliver(self, event_name: str, *, tenant_id: int, data: Dict[str, Any]) -> int:
        """投递给该租户匹配的全部端点；返回尝试投递的端点数。"""
        async with self.session_maker() as session:
            targets = [
                (int(sub.id), sub.url, sub.secret)
                for sub in await deliverable_subscriptions(session, tenant_id, event_name)
            ]
        if not targets:
            return 0

        outcomes: Dict[int, Optional[str]] = {}
        for sub_id, url, secret in targets:
            body, headers = self.build_request(
                event_name, tenant_id=tenant_id, data=data, secret=secret
            )
            try:
                resp = await self._post(url, body, headers)
            except httpx.HTTPError as e:
                NOTIFY_FAILURES.labels(channel="webhook").inc()
                outcomes[sub_id] = f"{type(e).__name__}: {e}"[:500]
                log.warning(
                    "[webhook] %s tenant=%s subscription=%s failed: %s",
                    event_name,
                    tenant_id,
                    sub_id,
                    e,
                )
                continue
            outcomes[sub_id] = None
            log.info(
                "[webhook] delivered %s tenant=%s subscription=%s status=%s",
                event_name,
                tenant_id,
                sub_id,
                resp.status_code,
            )

        await self._record(outcomes)

        failed = sorted(sid for sid, err in outcomes.items() if err is not None)
        if failed:
            raise DownstreamNotificationFailure(
                f"webhook delivery failed: {event_name} ({len(failed)}/{len(targets)} endpoints)",
                context={
                    "event": event_name,
                    "tenant_id": int(tenant_id),
                    "failed_subscriptions": failed,
                },
            )
        return len(targets)

    async def _record(self, outcomes: Dict[int, Optional[str]]) -> None:
        now = datetime.now(UTC)
        async with self.session_maker() as session:
            async with session.begin():
                for sub_id, err in outcomes.items():
                    await session.execute(
                        update(WebhookSubscription)
                        .where(WebhookSubscription.id == sub_id)
                        .values(
                            last_delivery_at=now,
                            last_delivery_status="failed" if err else "success",
                            last_error=err,
                        )
                    )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


class FanoutDispatcher:
    """把同一个信号依次交给多个协作方；全部尝试后再抛出第一个失败。"""

    def __init__(self, *dispatchers: NotificationDispatcher) -> None:
        self.dispatchers = list(dispatchers)

    async def send(self, signal: StockSignal) -> None:
        first_error: Optional[Exception] = None
        for d in self.dispatchers:
            try:
                await d.send(signal)
            except Exception as e:
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error
