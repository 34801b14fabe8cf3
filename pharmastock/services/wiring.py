# pharmastock/services/wiring.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pharmastock.core.config import AppSettings
from pharmastock.core.tx import TxManager
from pharmastock.db.locks import KeyedLocks
from pharmastock.services.alert_emitter import AlertEmitter
from pharmastock.services.notification_dispatcher import (
    FanoutDispatcher,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    WebhookNotifier,
)
from pharmastock.services.purchase_order_service import PurchaseOrderService
from pharmastock.services.stock_alerts_report import StockAlertsReport
from pharmastock.services.stock_event_bus import StockEventBus
from pharmastock.services.stock_service import StockService
from pharmastock.services.webhook_subscriptions import WebhookSubscriptionService

log = logging.getLogger("pharmastock.wiring")


@dataclass
class Services:
    session_maker: async_sessionmaker[AsyncSession]
    tx: TxManager
    bus: StockEventBus
    emitter: AlertEmitter
    stock: StockService
    purchase_orders: PurchaseOrderService
    alerts_report: StockAlertsReport
    webhooks: WebhookSubscriptionService
    webhook: Optional[WebhookNotifier] = None

    async def aclose(self) -> None:
        await self.bus.drain()
        if self.webhook is not None:
            await self.webhook.aclose()


def build_services(
    session_maker: async_sessionmaker[AsyncSession],
    settings: AppSettings,
    *,
    dispatcher: Optional[NotificationDispatcher] = None,
    today: Callable[[], date] = date.today,
    webhook_client: Optional[httpx.AsyncClient] = None,
) -> Services:
    """
    组装库存内核：

        TxManager ──(提交后)──> StockEventBus ──> AlertEmitter ──> NotificationDispatcher
                                             └──> WebhookNotifier.on_stock_changed（WEBHOOKS_ENABLED 时）

    webhook 端点按租户存在 webhook_subscriptions 表里；dispatcher 未指定时，
    告警信号同时写日志并投递给该租户订阅了 stock.low / stock.out 的端点。
    """
    bus = StockEventBus(mode=settings.EVENT_DISPATCH)
    tx = TxManager(
        session_maker,
        locks=KeyedLocks(),
        max_retries=settings.CONCURRENCY_MAX_RETRIES,
        backoff_ms=settings.CONCURRENCY_RETRY_BACKOFF_MS,
        publisher=bus.publish,
    )

    webhook: Optional[WebhookNotifier] = None
    if settings.WEBHOOKS_ENABLED:
        webhook = WebhookNotifier(
            session_maker, timeout_s=settings.WEBHOOK_TIMEOUT_S, client=webhook_client
        )
        bus.subscribe(webhook.on_stock_changed)
        log.info("[wiring] per-tenant webhook notifications enabled")

    if dispatcher is None:
        dispatcher = (
            FanoutDispatcher(LoggingNotificationDispatcher(), webhook)
            if webhook is not None
            else LoggingNotificationDispatcher()
        )
    emitter = AlertEmitter(dispatcher)
    bus.subscribe(emitter.on_stock_changed)

    return Services(
        session_maker=session_maker,
        tx=tx,
        bus=bus,
        emitter=emitter,
        stock=StockService(tx, today=today),
        purchase_orders=PurchaseOrderService(tx, today=today),
        alerts_report=StockAlertsReport(
            critical_days=settings.EXPIRY_CRITICAL_DAYS,
            warning_days=settings.EXPIRY_WARNING_DAYS,
        ),
        webhooks=WebhookSubscriptionService(tx),
        webhook=webhook,
    )
