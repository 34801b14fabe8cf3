# pharmastock/services/webhook_subscriptions.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pharmastock.core.errors import NotFound, ValidationError
from pharmastock.core.identity import Actor
from pharmastock.core.tx import TxManager
from pharmastock.db.uow import UnitOfWork
from pharmastock.models.webhook_subscription import WebhookSubscription

log = logging.getLogger("pharmastock.notify")

# 本服务会投递的事件
WEBHOOK_EVENTS = frozenset(
    {
        "stock.received",
        "stock.sold",
        "stock.adjusted",
        "stock.changed",
        "stock.low",
        "stock.out",
    }
)

_UPDATABLE = {"name", "url", "secret", "events", "is_active"}


def _clean_name(value: Any) -> str:
    s = str(value or "").strip()
    if not s:
        raise ValidationError("webhook name 不能为空")
    if len(s) > 128:
        raise ValidationError("webhook name 过长", context={"max_length": 128})
    return s


def _clean_url(value: Any) -> str:
    raw = str(value or "").strip()
    try:
        url = httpx.URL(raw)
    except httpx.InvalidURL as e:
        raise ValidationError(f"webhook url 非法: {raw!r}", context={"url": raw}) from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ValidationError(f"webhook url 必须是 http(s) 地址: {raw!r}", context={"url": raw})
    if len(raw) > 1024:
        raise ValidationError("webhook url 过长", context={"max_length": 1024})
    return raw


def _clean_events(value: Optional[Iterable[Any]]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        raise ValidationError("events 必须是事件名列表", context={"events": value})
    events: List[str] = []
    for ev in value:
        name = str(ev).strip()
        if name not in WEBHOOK_EVENTS:
            raise ValidationError(
                f"未知的 webhook 事件: {name!r}",
                context={"event": name, "allowed": sorted(WEBHOOK_EVENTS)},
            )
        if name not in events:
            events.append(name)
    return events


async def deliverable_subscriptions(
    session: AsyncSession, tenant_id: int, event_name: str
) -> List[WebhookSubscription]:
    """该租户启用中、且订阅了 event_name 的端点（按 id 排序）。"""
    rows = await session.execute(
        select(WebhookSubscription)
        .where(
            WebhookSubscription.tenant_id == int(tenant_id),
            WebhookSubscription.is_active.is_(True),
        )
        .order_by(WebhookSubscription.id.asc())
    )
    return [sub for sub in rows.scalars().all() if sub.accepts(event_name)]


class WebhookSubscriptionService:
    """
    租户 webhook 订阅管理（建 / 查 / 改 / 删）。

    所有操作按 actor.tenant_id 隔离：其他租户的订阅一律 NotFound。
    """

    def __init__(self, tx: TxManager) -> None:
        self.tx = tx

    @staticmethod
    async def _get(session: AsyncSession, tenant_id: int, subscription_id: int) -> WebhookSubscription:
        sub = (
            await session.execute(
                select(WebhookSubscription).where(
                    WebhookSubscription.id == int(subscription_id),
                    WebhookSubscription.tenant_id == int(tenant_id),
                )
            )
        ).scalars().first()
        if sub is None:
            raise NotFound(
                f"Webhook subscription not found: id={subscription_id}",
                context={"subscription_id": int(subscription_id)},
            )
        return sub

    async def create(
        self,
        actor: Actor,
        *,
        name: str,
        url: str,
        secret: Optional[str] = None,
        events: Optional[Iterable[str]] = None,
    ) -> WebhookSubscription:
        fields = dict(
            tenant_id=int(actor.tenant_id),
            name=_clean_name(name),
            url=_clean_url(url),
            secret=(secret or None),
            events=_clean_events(events),
            is_active=True,
            created_by=actor.actor_id,
        )

        async def _work(uow: UnitOfWork) -> WebhookSubscription:
            sub = WebhookSubscription(**fields)
            uow.session.add(sub)
            await uow.session.flush()
            return sub

        created = await self.tx.run(_work, op="webhook")
        log.info(
            "[webhook] subscription created tenant=%s id=%s events=%s",
            actor.tenant_id,
            created.id,
            created.events or "*",
        )
        return created

    async def update(
        self, actor: Actor, subscription_id: int, changes: Dict[str, Any]
    ) -> WebhookSubscription:
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValidationError(
                f"不支持修改的字段: {sorted(unknown)}", context={"fields": sorted(unknown)}
            )

        async def _work(uow: UnitOfWork) -> WebhookSubscription:
            sub = await self._get(uow.session, actor.tenant_id, subscription_id)
            if "name" in changes:
                sub.name = _clean_name(changes["name"])
            if "url" in changes:
                sub.url = _clean_url(changes["url"])
            if "secret" in changes:
                sub.secret = changes["secret"] or None
            if "events" in changes:
                sub.events = _clean_events(changes["events"])
            if "is_active" in changes:
                sub.is_active = bool(changes["is_active"])
            await uow.session.flush()
            return sub

        return await self.tx.run(_work, op="webhook")

    async def delete(self, actor: Actor, subscription_id: int) -> None:
        async def _work(uow: UnitOfWork) -> None:
            sub = await self._get(uow.session, actor.tenant_id, subscription_id)
            await uow.session.delete(sub)
            await uow.session.flush()

        await self.tx.run(_work, op="webhook")
        log.info("[webhook] subscription deleted tenant=%s id=%s", actor.tenant_id, subscription_id)

    async def get(self, actor: Actor, subscription_id: int) -> WebhookSubscription:
        async with self.tx.session_maker() as session:
            return await self._get(session, actor.tenant_id, subscription_id)

    async def list(self, actor: Actor) -> List[WebhookSubscription]:
        async with self.tx.session_maker() as session:
            rows = await session.execute(
                select(WebhookSubscription)
                .where(WebhookSubscription.tenant_id == int(actor.tenant_id))
                .order_by(WebhookSubscription.created_at.desc(), WebhookSubscription.id.desc())
            )
            return list(rows.scalars().all())
