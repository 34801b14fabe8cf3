# pharmastock/models/webhook_subscription.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from pharmastock.db.base import Base

UTC = timezone.utc


class WebhookSubscription(Base):
    """
    租户级 webhook 订阅：

        url / secret   投递地址与 HMAC 密钥（secret 为空则不签名）
        events         订阅的事件名列表；空列表 = 全部事件
        is_active      停用后不再投递，记录保留
        last_delivery_*  最近一次投递结果（只做展示，不参与重试）
    """

    __tablename__ = "webhook_subscriptions"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(sa.Integer, nullable=False, index=True)

    name: Mapped[str] = mapped_column(sa.String(128), nullable=False)
    url: Mapped[str] = mapped_column(sa.String(1024), nullable=False)
    secret: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)
    events: Mapped[List[str]] = mapped_column(sa.JSON, nullable=False, default=lambda: [])

    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=True, server_default=sa.true()
    )

    last_delivery_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    last_delivery_status: Mapped[Optional[str]] = mapped_column(sa.String(16), nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(sa.String(500), nullable=True)

    created_by: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        server_default=func.now(),
    )

    __table_args__ = (sa.Index("ix_webhook_subscriptions_tenant_active", "tenant_id", "is_active"),)

    def accepts(self, event_name: str) -> bool:
        return not self.events or event_name in self.events

    def __repr__(self) -> str:
        return (
            f"<WebhookSubscription id={self.id} tenant={self.tenant_id} "
            f"url={self.url!r} active={self.is_active}>"
        )
