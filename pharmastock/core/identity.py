# pharmastock/core/identity.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Actor:
    """
    操作者身份（由上游鉴权层提供，库存内核直接信任，不再重复推导）：

    - tenant_id: 药房 / 专业卖家 ID（所有读写按它隔离）
    - actor_id:  操作人 ID（写入台账 created_by）
    - name:      操作人显示名（写入台账 created_by_name）
    """

    tenant_id: int
    actor_id: Optional[str] = None
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or SYSTEM_ACTOR_NAME


SYSTEM_ACTOR_NAME = "system"
