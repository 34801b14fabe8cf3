# pharmastock/api/deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Header, Request

from pharmastock.api.problem import raise_problem
from pharmastock.core.identity import Actor
from pharmastock.services.wiring import Services


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise_problem(
            status_code=503,
            error_code="service_unavailable",
            message="inventory services are not initialised",
        )
    return services


def get_actor(
    x_tenant_id: int = Header(..., alias="X-Tenant-Id"),
    x_actor_id: Optional[str] = Header(None, alias="X-Actor-Id"),
    x_actor_name: Optional[str] = Header(None, alias="X-Actor-Name"),
) -> Actor:
    """身份由上游网关注入（可信头），这里只做解析。"""
    return Actor(tenant_id=int(x_tenant_id), actor_id=x_actor_id, name=x_actor_name)
