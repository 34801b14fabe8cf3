# pharmastock/api/routers/webhooks.py
from __future__ import annotations

from fastapi import APIRouter

from pharmastock.api.routers import webhooks_routes

router = APIRouter(prefix="/inventory/integrations/webhooks", tags=["webhooks"])

webhooks_routes.register(router)

__all__ = ["router"]
