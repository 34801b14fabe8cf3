# pharmastock/api/routers/purchase_orders.py
from __future__ import annotations

from fastapi import APIRouter

from pharmastock.api.routers import purchase_orders_routes

router = APIRouter(prefix="/purchase-orders", tags=["purchase-orders"])

purchase_orders_routes.register(router)

__all__ = ["router"]
