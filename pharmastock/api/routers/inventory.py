# pharmastock/api/routers/inventory.py
from __future__ import annotations

from fastapi import APIRouter

from pharmastock.api.routers import inventory_routes

router = APIRouter(prefix="/inventory", tags=["inventory"])

inventory_routes.register(router)

__all__ = ["router"]
