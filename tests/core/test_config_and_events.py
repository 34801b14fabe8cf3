# tests/core/test_config_and_events.py
from __future__ import annotations

import pytest

from pharmastock.core.config import AppSettings
from pharmastock.db.session import normalize_async_dsn
from pharmastock.services.stock_event_bus import StockEventBus
from pharmastock.services.stock_events import StockChanged


def _event(qty_after=1):
    return StockChanged(
        tenant_id=1,
        product_id=1,
        product_name="X",
        movement_type="purchase",
        quantity_change=qty_after,
        quantity_before=0,
        quantity_after=qty_after,
        threshold=0,
    )


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("WEBHOOKS_ENABLED", "false")
    monkeypatch.setenv("LOG_LEVELS", '{"pharmastock.notify": "DEBUG"}')
    monkeypatch.setenv("CONCURRENCY_MAX_RETRIES", "5")
    s = AppSettings(_env_file=None)
    assert s.WEBHOOKS_ENABLED is False
    assert s.LOG_LEVELS == {"pharmastock.notify": "DEBUG"}
    assert s.CONCURRENCY_MAX_RETRIES == 5
    assert s.EXPIRY_CRITICAL_DAYS == 7
    assert s.EXPIRY_WARNING_DAYS == 30


def test_normalize_async_dsn():
    assert normalize_async_dsn("sqlite:///x.db").startswith("sqlite+aiosqlite://")
    assert normalize_async_dsn("postgresql://u:p@h/db").startswith("postgresql+psycopg://")


@pytest.mark.asyncio
async def test_inline_bus_isolates_handler_failures():
    bus = StockEventBus(mode="inline")
    seen = []

    async def broken(ev):
        raise RuntimeError("boom")

    async def ok(ev):
        seen.append(ev.quantity_after)

    bus.subscribe(broken)
    bus.subscribe(ok)
    await bus.publish([_event(1), _event(2)])
    assert seen == [1, 2]


@pytest.mark.asyncio
async def test_background_bus_drains():
    bus = StockEventBus(mode="background")
    seen = []

    async def ok(ev):
        seen.append(ev.quantity_after)

    bus.subscribe(ok)
    await bus.publish([_event(3)])
    await bus.drain()
    assert seen == [3]


def test_unknown_mode_rejected():
    with pytest.raises(ValueError):
        StockEventBus(mode="kafka")
