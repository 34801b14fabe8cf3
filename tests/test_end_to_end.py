# tests/test_end_to_end.py
from __future__ import annotations

import json

import httpx
import pytest

from pharmastock.services.notification_dispatcher import WebhookNotifier
from pharmastock.services.wiring import build_services
from tests.helpers.inventory import TODAY, ledger_of, make_product


@pytest.mark.asyncio
async def test_purchase_then_data_entry_correction(services, actor, dispatcher, session):
    p = await make_product(services, actor, name="Metformin 850mg", min_stock_level=5)

    order = await services.purchase_orders.create(
        actor,
        supplier_id=None,
        supplier_name="Acme Pharma",
        warehouse_id=None,
        items=[{"product_id": p.id, "quantity_ordered": 20, "unit_price": "100"}],
    )
    await services.purchase_orders.send(actor, order.id)
    await services.purchase_orders.receive(actor, order.id)

    level = await services.stock.get_stock_level(actor, p.id)
    assert level["total"] == 20
    assert dispatcher.signals == []

    res = await services.stock.adjust(
        actor,
        product_id=p.id,
        adjustment_type="remove",
        quantity=18,
        reason_code="data_entry_error",
    )
    assert res.new_total == 2

    assert dispatcher.kinds() == ["low"]
    assert dispatcher.signals[0].current_quantity == 2
    assert dispatcher.signals[0].product_name == "Metformin 850mg"

    rows = await ledger_of(session, p.id)
    assert [(r.transaction_type, r.quantity_before, r.quantity_after) for r in rows] == [
        ("purchase", 0, 20),
        ("adjustment_remove", 20, 2),
    ]
    assert rows[1].reason_code == "data_entry_error"


@pytest.mark.asyncio
async def test_webhook_wiring_posts_movements_and_alerts(
    async_session_maker, settings, actor, other_actor
):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.url.host, json.loads(request.content)))
        return httpx.Response(204)

    services = build_services(
        async_session_maker,
        settings,
        today=lambda: TODAY,
        webhook_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    assert isinstance(services.webhook, WebhookNotifier)

    await services.webhooks.create(actor, name="pharmacy-1", url="https://one.example/h", secret="k")
    await services.webhooks.create(
        other_actor, name="pharmacy-2", url="https://two.example/h", events=["stock.low"]
    )

    p = await make_product(services, actor, min_stock_level=10)
    await services.stock.receive_stock(actor, product_id=p.id, quantity=4)

    q = await make_product(services, other_actor, min_stock_level=10)
    await services.stock.receive_stock(other_actor, product_id=q.id, quantity=20)
    await services.aclose()

    by_host = {}
    for host, body in seen:
        by_host.setdefault(host, []).append(body)

    assert [m["event"] for m in by_host["one.example"]] == ["stock.received", "stock.low"]
    assert by_host["one.example"][0]["data"]["quantity_after"] == 4
    assert by_host["one.example"][1]["data"]["kind"] == "low"
    assert all(m["tenant_id"] == 1 for m in by_host["one.example"])
    # 租户 2 只订阅了 stock.low，且库存 20 不低于阈值
    assert "two.example" not in by_host


@pytest.mark.asyncio
async def test_webhook_outage_never_fails_stock_writes(async_session_maker, settings, actor):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    services = build_services(
        async_session_maker,
        settings,
        today=lambda: TODAY,
        webhook_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    await services.webhooks.create(actor, name="flaky", url="https://hooks.example/stock")

    p = await make_product(services, actor, min_stock_level=10)
    res = await services.stock.receive_stock(actor, product_id=p.id, quantity=4)
    assert res.new_total == 4
    await services.aclose()

    subs = await services.webhooks.list(actor)
    assert subs[0].last_delivery_status == "failed"
    assert "ConnectError" in subs[0].last_error


@pytest.mark.asyncio
async def test_disabled_webhooks_are_not_wired(async_session_maker, settings):
    cfg = settings.model_copy(update={"WEBHOOKS_ENABLED": False})
    services = build_services(async_session_maker, cfg, today=lambda: TODAY)
    assert services.webhook is None
    await services.aclose()
