# tests/api/test_purchase_orders_api.py
from __future__ import annotations

from decimal import Decimal

import pytest

from tests._problem import as_problem


async def _product(client, name="Omeprazole 20mg", threshold=5):
    r = await client.post("/inventory/products", json={"name": name, "min_stock_level": threshold})
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_purchase_order_flow(client):
    p = await _product(client)
    r = await client.post(
        "/purchase-orders",
        json={
            "supplier_name": "PharmaDist",
            "items": [{"product_id": p["id"], "quantity_ordered": 20, "unit_price": "100"}],
        },
    )
    assert r.status_code == 201, r.text
    po = r.json()
    assert po["status"] == "draft"
    assert Decimal(str(po["total_amount"])) == Decimal("2000.00")
    assert po["items"][0]["product_name"] == "Omeprazole 20mg"

    r = await client.post(f"/purchase-orders/{po['id']}/receive")
    assert r.status_code == 409
    assert as_problem(r.json())["error_code"] == "invalid_state_transition"

    r = await client.post(f"/purchase-orders/{po['id']}/send")
    assert r.json()["status"] == "sent"

    r = await client.post(f"/purchase-orders/{po['id']}/receive")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "received"
    assert body["items"][0]["quantity_received"] == 20
    assert body["items"][0]["received_batch_id"] is not None

    r = await client.post(f"/purchase-orders/{po['id']}/receive")
    assert r.status_code == 409

    r = await client.get(f"/inventory/products/{p['id']}/stock-level")
    assert r.json()["total"] == 20

    r = await client.get("/purchase-orders", params={"status": "received"})
    assert r.json()["total"] == 1


@pytest.mark.asyncio
async def test_create_validation(client):
    r = await client.post("/purchase-orders", json={"items": []})
    assert r.status_code == 422
    assert as_problem(r.json())["error_code"] == "validation_error"

    r = await client.get("/purchase-orders/12345")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_receive_with_unknown_item_is_422(client):
    p = await _product(client)
    r = await client.post(
        "/purchase-orders",
        json={"items": [{"product_id": p["id"], "quantity_ordered": 1, "unit_price": "1"}]},
    )
    po = r.json()
    await client.post(f"/purchase-orders/{po['id']}/send")

    r = await client.post(
        f"/purchase-orders/{po['id']}/receive",
        json={"lines": [{"item_id": 424242, "quantity_received": 1}]},
    )
    assert r.status_code == 422
    assert as_problem(r.json())["context"]["item_id"] == 424242
