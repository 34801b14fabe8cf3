# tests/api/test_inventory_api.py
from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from tests._problem import as_problem
from tests.helpers.inventory import TODAY


async def _product(client, **kw):
    body = {"name": "Cetirizine 10mg", "min_stock_level": 5, "purchase_price": "0.80"}
    body.update(kw)
    r = await client.post("/inventory/products", json=body)
    assert r.status_code == 201, r.text
    return r.json()


async def _receive(client, product_id, qty, **kw):
    r = await client.post("/inventory/stock", json={"product_id": product_id, "quantity": qty, **kw})
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_healthz(client):
    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_product_crud_and_stock_level(client):
    p = await _product(client)
    assert p["current_stock"] == 0
    assert Decimal(str(p["purchase_price"])) == Decimal("0.80")

    await _receive(client, p["id"], 12)

    r = await client.get(f"/inventory/products/{p['id']}")
    assert r.status_code == 200
    assert r.json()["current_stock"] == 12

    r = await client.patch(f"/inventory/products/{p['id']}", json={"min_stock_level": 20})
    assert r.status_code == 200
    assert r.json()["min_stock_level"] == 20

    r = await client.get("/inventory/products", params={"low_stock_only": True})
    assert r.status_code == 200
    assert [x["id"] for x in r.json()["data"]] == [p["id"]]

    r = await client.get(f"/inventory/products/{p['id']}/stock-level")
    assert r.json() == {"product_id": p["id"], "total": 12, "reserved": 0, "available": 12}

    r = await client.delete(f"/inventory/products/{p['id']}")
    assert r.status_code == 200
    assert r.json()["is_active"] is False
    r = await client.get("/inventory/products")
    assert r.json()["total"] == 0


@pytest.mark.asyncio
async def test_adjustment_roundtrip(client):
    p = await _product(client)
    await _receive(client, p["id"], 10, expiry_date=str(TODAY + timedelta(days=40)))

    r = await client.post(
        "/inventory/adjustments",
        json={
            "product_id": p["id"],
            "adjustment_type": "remove",
            "quantity": 3,
            "reason_code": "damage",
        },
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["new_total"] == 7
    tx = body["transaction"]
    assert tx["transaction_type"] == "adjustment_remove"
    assert tx["quantity_before"] == 10
    assert tx["quantity_after"] == 7
    assert tx["notes"] == "Damaged Product - Cetirizine 10mg"
    assert tx["created_by_name"] == "Tester"

    r = await client.get("/inventory/adjustments", params={"product_id": p["id"]})
    assert r.status_code == 200
    assert r.json()["total"] == 1

    r = await client.get(f"/inventory/products/{p['id']}/transactions")
    assert [t["seq"] for t in r.json()["data"]] == [2, 1]

    r = await client.get(f"/inventory/products/{p['id']}/ledger-check")
    assert r.json()["ok"] is True


@pytest.mark.asyncio
async def test_insufficient_stock_is_409_problem(client):
    p = await _product(client)
    await _receive(client, p["id"], 2)

    r = await client.post(
        "/inventory/adjustments",
        json={"product_id": p["id"], "adjustment_type": "remove", "quantity": 5, "reason_code": "theft"},
    )
    assert r.status_code == 409
    prob = as_problem(r.json())
    assert prob["error_code"] == "insufficient_stock"
    assert prob["http_status"] == 409
    assert prob["context"]["available_qty"] == 2


@pytest.mark.asyncio
async def test_validation_errors_are_422_problems(client):
    p = await _product(client)

    r = await client.post(
        "/inventory/adjustments",
        json={"product_id": p["id"], "adjustment_type": "add", "quantity": 0, "reason_code": "other"},
    )
    assert r.status_code == 422
    assert as_problem(r.json())["error_code"] == "validation_error"

    r = await client.post(
        "/inventory/adjustments",
        json={"product_id": p["id"], "adjustment_type": "add", "quantity": 1, "reason_code": "bogus"},
    )
    assert r.status_code == 422
    assert "allowed" in as_problem(r.json())["context"]

    r = await client.post("/inventory/adjustments", json={"product_id": p["id"]})
    assert r.status_code == 422
    assert as_problem(r.json())["error_code"] == "validation_error"

    r = await client.get("/inventory/alerts", params={"type": "nope"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_not_found_and_tenant_isolation(client):
    p = await _product(client)

    r = await client.get("/inventory/products/99999")
    assert r.status_code == 404
    assert as_problem(r.json())["error_code"] == "not_found"

    r = await client.get(f"/inventory/products/{p['id']}", headers={"X-Tenant-Id": "2"})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_missing_tenant_header_is_rejected(client):
    r = await client.get("/inventory/products", headers={"X-Tenant-Id": ""})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_sales_reservations_and_batches(client):
    p = await _product(client, min_stock_level=0)
    b = await _receive(client, p["id"], 6, unit_cost="1.25", batch_number="B-1")
    assert b["batch"]["batch_number"] == "B-1"
    assert b["new_total"] == 6

    r = await client.post("/inventory/reservations", json={"product_id": p["id"], "quantity": 2})
    assert r.status_code == 200
    assert r.json()["reserved_total"] == 2

    r = await client.post(
        "/inventory/sales",
        json={"product_id": p["id"], "quantity": 2, "unit_price": "3.00", "consume_reserved": True},
    )
    assert r.status_code == 200, r.text
    assert r.json()["new_total"] == 4
    assert r.json()["allocations"] == [{"batch_id": b["batch"]["id"], "quantity": 2}]

    r = await client.post(
        "/inventory/reservations/release", json={"product_id": p["id"], "quantity": 1}
    )
    assert r.status_code == 422

    r = await client.get("/inventory/stock", params={"product_id": p["id"]})
    body = r.json()
    assert body["total_quantity"] == 4
    assert Decimal(str(body["valuation"])) == Decimal("5.00")
    assert body["batches"][0]["product_name"] == "Cetirizine 10mg"


@pytest.mark.asyncio
async def test_alerts_endpoint(client):
    p = await _product(client, min_stock_level=10)
    await _receive(client, p["id"], 3, expiry_date=str(TODAY + timedelta(days=2)))

    r = await client.get("/inventory/alerts")
    assert r.status_code == 200
    body = r.json()
    kinds = sorted(a["alert_type"] for a in body["alerts"])
    assert kinds == ["expiring_7", "low_stock"]
    assert body["summary"]["critical"] == 2


@pytest.mark.asyncio
async def test_metrics_exposed(client):
    r = await client.get("/metrics")
    assert r.status_code == 200
    assert "stock_mutations_total" in r.text
