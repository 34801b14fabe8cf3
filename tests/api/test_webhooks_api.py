# tests/api/test_webhooks_api.py
from __future__ import annotations

import pytest

from tests._problem import as_problem

BASE = "/inventory/integrations/webhooks"


@pytest.mark.asyncio
async def test_webhook_crud_masks_secret(client):
    r = await client.post(
        BASE,
        json={
            "name": "ERP",
            "url": "https://erp.example/hooks",
            "secret": "top-secret",
            "events": ["stock.low", "stock.out"],
        },
    )
    assert r.status_code == 201, r.text
    hook = r.json()
    assert hook["secret"] == "********"
    assert hook["events"] == ["stock.low", "stock.out"]
    assert hook["is_active"] is True
    assert hook["created_by"] == "u-1"
    assert "top-secret" not in r.text

    r = await client.get(BASE)
    assert [h["id"] for h in r.json()["webhooks"]] == [hook["id"]]

    r = await client.patch(f"{BASE}/{hook['id']}", json={"is_active": False, "secret": None})
    assert r.status_code == 200, r.text
    assert r.json()["is_active"] is False
    assert r.json()["secret"] is None

    r = await client.delete(f"{BASE}/{hook['id']}")
    assert r.status_code == 204
    assert (await client.get(BASE)).json()["webhooks"] == []


@pytest.mark.asyncio
async def test_webhook_validation_and_tenant_isolation(client):
    r = await client.post(BASE, json={"name": "x", "url": "ftp://files.example/"})
    assert r.status_code == 422
    assert as_problem(r.json())["error_code"] == "validation_error"

    r = await client.post(
        BASE, json={"name": "x", "url": "https://x.example/", "events": ["order.created"]}
    )
    assert r.status_code == 422

    r = await client.post(BASE, json={"name": "mine", "url": "https://mine.example/"})
    hook_id = r.json()["id"]

    other = {"X-Tenant-Id": "2", "X-Actor-Id": "u-2"}
    r = await client.get(BASE, headers=other)
    assert r.json()["webhooks"] == []

    r = await client.patch(f"{BASE}/{hook_id}", json={"name": "stolen"}, headers=other)
    assert r.status_code == 404
    assert as_problem(r.json())["error_code"] == "not_found"

    r = await client.delete(f"{BASE}/{hook_id}", headers=other)
    assert r.status_code == 404
