# tests/services/test_stock_alerts_report.py
from __future__ import annotations

from datetime import timedelta

import pytest

from pharmastock.core.errors import ValidationError
from tests.helpers.inventory import TODAY, make_product, receive


async def _report(services, session, actor, alert_type=None):
    return await services.alerts_report.build(
        session, actor.tenant_id, alert_type=alert_type, today=TODAY
    )


@pytest.mark.asyncio
async def test_stock_and_expiry_alerts(services, actor, session):
    out = await make_product(services, actor, name="Out", min_stock_level=5)
    low = await make_product(services, actor, name="Low", min_stock_level=10)
    warn = await make_product(services, actor, name="Warn", min_stock_level=10)
    fine = await make_product(services, actor, name="Fine", min_stock_level=0)

    await receive(services, actor, low.id, 4)
    await receive(services, actor, warn.id, 8)
    await receive(services, actor, fine.id, 1, expiry=TODAY - timedelta(days=2), batch_number="X1")
    await receive(services, actor, fine.id, 1, expiry=TODAY + timedelta(days=3))
    await receive(services, actor, fine.id, 1, expiry=TODAY + timedelta(days=20))
    await receive(services, actor, fine.id, 1, expiry=TODAY + timedelta(days=200))

    report = await _report(services, session, actor)
    by_type = {}
    for a in report["alerts"]:
        by_type.setdefault(a["alert_type"], []).append(a)

    assert by_type["out_of_stock"][0]["product_id"] == out.id
    assert by_type["out_of_stock"][0]["severity"] == "critical"
    levels = {a["product_id"]: a["severity"] for a in by_type["low_stock"]}
    assert levels == {low.id: "critical", warn.id: "warning"}

    assert by_type["expired"][0]["message"] == "Fine (Batch: X1) - EXPIRED"
    assert by_type["expiring_7"][0]["days_until_expiry"] == 3
    assert by_type["expiring_7"][0]["message"] == "Fine (Batch: N/A) - Expires in 3 day(s)"
    assert by_type["expiring_30"][0]["days_until_expiry"] == 20

    summary = report["summary"]
    assert summary["total"] == 6
    assert summary["out_of_stock"] == 1
    assert summary["low_stock"] == 2
    assert summary["expired"] == 1
    assert summary["expiring_7"] == 1
    assert summary["expiring_30"] == 1
    assert summary["critical"] == 4
    assert summary["warning"] == 2

    severities = [a["severity"] for a in report["alerts"]]
    assert severities == sorted(severities, key=["critical", "warning"].index)
    critical_days = [a.get("days_until_expiry") for a in report["alerts"] if a["severity"] == "critical"]
    assert critical_days[:2] == [-2, 3]


@pytest.mark.asyncio
async def test_filters(services, actor, session):
    p = await make_product(services, actor, min_stock_level=10)
    await receive(services, actor, p.id, 2, expiry=TODAY - timedelta(days=1))
    await receive(services, actor, p.id, 2, expiry=TODAY + timedelta(days=1))

    only_low = await _report(services, session, actor, "low_stock")
    assert {a["alert_type"] for a in only_low["alerts"]} == {"low_stock"}

    expiring = await _report(services, session, actor, "expiring")
    assert {a["alert_type"] for a in expiring["alerts"]} == {"expiring_7"}

    expired = await _report(services, session, actor, "expired")
    assert {a["alert_type"] for a in expired["alerts"]} == {"expired"}

    with pytest.raises(ValidationError):
        await _report(services, session, actor, "soon")


@pytest.mark.asyncio
async def test_report_is_tenant_scoped(services, actor, other_actor, session):
    await make_product(services, actor, min_stock_level=3)
    report = await _report(services, session, other_actor)
    assert report["alerts"] == []
    assert report["summary"]["total"] == 0
