# tests/services/test_product_catalog.py
from __future__ import annotations

from decimal import Decimal

import pytest

from pharmastock.core.errors import NotFound, ValidationError
from tests.helpers.inventory import make_product


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", ["abc", "1,50", "NaN", "-0.01"])
async def test_create_rejects_bad_purchase_price(services, actor, bad):
    with pytest.raises(ValidationError) as ei:
        await services.stock.create_product(actor, name="Ibuprofen 200mg", purchase_price=bad)
    assert "purchase_price" in ei.value.context


@pytest.mark.asyncio
async def test_update_rejects_non_numeric_price_and_keeps_old_value(services, actor):
    p = await make_product(services, actor, purchase_price="2.40")

    with pytest.raises(ValidationError):
        await services.stock.update_product(actor, p.id, {"purchase_price": "two"})

    row = await services.stock.get_product(actor, p.id)
    assert row["product"].purchase_price == Decimal("2.40")

    updated = await services.stock.update_product(actor, p.id, {"purchase_price": "3.1"})
    assert updated.purchase_price == Decimal("3.1")


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(services, actor):
    p = await make_product(services, actor)
    with pytest.raises(ValidationError) as ei:
        await services.stock.update_product(actor, p.id, {"tenant_id": 2})
    assert ei.value.context["fields"] == ["tenant_id"]


@pytest.mark.asyncio
async def test_products_are_tenant_scoped(services, actor, other_actor):
    p = await make_product(services, actor)
    with pytest.raises(NotFound):
        await services.stock.get_product(other_actor, p.id)
    with pytest.raises(NotFound):
        await services.stock.deactivate_product(other_actor, p.id)
