# tests/services/test_batch_store.py
from __future__ import annotations

from datetime import timedelta

import pytest

from pharmastock.core.errors import InvalidQuantity, NotFound, ValidationError
from pharmastock.services.batch_store import BatchStore
from tests.helpers.inventory import TODAY, make_product, receive


@pytest.mark.asyncio
async def test_current_stock_sums_active_batches_only(services, actor, session):
    p = await make_product(services, actor)
    await receive(services, actor, p.id, 5)
    await receive(services, actor, p.id, 7)

    assert await BatchStore.current_stock(session, actor.tenant_id, p.id) == 12
    assert await BatchStore.current_stock(session, 999, p.id) == 0


@pytest.mark.asyncio
async def test_list_active_batches_is_fefo_ordered(services, actor, session):
    p = await make_product(services, actor)
    no_expiry = await receive(services, actor, p.id, 1)
    late = await receive(services, actor, p.id, 1, expiry=TODAY + timedelta(days=90))
    early = await receive(services, actor, p.id, 1, expiry=TODAY + timedelta(days=10))

    batches = await BatchStore.list_active_batches(session, actor.tenant_id, p.id)
    assert [b.id for b in batches] == [early.id, late.id, no_expiry.id]


@pytest.mark.asyncio
async def test_mutate_to_zero_deactivates(services, actor, session):
    p = await make_product(services, actor)
    b = await receive(services, actor, p.id, 4)

    batch = await BatchStore.get_batch(session, actor.tenant_id, b.id)
    assert await BatchStore.mutate_batch_quantity(session, batch, -4) == 0
    assert batch.is_active is False

    assert await BatchStore.mutate_batch_quantity(session, batch, 2) == 2
    assert batch.is_active is True


@pytest.mark.asyncio
async def test_mutate_below_zero_is_rejected_without_change(services, actor, session):
    p = await make_product(services, actor)
    b = await receive(services, actor, p.id, 3)

    batch = await BatchStore.get_batch(session, actor.tenant_id, b.id)
    with pytest.raises(InvalidQuantity):
        await BatchStore.mutate_batch_quantity(session, batch, -4)
    assert batch.quantity == 3
    assert batch.is_active is True


@pytest.mark.asyncio
async def test_mutate_below_reserved_is_rejected(services, actor, session):
    p = await make_product(services, actor)
    b = await receive(services, actor, p.id, 5)

    batch = await BatchStore.get_batch(session, actor.tenant_id, b.id)
    await BatchStore.reserve(session, batch, 4)
    with pytest.raises(InvalidQuantity):
        await BatchStore.mutate_batch_quantity(session, batch, -2)
    assert batch.free_quantity == 1


@pytest.mark.asyncio
async def test_create_batch_requires_positive_quantity(services, actor, session):
    p = await make_product(services, actor)
    with pytest.raises(ValidationError):
        await BatchStore.create_batch(
            session,
            tenant_id=actor.tenant_id,
            product_id=p.id,
            quantity=0,
            unit_cost=None,
            received_date=TODAY,
        )


@pytest.mark.asyncio
async def test_get_batch_is_tenant_scoped(services, actor, other_actor, session):
    p = await make_product(services, actor)
    b = await receive(services, actor, p.id, 1)

    with pytest.raises(NotFound):
        await BatchStore.get_batch(session, other_actor.tenant_id, b.id)
