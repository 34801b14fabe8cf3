# tests/services/test_alert_emitter.py
from __future__ import annotations

import pytest

from pharmastock.core.errors import InsufficientStock
from pharmastock.models.enums import AlertKind
from pharmastock.services.alert_emitter import AlertEmitter, evaluate
from pharmastock.services.stock_events import StockChanged
from tests.helpers.inventory import make_product, receive


def test_evaluate_out_low_none():
    assert evaluate(0, 10) is AlertKind.OUT
    assert evaluate(0, 0) is AlertKind.OUT
    assert evaluate(9, 10) is AlertKind.LOW
    assert evaluate(10, 10) is None
    assert evaluate(3, 0) is None


@pytest.mark.asyncio
async def test_threshold_crossings_emit_one_signal_each(services, actor, dispatcher):
    p = await make_product(services, actor, min_stock_level=10)

    await services.stock.adjust(
        actor, product_id=p.id, adjustment_type="add", quantity=20, reason_code="initial_stock"
    )
    assert dispatcher.signals == []

    await services.stock.adjust(
        actor, product_id=p.id, adjustment_type="remove", quantity=12, reason_code="damage"
    )
    assert dispatcher.kinds() == ["low"]
    assert dispatcher.signals[0].current_quantity == 8
    assert dispatcher.signals[0].threshold == 10

    await services.stock.adjust(
        actor, product_id=p.id, adjustment_type="remove", quantity=8, reason_code="damage"
    )
    assert dispatcher.kinds() == ["low", "out"]
    assert dispatcher.signals[1].current_quantity == 0


@pytest.mark.asyncio
async def test_dispatcher_failure_does_not_fail_the_mutation(services, actor, dispatcher):
    p = await make_product(services, actor, min_stock_level=5)
    dispatcher.fail = True

    res = await services.stock.adjust(
        actor, product_id=p.id, adjustment_type="add", quantity=3, reason_code="initial_stock"
    )
    assert res.new_total == 3
    assert dispatcher.kinds() == ["low"]
    level = await services.stock.get_stock_level(actor, p.id)
    assert level["total"] == 3


@pytest.mark.asyncio
async def test_rejected_mutation_emits_nothing(services, actor, dispatcher):
    p = await make_product(services, actor, min_stock_level=5)
    await receive(services, actor, p.id, 2)
    dispatcher.signals.clear()

    with pytest.raises(InsufficientStock):
        await services.stock.record_sale(actor, product_id=p.id, quantity=3)
    assert dispatcher.signals == []


@pytest.mark.asyncio
async def test_emitter_returns_signal_for_event():
    class _Sink:
        def __init__(self):
            self.got = []

        async def send(self, signal):
            self.got.append(signal)

    sink = _Sink()
    emitter = AlertEmitter(sink)
    ev = StockChanged(
        tenant_id=1,
        product_id=7,
        product_name="Ibuprofen",
        movement_type="sale",
        quantity_change=-1,
        quantity_before=4,
        quantity_after=3,
        threshold=4,
    )
    signal = await emitter.on_stock_changed(ev)
    assert signal is not None and signal.kind == "low"
    assert sink.got == [signal]

    quiet = StockChanged(
        tenant_id=1,
        product_id=7,
        product_name="Ibuprofen",
        movement_type="purchase",
        quantity_change=10,
        quantity_before=3,
        quantity_after=13,
        threshold=4,
    )
    assert await emitter.on_stock_changed(quiet) is None
