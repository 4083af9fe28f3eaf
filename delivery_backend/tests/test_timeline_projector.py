"""
Timeline Projector Tests.

Validates stage completion, estimates, local display times and the
cancelled entry.
"""

import pytest
from datetime import timedelta, timezone
from delivery_backend.app.domain.orders.lifecycle import OrderLifecycle
from delivery_backend.app.domain.orders.timeline import TimelineProjector, STATUS_DESCRIPTIONS
from delivery_backend.app.domain.pricing.engine import PricingEngine, PricingConfig, PricingOptions
from delivery_backend.app.models.order_enums import OrderStatus
from delivery_backend.tests.factories import DRIVER, make_request

CHAIN = [
    OrderStatus.PENDING, OrderStatus.ASSIGNED, OrderStatus.PICKED_UP,
    OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED,
]


@pytest.fixture
def lifecycle(frozen_clock, sequential_ids):
    return OrderLifecycle(clock=frozen_clock, ids=sequential_ids)


@pytest.fixture
def pending(lifecycle):
    breakdown = PricingEngine(PricingConfig()).calculate(PricingOptions(distance=4))
    return lifecycle.create(make_request(), breakdown)


@pytest.fixture
def projector():
    return TimelineProjector(display_tz=timezone(timedelta(hours=3)))


def test_pending_order_timeline(projector, pending):
    entries = projector.project(pending)

    assert [e.status for e in entries] == CHAIN
    assert [e.completed for e in entries] == [True, False, False, False, False]
    assert [e.is_estimate for e in entries] == [False, True, True, True, True]
    assert [e.display_time for e in entries] == [
        "10:00 AM", "Est. 10:05 AM", "Est. 10:15 AM", "Est. 10:20 AM", "Est. 10:35 AM"
    ]
    assert entries[0].timestamp == pending.created_at
    assert entries[4].timestamp == pending.created_at + timedelta(minutes=35)
    assert [e.description for e in entries] == [STATUS_DESCRIPTIONS[s] for s in CHAIN]


def test_progress_uses_actual_times(projector, lifecycle, pending, frozen_clock):
    frozen_clock.advance(minutes=2)
    order = lifecycle.assign_driver(pending, "drv_1", DRIVER)
    frozen_clock.advance(minutes=30)
    order = lifecycle.transition(order, OrderStatus.PICKED_UP)

    entries = projector.project(order)

    assert [e.completed for e in entries] == [True, True, True, False, False]
    assert entries[1].timestamp == order.assigned_at
    assert entries[1].display_time == "10:02 AM"
    assert entries[2].display_time == "10:32 AM"
    # Remaining estimates stay anchored on creation time
    assert entries[3].display_time == "Est. 10:20 AM"


def test_delivered_order_has_no_estimates(projector, lifecycle, pending, frozen_clock):
    order = lifecycle.assign_driver(pending, "drv_1", DRIVER)
    for target in (OrderStatus.PICKED_UP, OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED):
        frozen_clock.advance(minutes=7)
        order = lifecycle.transition(order, target)

    entries = projector.project(order)

    assert all(e.completed and not e.is_estimate for e in entries)
    assert entries[-1].timestamp == order.delivered_at
    timestamps = [e.timestamp for e in entries]
    assert timestamps == sorted(timestamps)


def test_cancelled_order_appends_reason(projector, lifecycle, pending, frozen_clock):
    order = lifecycle.assign_driver(pending, "drv_1", DRIVER)
    frozen_clock.advance(minutes=9)
    order = lifecycle.cancel(order, "Recipient unreachable")

    entries = projector.project(order)

    assert len(entries) == 6
    assert [e.completed for e in entries[:5]] == [True, True, False, False, False]
    last = entries[-1]
    assert last.status == OrderStatus.CANCELLED
    assert last.description == "Recipient unreachable"
    assert last.timestamp == order.cancelled_at
    assert last.display_time == "10:09 AM"
    assert not last.is_estimate


def test_projection_is_idempotent(projector, lifecycle, pending):
    order = lifecycle.assign_driver(pending, "drv_1", DRIVER)
    assert projector.project(order) == projector.project(order)


def test_custom_offsets(pending):
    offsets = {
        OrderStatus.PENDING: timedelta(0),
        OrderStatus.ASSIGNED: timedelta(minutes=1),
        OrderStatus.PICKED_UP: timedelta(minutes=2),
        OrderStatus.IN_TRANSIT: timedelta(minutes=3),
        OrderStatus.DELIVERED: timedelta(hours=2),
    }
    projector = TimelineProjector(stage_offsets=offsets, display_tz=timezone.utc)

    entries = projector.project(pending)

    assert entries[4].display_time == "Est. 09:00 AM"
