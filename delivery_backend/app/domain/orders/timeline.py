"""
Timeline Projector.

Derives the customer-facing delivery timeline from an order's current state.
Always yields the five delivery stages in chain order; a cancelled order gets
an extra terminal `cancelled` entry carrying the reason.

Stages not reached yet show an estimate (creation time + fixed offset),
flagged `is_estimate` and displayed with an "Est. " prefix.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel

from delivery_backend.app.core.config import settings
from delivery_backend.app.domain.orders.entities import Order
from delivery_backend.app.domain.orders.state_machine import (
    DELIVERY_CHAIN, CHAIN_POSITION, STAGE_TIMESTAMP_FIELD
)
from delivery_backend.app.models.order_enums import OrderStatus

STATUS_DESCRIPTIONS: Dict[OrderStatus, str] = {
    OrderStatus.PENDING: "Order placed and finding driver",
    OrderStatus.ASSIGNED: "Driver assigned and heading to pickup",
    OrderStatus.PICKED_UP: "Package picked up from sender",
    OrderStatus.IN_TRANSIT: "Package is on the way to destination",
    OrderStatus.DELIVERED: "Package delivered to recipient",
    OrderStatus.CANCELLED: "Order cancelled",
}

ESTIMATE_PREFIX = "Est. "


class TimelineEntry(BaseModel):
    status: OrderStatus
    timestamp: datetime
    is_estimate: bool
    display_time: str
    description: str
    completed: bool

    class Config:
        frozen = True


def default_stage_offsets() -> Dict[OrderStatus, timedelta]:
    return {
        OrderStatus.PENDING: timedelta(0),
        OrderStatus.ASSIGNED: timedelta(minutes=settings.estimate_assigned_minutes),
        OrderStatus.PICKED_UP: timedelta(minutes=settings.estimate_picked_up_minutes),
        OrderStatus.IN_TRANSIT: timedelta(minutes=settings.estimate_in_transit_minutes),
        OrderStatus.DELIVERED: timedelta(minutes=settings.estimate_delivered_minutes),
    }


def reached_position(order: Order) -> int:
    """
    Furthest chain position the order has reached.

    Cancellation is not a chain position, so a cancelled order reports the
    last stage it recorded before being cancelled.
    """
    if order.status != OrderStatus.CANCELLED:
        return CHAIN_POSITION[order.status]

    position = 0
    for stage in DELIVERY_CHAIN:
        if getattr(order, STAGE_TIMESTAMP_FIELD[stage]) is not None:
            position = CHAIN_POSITION[stage]
    return position


class TimelineProjector:

    def __init__(
        self,
        stage_offsets: Optional[Dict[OrderStatus, timedelta]] = None,
        display_tz: Optional[timezone] = None,
    ):
        self.stage_offsets = stage_offsets or default_stage_offsets()
        self.display_tz = display_tz or timezone(timedelta(hours=settings.local_utc_offset_hours))

    def format_time(self, moment: datetime, estimate: bool = False) -> str:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        text = moment.astimezone(self.display_tz).strftime("%I:%M %p")
        return f"{ESTIMATE_PREFIX}{text}" if estimate else text

    def project(self, order: Order) -> List[TimelineEntry]:
        """Build the timeline. Pure: same order in, same entries out."""
        reached = reached_position(order)
        entries = []

        for stage in DELIVERY_CHAIN:
            completed = CHAIN_POSITION[stage] <= reached
            actual = getattr(order, STAGE_TIMESTAMP_FIELD[stage])

            if completed and actual is not None:
                timestamp, is_estimate = actual, False
            else:
                timestamp, is_estimate = order.created_at + self.stage_offsets[stage], True

            entries.append(TimelineEntry(
                status=stage,
                timestamp=timestamp,
                is_estimate=is_estimate,
                display_time=self.format_time(timestamp, is_estimate),
                description=STATUS_DESCRIPTIONS[stage],
                completed=completed,
            ))

        if order.status == OrderStatus.CANCELLED:
            cancelled_at = order.cancelled_at or order.updated_at
            entries.append(TimelineEntry(
                status=OrderStatus.CANCELLED,
                timestamp=cancelled_at,
                is_estimate=False,
                display_time=self.format_time(cancelled_at),
                description=order.cancellation_reason or STATUS_DESCRIPTIONS[OrderStatus.CANCELLED],
                completed=True,
            ))

        return entries
