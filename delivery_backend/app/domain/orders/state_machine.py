"""
Order state machine definitions.

Delivery status and payment status are independent axes, each with its own
transition table.
"""

from typing import Optional

from delivery_backend.app.models.order_enums import OrderStatus, PaymentStatus

# Linear delivery chain, in order
DELIVERY_CHAIN: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.ASSIGNED,
    OrderStatus.PICKED_UP,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
)

CHAIN_POSITION: dict[OrderStatus, int] = {status: i for i, status in enumerate(DELIVERY_CHAIN)}

TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# Order field stamped when a stage is reached
STAGE_TIMESTAMP_FIELD: dict[OrderStatus, str] = {
    OrderStatus.PENDING: "created_at",
    OrderStatus.ASSIGNED: "assigned_at",
    OrderStatus.PICKED_UP: "picked_up_at",
    OrderStatus.IN_TRANSIT: "in_transit_at",
    OrderStatus.DELIVERED: "delivered_at",
}

# Steps reachable through the generic transition() operation.
# pending -> assigned goes through assign_driver(), cancellation through cancel().
ADVANCE_TRANSITIONS: dict[OrderStatus, OrderStatus] = {
    OrderStatus.ASSIGNED: OrderStatus.PICKED_UP,
    OrderStatus.PICKED_UP: OrderStatus.IN_TRANSIT,
    OrderStatus.IN_TRANSIT: OrderStatus.DELIVERED,
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}


def is_terminal(status: OrderStatus) -> bool:
    """Return True if no further delivery transition is permitted."""
    return status in TERMINAL_STATUSES


def next_status(current: OrderStatus) -> Optional[OrderStatus]:
    """The single status transition() may move to from `current`, if any."""
    return ADVANCE_TRANSITIONS.get(current)


def is_valid_advance(current: OrderStatus, target: OrderStatus) -> bool:
    return next_status(current) == target


def is_valid_payment_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in PAYMENT_TRANSITIONS.get(current, frozenset())
