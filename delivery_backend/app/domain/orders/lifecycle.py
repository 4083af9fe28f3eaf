"""
Order Lifecycle (Domain Logic).

Explicit operation set over an immutable Order. Each operation checks its
own precondition, then returns a new Order with version + 1. Nothing here
performs I/O; persisting the result (with a version check) is the caller's
job.

Flow:
    create -> assign_driver -> transition(picked_up) -> transition(in_transit)
           -> transition(delivered) -> record_feedback
    cancel from any non-terminal status
"""

import math
import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from delivery_backend.app.core.config import settings
from delivery_backend.app.core.exceptions import ValidationError, InvalidTransitionError
from delivery_backend.app.domain.orders.entities import Order, DeliveryRequest, DriverSnapshot
from delivery_backend.app.domain.orders.providers import Clock, IdProvider, SystemClock, RandomIdProvider
from delivery_backend.app.domain.orders import state_machine
from delivery_backend.app.domain.pricing.engine import PriceBreakdown
from delivery_backend.app.models.order_enums import OrderStatus, PaymentStatus, FeedbackRole


class TransitionMeta(BaseModel):
    """Optional context sent with a status change (driver note, GPS fix)."""
    note: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None

    class Config:
        frozen = True


def _validate_coords(lat: Optional[float], lon: Optional[float], field: str):
    if (lat is None) != (lon is None):
        raise ValidationError(f"{field} needs both latitude and longitude", field=field)
    if lat is None:
        return
    if not -90 <= lat <= 90 or not -180 <= lon <= 180:
        raise ValidationError(f"{field} is out of range: ({lat}, {lon})", field=field)


class OrderLifecycle:

    def __init__(
        self,
        clock: Optional[Clock] = None,
        ids: Optional[IdProvider] = None,
        phone_pattern: str = None,
        min_address_length: int = None,
        max_distance_km: int = None,
    ):
        self.clock = clock or SystemClock()
        self.ids = ids or RandomIdProvider()
        self.phone_pattern = re.compile(phone_pattern or settings.recipient_phone_pattern)
        self.min_address_length = (
            settings.min_address_length if min_address_length is None else min_address_length
        )
        self.max_distance_km = max_distance_km or settings.max_distance_km

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def validate_request(self, request: DeliveryRequest):
        """
        Check a booking request.

        Raises:
            ValidationError: On the first malformed or missing field.
        """
        if not request.customer_id or not request.customer_id.strip():
            raise ValidationError("Customer id is required", field="customer_id")

        for field in ("pickup_address", "delivery_address"):
            value = (getattr(request, field) or "").strip()
            if len(value) < self.min_address_length:
                raise ValidationError(
                    f"{field} must be at least {self.min_address_length} characters",
                    field=field
                )

        if not (request.recipient_name or "").strip():
            raise ValidationError("Recipient name is required", field="recipient_name")

        if not self.phone_pattern.match((request.recipient_phone or "").strip()):
            raise ValidationError(
                "Recipient phone must be in national format, e.g. +254712345678",
                field="recipient_phone"
            )

        distance = request.estimated_distance_km
        if distance is None or not math.isfinite(distance) or distance <= 0:
            raise ValidationError(
                "Estimated distance must be greater than 0 km",
                field="estimated_distance_km"
            )
        if distance > self.max_distance_km:
            raise ValidationError(
                f"Estimated distance must not exceed {self.max_distance_km} km",
                field="estimated_distance_km"
            )

        for field in ("pickup_coords", "delivery_coords"):
            coords = getattr(request, field)
            if coords is not None:
                _validate_coords(coords.lat, coords.lon, field)

    def create(self, request: DeliveryRequest, breakdown: PriceBreakdown) -> Order:
        """Build a new `pending` order charged at breakdown.total."""
        self.validate_request(request)
        now = self.clock.now()

        return Order(
            id=self.ids.order_id(),
            tracking_code=self.ids.tracking_code(),
            customer_id=request.customer_id.strip(),
            pickup_address=request.pickup_address.strip(),
            pickup_lat=request.pickup_coords.lat if request.pickup_coords else None,
            pickup_lon=request.pickup_coords.lon if request.pickup_coords else None,
            delivery_address=request.delivery_address.strip(),
            delivery_lat=request.delivery_coords.lat if request.delivery_coords else None,
            delivery_lon=request.delivery_coords.lon if request.delivery_coords else None,
            recipient_name=request.recipient_name.strip(),
            recipient_phone=request.recipient_phone.strip(),
            package_type=request.package_type,
            package_description=request.package_description,
            special_instructions=request.special_instructions,
            is_fragile=request.is_fragile,
            has_insurance=request.has_insurance,
            estimated_distance_km=request.estimated_distance_km,
            status=OrderStatus.PENDING,
            payment_method=request.payment_method,
            payment_term=request.payment_term,
            payment_status=PaymentStatus.PENDING,
            price=breakdown.total,
            price_breakdown=breakdown,
            created_at=now,
            updated_at=now,
            version=1,
        )

    # ------------------------------------------------------------------
    # Delivery status
    # ------------------------------------------------------------------

    def assign_driver(self, order: Order, driver_id: str, driver_info: DriverSnapshot) -> Order:
        """Attach a driver to a `pending` order and move it to `assigned`."""
        if order.status != OrderStatus.PENDING:
            raise InvalidTransitionError(
                f"Can only assign a driver to a pending order, current status: {order.status.value}",
                current=order.status.value,
                target=OrderStatus.ASSIGNED.value
            )
        if not driver_id:
            raise ValidationError("Driver id is required", field="driver_id")

        stamp = self._stamp(order)
        return self._mutate(
            order,
            stamp,
            status=OrderStatus.ASSIGNED,
            driver_id=driver_id,
            driver=driver_info,
            assigned_at=stamp,
        )

    def transition(self, order: Order, target: OrderStatus, meta: Optional[TransitionMeta] = None) -> Order:
        """
        Advance exactly one step along assigned -> picked_up -> in_transit -> delivered.

        Raises:
            InvalidTransitionError: On skips, backward moves, repeats, or terminal orders.
            ValidationError: If the attached GPS fix is malformed.
        """
        target = OrderStatus(target)
        self._ensure_not_terminal(order, target)

        if not state_machine.is_valid_advance(order.status, target):
            expected = state_machine.next_status(order.status)
            hint = f", next allowed: {expected.value}" if expected else ""
            raise InvalidTransitionError(
                f"Cannot move order from {order.status.value} to {target.value}{hint}",
                current=order.status.value,
                target=target.value
            )

        if meta is not None:
            _validate_coords(meta.lat, meta.lon, "location")

        stamp = self._stamp(order)
        changes = {
            "status": target,
            state_machine.STAGE_TIMESTAMP_FIELD[target]: stamp,
        }
        if target == OrderStatus.DELIVERED:
            changes["completed_at"] = stamp

        return self._mutate(order, stamp, **changes)

    def cancel(self, order: Order, reason: str) -> Order:
        """Cancel a non-terminal order. The reason is mandatory."""
        self._ensure_not_terminal(order, OrderStatus.CANCELLED)

        if not reason or not reason.strip():
            raise ValidationError("A cancellation reason is required", field="reason")

        stamp = self._stamp(order)
        return self._mutate(
            order,
            stamp,
            status=OrderStatus.CANCELLED,
            cancelled_at=stamp,
            cancellation_reason=reason.strip(),
        )

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    def record_payment_status(
        self,
        order: Order,
        status: PaymentStatus,
        reference: Optional[str] = None
    ) -> Order:
        """
        Move the payment axis: pending -> paid | failed, failed -> paid,
        paid -> refunded. Re-recording `paid` on a paid order is a no-op.
        """
        status = PaymentStatus(status)

        if status == PaymentStatus.PAID and order.payment_status == PaymentStatus.PAID:
            return order

        if order.is_terminal:
            raise InvalidTransitionError(
                f"Order is {order.status.value}; payment status can no longer change",
                current=order.payment_status.value,
                target=status.value
            )

        if not state_machine.is_valid_payment_transition(order.payment_status, status):
            raise InvalidTransitionError(
                f"Cannot change payment from {order.payment_status.value} to {status.value}",
                current=order.payment_status.value,
                target=status.value
            )

        changes = {"payment_status": status}
        if reference:
            changes["payment_reference"] = reference
        return self._mutate(order, self.clock.now(), **changes)

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def record_feedback(
        self,
        order: Order,
        role: FeedbackRole,
        rating: int,
        feedback: Optional[str] = None
    ) -> Order:
        """Store a 1..5 rating from the customer or the driver of a delivered order."""
        role = FeedbackRole(role)

        if order.status != OrderStatus.DELIVERED:
            raise InvalidTransitionError(
                f"Feedback is only accepted once delivered, current status: {order.status.value}",
                current=order.status.value
            )

        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be an integer from 1 to 5", field="rating")

        rating_field = f"{role.value}_rating"
        if getattr(order, rating_field) is not None:
            raise InvalidTransitionError(
                f"The {role.value} has already rated this order",
                current=order.status.value
            )

        return self._mutate(
            order,
            self.clock.now(),
            **{rating_field: rating, f"{role.value}_feedback": feedback}
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_not_terminal(self, order: Order, target: OrderStatus):
        if order.is_terminal:
            raise InvalidTransitionError(
                f"Order is {order.status.value} and can no longer change status",
                current=order.status.value,
                target=target.value
            )

    def _stamp(self, order: Order) -> datetime:
        """
        Current time, clamped so recorded stage times never go backwards.
        """
        now = self.clock.now()
        recorded = [
            getattr(order, field)
            for field in state_machine.STAGE_TIMESTAMP_FIELD.values()
            if getattr(order, field) is not None
        ]
        latest = max(recorded) if recorded else None
        if latest is not None and now < latest:
            return latest
        return now

    @staticmethod
    def _mutate(order: Order, now: datetime, **changes) -> Order:
        changes["updated_at"] = now
        changes["version"] = order.version + 1
        return order.model_copy(update=changes)
