"""
Order domain values.

Orders are immutable: lifecycle operations return a new Order via
model_copy(update=...). Field names match the `orders` table columns.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from delivery_backend.app.domain.orders import state_machine
from delivery_backend.app.domain.pricing.engine import PriceBreakdown
from delivery_backend.app.models.order_enums import (
    OrderStatus, PaymentStatus, PaymentMethod, PaymentTerm, PackageType
)


class Coordinates(BaseModel):
    lat: float
    lon: float

    class Config:
        frozen = True


class DriverSnapshot(BaseModel):
    """Driver details copied onto the order at assignment time, for display."""
    name: str
    phone: str
    rating: float = 0.0
    vehicle_info: Optional[str] = None

    class Config:
        frozen = True


class DeliveryRequest(BaseModel):
    """
    A customer's booking request.

    Types only; business validation (phone format, address length) is done
    by OrderLifecycle.create so it raises the domain ValidationError.
    """
    customer_id: str
    pickup_address: str
    pickup_coords: Optional[Coordinates] = None
    delivery_address: str
    delivery_coords: Optional[Coordinates] = None
    recipient_name: str
    recipient_phone: str
    package_type: PackageType
    package_description: Optional[str] = None
    special_instructions: Optional[str] = None
    is_fragile: bool = False
    has_insurance: bool = False
    payment_method: PaymentMethod
    payment_term: PaymentTerm
    estimated_distance_km: float

    class Config:
        frozen = True


class Order(BaseModel):
    """Order aggregate root."""
    id: str
    tracking_code: str
    customer_id: str

    driver_id: Optional[str] = None
    driver: Optional[DriverSnapshot] = None

    # Route
    pickup_address: str
    pickup_lat: Optional[float] = None
    pickup_lon: Optional[float] = None
    delivery_address: str
    delivery_lat: Optional[float] = None
    delivery_lon: Optional[float] = None

    # Recipient and package
    recipient_name: str
    recipient_phone: str
    package_type: PackageType
    package_description: Optional[str] = None
    special_instructions: Optional[str] = None
    is_fragile: bool = False
    has_insurance: bool = False
    estimated_distance_km: float

    status: OrderStatus = OrderStatus.PENDING

    # Payment
    payment_method: PaymentMethod
    payment_term: PaymentTerm
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_reference: Optional[str] = None

    # Pricing
    price: int
    price_breakdown: PriceBreakdown

    # Timestamps, each stage stamp set at most once
    created_at: datetime
    updated_at: datetime
    assigned_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    in_transit_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    # Feedback (customer_* is left by the customer, driver_* by the driver)
    customer_rating: Optional[int] = None
    customer_feedback: Optional[str] = None
    driver_rating: Optional[int] = None
    driver_feedback: Optional[str] = None

    version: int = 1

    class Config:
        frozen = True
        from_attributes = True

    @property
    def is_terminal(self) -> bool:
        return state_machine.is_terminal(self.status)
