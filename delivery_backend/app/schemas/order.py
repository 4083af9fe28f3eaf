"""
Order Pydantic schemas.

Defines request and response models for order booking, tracking and the
driver / admin lifecycle endpoints.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List
from delivery_backend.app.core.config import settings
from delivery_backend.app.models.order_enums import (
    OrderStatus, PaymentStatus, PaymentMethod, PaymentTerm, PackageType
)
from delivery_backend.app.repositories.order_repository import as_utc
from delivery_backend.app.schemas.pricing import PriceBreakdownResponse


class Location(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class OrderCreate(BaseModel):
    """
    Schema for booking a delivery.

    The customer is taken from the access token. Phone format and address
    length are checked by the order lifecycle.
    """
    pickup_address: str = Field(..., max_length=500)
    pickup_location: Optional[Location] = None
    delivery_address: str = Field(..., max_length=500)
    delivery_location: Optional[Location] = None
    recipient_name: str = Field(..., max_length=200)
    recipient_phone: str = Field(..., max_length=32, description="National format, e.g. +254712345678")
    package_type: PackageType
    package_description: Optional[str] = Field(None, max_length=500)
    special_instructions: Optional[str] = Field(None, max_length=1000)
    is_fragile: bool = False
    has_insurance: bool = False
    payment_method: PaymentMethod
    payment_term: PaymentTerm = PaymentTerm.PAY_NOW
    estimated_distance_km: float = Field(
        ..., gt=0, le=settings.max_distance_km, allow_inf_nan=False, description="Route distance in kilometres"
    )


class OrderCreatedResponse(BaseModel):
    """Schema returned after booking."""
    order_id: str
    tracking_code: str
    status: OrderStatus
    price: int
    price_breakdown: PriceBreakdownResponse


class DriverInfo(BaseModel):
    name: str
    phone: str
    rating: float
    vehicle_info: Optional[str] = None

    class Config:
        from_attributes = True


class TimelineEntryResponse(BaseModel):
    status: OrderStatus
    timestamp: datetime
    is_estimate: bool
    display_time: str
    description: str
    completed: bool

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    """Schema for order response."""
    id: str
    tracking_code: str
    customer_id: str
    driver_id: Optional[str] = None
    driver: Optional[DriverInfo] = None

    pickup_address: str
    pickup_lat: Optional[float] = None
    pickup_lon: Optional[float] = None
    delivery_address: str
    delivery_lat: Optional[float] = None
    delivery_lon: Optional[float] = None

    recipient_name: str
    recipient_phone: str
    package_type: PackageType
    package_description: Optional[str] = None
    special_instructions: Optional[str] = None
    is_fragile: bool
    has_insurance: bool
    estimated_distance_km: float

    status: OrderStatus
    payment_method: PaymentMethod
    payment_term: PaymentTerm
    payment_status: PaymentStatus
    payment_reference: Optional[str] = None

    price: int
    price_breakdown: PriceBreakdownResponse

    created_at: datetime
    updated_at: datetime
    assigned_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    in_transit_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    customer_rating: Optional[int] = None
    customer_feedback: Optional[str] = None
    driver_rating: Optional[int] = None
    driver_feedback: Optional[str] = None

    version: int

    class Config:
        from_attributes = True


class OrderDetailResponse(OrderResponse):
    """Order with its projected delivery timeline."""
    timeline: List[TimelineEntryResponse] = []


class OrderListResponse(BaseModel):
    """Schema for paginated order list."""
    orders: List[OrderResponse]
    total: int
    page: int
    page_size: int


class TrackingResponse(BaseModel):
    """
    Public tracking view.

    Anyone holding the tracking code can see it, so recipient and payment
    details are left out.
    """
    tracking_code: str
    status: OrderStatus
    pickup_address: str
    delivery_address: str
    package_type: PackageType
    estimated_distance_km: float
    driver_name: Optional[str] = None
    driver_vehicle_info: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    timeline: List[TimelineEntryResponse]


class OrderEventResponse(BaseModel):
    """One entry of an order's event log."""
    status: OrderStatus
    description: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    actor_id: Optional[str] = None
    order_version: int
    created_at: datetime

    class Config:
        from_attributes = True

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class OrderHistoryResponse(BaseModel):
    order_id: str
    events: List[OrderEventResponse]


# ---------------------------------------------------------------------------
# Lifecycle requests
# ---------------------------------------------------------------------------

class AssignDriverRequest(BaseModel):
    driver_id: str = Field(..., min_length=1, max_length=64)
    expected_version: Optional[int] = Field(None, ge=1)


class StatusUpdateRequest(BaseModel):
    """
    Schema for moving an order along the delivery chain.

    `target_status=cancelled` cancels the order with `note` as the reason.
    """
    target_status: OrderStatus
    note: Optional[str] = Field(None, max_length=500)
    lat: Optional[float] = None
    lon: Optional[float] = None
    expected_version: Optional[int] = Field(None, ge=1)


class CancelOrderRequest(BaseModel):
    reason: str = Field(..., max_length=500)
    expected_version: Optional[int] = Field(None, ge=1)


class PaymentUpdateRequest(BaseModel):
    status: PaymentStatus
    reference: Optional[str] = Field(None, max_length=100)
    expected_version: Optional[int] = Field(None, ge=1)


class FeedbackRequest(BaseModel):
    # Range checked by the lifecycle so it reports ERR_VALIDATION_001 with the field name
    rating: int
    feedback: Optional[str] = Field(None, max_length=1000)
