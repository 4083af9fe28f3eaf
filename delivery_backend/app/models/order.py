"""
Order database model.

One row per order. `version` backs optimistic concurrency: every write is
conditioned on the version the writer last read.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, Boolean, JSON, Text
from sqlalchemy.sql import func
from delivery_backend.app.db.session import Base
from delivery_backend.app.models.order_enums import (
    OrderStatus, PaymentStatus, PaymentMethod, PaymentTerm, PackageType
)


class OrderRecord(Base):
    """
    Delivery order.

    Stage timestamps (assigned_at ... delivered_at) are stamped once, when
    the order reaches that stage, and drive the projected timeline.
    """
    __tablename__ = "orders"

    id = Column(String(64), primary_key=True)
    tracking_code = Column(String(32), unique=True, nullable=False, index=True)

    # Ownership
    customer_id = Column(String(64), nullable=False, index=True)
    driver_id = Column(String(64), nullable=True, index=True)

    # Driver snapshot at assignment time
    driver_name = Column(String(200), nullable=True)
    driver_phone = Column(String(32), nullable=True)
    driver_profile_rating = Column(Float, nullable=True)
    driver_vehicle_info = Column(String(200), nullable=True)

    # Route
    pickup_address = Column(String(500), nullable=False)
    pickup_lat = Column(Float, nullable=True)
    pickup_lon = Column(Float, nullable=True)
    delivery_address = Column(String(500), nullable=False)
    delivery_lat = Column(Float, nullable=True)
    delivery_lon = Column(Float, nullable=True)

    # Recipient and package
    recipient_name = Column(String(200), nullable=False)
    recipient_phone = Column(String(32), nullable=False)
    package_type = Column(Enum(PackageType), nullable=False)
    package_description = Column(String(500), nullable=True)
    special_instructions = Column(Text, nullable=True)
    is_fragile = Column(Boolean, default=False, nullable=False)
    has_insurance = Column(Boolean, default=False, nullable=False)
    estimated_distance_km = Column(Float, nullable=False)

    # Status
    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)

    # Payment
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    payment_term = Column(Enum(PaymentTerm), nullable=False)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False, index=True)
    payment_reference = Column(String(100), nullable=True)

    # Pricing (whole currency units)
    price = Column(Integer, nullable=False)
    price_breakdown = Column(JSON, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    picked_up_at = Column(DateTime(timezone=True), nullable=True)
    in_transit_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)

    # Ratings and feedback
    customer_rating = Column(Integer, nullable=True)
    customer_feedback = Column(Text, nullable=True)
    driver_rating = Column(Integer, nullable=True)
    driver_feedback = Column(Text, nullable=True)

    # Optimistic concurrency
    version = Column(Integer, nullable=False, default=1)

    def __repr__(self):
        return f"<OrderRecord(id='{self.id}', code='{self.tracking_code}', status='{self.status.value}', v={self.version})>"
