"""
Order-related enumerations.
"""

import enum


class OrderStatus(str, enum.Enum):
    """
    Order delivery status.

    Status flow:
        pending → assigned → picked_up → in_transit → delivered
        Any non-terminal status can transition to cancelled
    """
    PENDING = "pending"  # Placed, finding driver
    ASSIGNED = "assigned"  # Driver heading to pickup
    PICKED_UP = "picked_up"  # Package collected from sender
    IN_TRANSIT = "in_transit"  # On the way to recipient
    DELIVERED = "delivered"  # Terminal
    CANCELLED = "cancelled"  # Terminal


class PaymentStatus(str, enum.Enum):
    """Payment status, independent of delivery status."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    MPESA = "mpesa"
    CARD = "card"
    CASH = "cash"


class PaymentTerm(str, enum.Enum):
    PAY_NOW = "pay_now"
    PAY_ON_DELIVERY = "pay_on_delivery"


class PackageType(str, enum.Enum):
    DOCUMENTS = "documents"
    SMALL = "small"
    MEDIUM = "medium"
    ELECTRONICS = "electronics"
    CLOTHING = "clothing"
    FOOD = "food"
    FRAGILE = "fragile"


class FeedbackRole(str, enum.Enum):
    """Who is leaving the rating."""
    CUSTOMER = "customer"  # Customer rates the delivery
    DRIVER = "driver"  # Driver rates the customer
