"""
Order event database model.

Append-only history of lifecycle mutations. Rows are never updated.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from delivery_backend.app.db.session import Base
from delivery_backend.app.models.order_enums import OrderStatus


class OrderEvent(Base):
    """
    One lifecycle step of an order (created, assigned, picked up, ...).

    Carries the actor, an optional driver note and GPS fix.
    """
    __tablename__ = "order_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(String(64), ForeignKey('orders.id', ondelete="CASCADE"), nullable=False, index=True)

    status = Column(Enum(OrderStatus), nullable=False)
    description = Column(String(500), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    actor_id = Column(String(64), nullable=True)
    order_version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<OrderEvent(id={self.id}, order_id='{self.order_id}', status='{self.status.value}')>"
