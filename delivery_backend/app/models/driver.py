"""
Driver profile database model.

Identity lives with the external auth provider; this table holds what the
delivery flow needs to display and assign a driver.
"""

from sqlalchemy import Column, String, Integer, Float, DateTime, Boolean
from sqlalchemy.sql import func
from delivery_backend.app.db.session import Base


class Driver(Base):
    __tablename__ = "drivers"

    # Same id as the driver's user id in the access token
    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(32), nullable=False)
    rating = Column(Float, default=0.0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)
    vehicle_info = Column(String(200), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Running totals, credited when an order is delivered
    total_deliveries = Column(Integer, default=0, nullable=False)
    earnings = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Driver(id='{self.id}', name='{self.name}', active={self.is_active})>"
