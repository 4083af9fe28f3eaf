"""
Driver profile Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List


class DriverCreate(BaseModel):
    """Schema for registering a driver profile (Admin only)."""
    id: str = Field(..., min_length=1, max_length=64, description="Driver's user id at the identity provider")
    name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=5, max_length=32)
    vehicle_info: Optional[str] = Field(None, max_length=200, description="e.g. 'Motorbike KMDA 123B'")
    rating: float = Field(default=0.0, ge=0, le=5)


class DriverResponse(BaseModel):
    id: str
    name: str
    phone: str
    rating: float
    rating_count: int = 0
    vehicle_info: Optional[str] = None
    is_active: bool
    total_deliveries: int = 0
    earnings: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DriverListResponse(BaseModel):
    drivers: List[DriverResponse]
    total: int


class DriverStatsResponse(BaseModel):
    """Earnings summary shown on the driver's earnings screen."""
    driver_id: str
    name: str
    rating: float
    rating_count: int
    total_deliveries: int
    earnings: int = Field(..., description="Sum of driver payouts from delivered orders")
    currency: str
    completed_orders: int
    cancelled_orders: int
    total_revenue: int = Field(..., description="Sum of customer prices of delivered orders")
