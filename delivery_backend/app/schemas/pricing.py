"""
Pricing Pydantic schemas.

Defines request and response models for the public quote endpoint.
"""

from pydantic import BaseModel, Field
from typing import Optional
from delivery_backend.app.core.config import settings


class QuoteRequest(BaseModel):
    """Schema for requesting a price quote."""
    distance_km: float = Field(
        ..., gt=0, le=settings.max_distance_km, allow_inf_nan=False,
        description="Estimated route distance in kilometres"
    )
    is_fragile: bool = Field(default=False, description="Fragile handling surcharge")
    has_insurance: bool = Field(default=False, description="Insurance surcharge")
    is_after_hours: Optional[bool] = Field(
        default=None, description="Override the after-hours flag (defaults to the current local time)"
    )
    is_weekend: Optional[bool] = Field(
        default=None, description="Override the weekend flag (defaults to the current local date)"
    )


class PriceBreakdownResponse(BaseModel):
    """Itemised price, whole currency units."""
    base_fare: int
    distance_fee: int
    subtotal: int
    fragile_charge: int
    insurance_charge: int
    after_hours_charge: int
    weekend_charge: int
    total: int
    driver_earnings: int
    company_commission: int

    class Config:
        from_attributes = True


class QuoteResponse(BaseModel):
    """Schema for quote response."""
    currency: str
    distance_km: float
    is_after_hours: bool
    is_weekend: bool
    breakdown: PriceBreakdownResponse
    summary: str = Field(..., description="Customer-facing multi-line breakdown")
