"""
Pricing API Endpoints.

Public quote: prices a delivery without booking it.
"""

from fastapi import APIRouter, Depends
from delivery_backend.app.api.v1.deps import get_order_service
from delivery_backend.app.core.config import settings
from delivery_backend.app.schemas.pricing import QuoteRequest, QuoteResponse, PriceBreakdownResponse
from delivery_backend.app.services.order_service import OrderService

router = APIRouter(prefix="/pricing", tags=["Pricing"])


@router.post("/quote", response_model=QuoteResponse)
async def get_quote(
    quote_data: QuoteRequest,
    service: OrderService = Depends(get_order_service)
):
    """
    Price a delivery.

    After-hours and weekend flags default to the current local time.
    """
    breakdown, options = service.quote(
        quote_data.distance_km,
        is_fragile=quote_data.is_fragile,
        has_insurance=quote_data.has_insurance,
        after_hours=quote_data.is_after_hours,
        weekend=quote_data.is_weekend,
    )

    return QuoteResponse(
        currency=settings.currency_label,
        distance_km=quote_data.distance_km,
        is_after_hours=options.is_after_hours,
        is_weekend=options.is_weekend,
        breakdown=PriceBreakdownResponse.model_validate(breakdown),
        summary=service.summarize(breakdown, quote_data.distance_km),
    )
