"""
Public Tracking API Endpoint.

Anyone holding a tracking code can follow the delivery; no token needed.
"""

from fastapi import APIRouter, Depends, Path
from delivery_backend.app.api.v1.deps import get_order_service
from delivery_backend.app.schemas.order import TrackingResponse
from delivery_backend.app.services.order_service import OrderService

router = APIRouter(prefix="/tracking", tags=["Tracking"])


@router.get("/{tracking_code}", response_model=TrackingResponse)
async def track_order(
    tracking_code: str = Path(..., min_length=4, max_length=64, description="Tracking code, e.g. PKG4K2Z9Q1A"),
    service: OrderService = Depends(get_order_service)
):
    """
    Track an order by code.

    Returns the current status and the projected delivery timeline.
    """
    order = await service.track(tracking_code)

    return TrackingResponse(
        tracking_code=order.tracking_code,
        status=order.status,
        pickup_address=order.pickup_address,
        delivery_address=order.delivery_address,
        package_type=order.package_type,
        estimated_distance_km=order.estimated_distance_km,
        driver_name=order.driver.name if order.driver else None,
        driver_vehicle_info=order.driver.vehicle_info if order.driver else None,
        created_at=order.created_at,
        updated_at=order.updated_at,
        timeline=[entry.model_dump() for entry in service.timeline(order)],
    )
