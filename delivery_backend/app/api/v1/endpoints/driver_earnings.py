"""
Driver Earnings API Endpoint.
"""

from fastapi import APIRouter, Depends
from delivery_backend.app.api.v1.deps import get_order_service
from delivery_backend.app.core.guards import require_driver
from delivery_backend.app.schemas.driver import DriverStatsResponse
from delivery_backend.app.services.order_service import OrderService

router = APIRouter(prefix="/driver", tags=["Driver - Earnings"])


@router.get("/earnings", response_model=DriverStatsResponse)
async def get_my_earnings(
    current_user: dict = Depends(require_driver),
    service: OrderService = Depends(get_order_service)
):
    """
    Running totals for the calling driver.

    Earnings are credited when an order reaches `delivered`; the rating is
    the average of customer ratings.
    """
    stats = await service.driver_stats(current_user["user_id"])
    return DriverStatsResponse(**stats)
