"""
Driver Order API Endpoints.

Drivers browse unassigned orders, accept one, then advance it through
pickup, transit and delivery. A driver only ever touches orders assigned
to them.
"""

from fastapi import APIRouter, Depends, Query, Path
from delivery_backend.app.api.v1.deps import get_order_service, order_detail, order_page
from delivery_backend.app.core.guards import require_driver
from delivery_backend.app.models.order_enums import OrderStatus, FeedbackRole
from delivery_backend.app.schemas.order import (
    OrderDetailResponse, OrderListResponse, StatusUpdateRequest, FeedbackRequest
)
from delivery_backend.app.services.order_service import OrderService

router = APIRouter(prefix="/driver/orders", tags=["Driver - Orders"])


@router.get("/available", response_model=OrderListResponse)
async def list_available_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(require_driver),
    service: OrderService = Depends(get_order_service)
):
    """Pending orders waiting for a driver, oldest first."""
    orders, total = await service.list_pending_orders(skip=(page - 1) * page_size, limit=page_size)
    return order_page(orders, total, page, page_size)


@router.get("", response_model=OrderListResponse)
async def list_assigned_orders(
    status: OrderStatus = Query(None, description="Filter by status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(require_driver),
    service: OrderService = Depends(get_order_service)
):
    """Orders assigned to the calling driver."""
    orders, total = await service.list_driver_orders(
        current_user["user_id"], status=status, skip=(page - 1) * page_size, limit=page_size
    )
    return order_page(orders, total, page, page_size)


@router.post("/{order_id}/accept", response_model=OrderDetailResponse)
async def accept_order(
    order_id: str = Path(..., description="Order ID"),
    current_user: dict = Depends(require_driver),
    service: OrderService = Depends(get_order_service)
):
    """
    Self-assign a pending order.

    Validates:
    - Caller has an active driver profile
    - Order is still pending (409 if another driver got it first)
    """
    order = await service.assign_driver(order_id, current_user["user_id"], actor=current_user)
    return order_detail(service, order)


@router.patch("/{order_id}/status", response_model=OrderDetailResponse)
async def update_order_status(
    order_id: str = Path(..., description="Order ID"),
    status_data: StatusUpdateRequest = ...,
    current_user: dict = Depends(require_driver),
    service: OrderService = Depends(get_order_service)
):
    """
    Advance an assigned order one step.

    Validates:
    - Order is assigned to the caller
    - Target is the next status in the chain
    - expected_version, if given, matches the stored order

    Actions:
    - Stamps the stage time and records the note / GPS fix in the event log
    """
    order = await service.update_status(
        order_id,
        status_data.target_status,
        actor=current_user,
        note=status_data.note,
        lat=status_data.lat,
        lon=status_data.lon,
        expected_version=status_data.expected_version,
    )
    return order_detail(service, order)


@router.post("/{order_id}/feedback", response_model=OrderDetailResponse)
async def rate_customer(
    order_id: str = Path(..., description="Order ID"),
    feedback_data: FeedbackRequest = ...,
    current_user: dict = Depends(require_driver),
    service: OrderService = Depends(get_order_service)
):
    """Rate the customer of a delivered order (1-5), once."""
    order = await service.record_feedback(
        order_id,
        FeedbackRole.DRIVER,
        feedback_data.rating,
        feedback=feedback_data.feedback,
        actor=current_user
    )
    return order_detail(service, order)
