"""
Admin Order API Endpoints.

Full visibility over orders plus the operator actions: assigning drivers,
forcing status changes, cancelling, recording payments (including refunds)
and managing driver profiles.
"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, status, Query, Path
from delivery_backend.app.api.v1.deps import get_order_service, order_detail, order_page
from delivery_backend.app.core.guards import require_admin
from delivery_backend.app.models.order_enums import OrderStatus, PaymentStatus
from delivery_backend.app.schemas.driver import DriverCreate, DriverResponse, DriverListResponse
from delivery_backend.app.schemas.order import (
    OrderDetailResponse, OrderListResponse, OrderHistoryResponse, OrderEventResponse,
    AssignDriverRequest, StatusUpdateRequest, CancelOrderRequest, PaymentUpdateRequest
)
from delivery_backend.app.services.order_service import OrderService

router = APIRouter(prefix="/admin", tags=["Admin - Orders"])


@router.get("/orders", response_model=OrderListResponse)
async def list_orders(
    status: Optional[OrderStatus] = Query(None, description="Filter by delivery status"),
    payment_status: Optional[PaymentStatus] = Query(None, description="Filter by payment status"),
    customer_id: Optional[str] = Query(None),
    driver_id: Optional[str] = Query(None),
    created_from: Optional[datetime] = Query(None, description="Created at or after"),
    created_to: Optional[datetime] = Query(None, description="Created before"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: dict = Depends(require_admin),
    service: OrderService = Depends(get_order_service)
):
    """List all orders with filters, newest first."""
    orders, total = await service.list_orders(
        status=status,
        payment_status=payment_status,
        customer_id=customer_id,
        driver_id=driver_id,
        created_from=created_from,
        created_to=created_to,
        skip=(page - 1) * page_size,
        limit=page_size,
    )
    return order_page(orders, total, page, page_size)


@router.get("/orders/{order_id}", response_model=OrderDetailResponse)
async def get_order(
    order_id: str = Path(..., description="Order ID"),
    current_user: dict = Depends(require_admin),
    service: OrderService = Depends(get_order_service)
):
    order = await service.get_order(order_id)
    return order_detail(service, order)


@router.get("/orders/{order_id}/history", response_model=OrderHistoryResponse)
async def get_order_history(
    order_id: str = Path(..., description="Order ID"),
    current_user: dict = Depends(require_admin),
    service: OrderService = Depends(get_order_service)
):
    events = await service.order_history(order_id)
    return OrderHistoryResponse(
        order_id=order_id,
        events=[OrderEventResponse.model_validate(e) for e in events]
    )


@router.patch("/orders/{order_id}/assign-driver", response_model=OrderDetailResponse)
async def assign_driver(
    order_id: str = Path(..., description="Order ID"),
    assign_data: AssignDriverRequest = ...,
    current_user: dict = Depends(require_admin),
    service: OrderService = Depends(get_order_service)
):
    """
    Assign a driver to a pending order.

    Validates:
    - Driver exists and is active (404 otherwise)
    - Order is pending (409 otherwise)
    """
    order = await service.assign_driver(
        order_id,
        assign_data.driver_id,
        actor=current_user,
        expected_version=assign_data.expected_version
    )
    return order_detail(service, order)


@router.patch("/orders/{order_id}/status", response_model=OrderDetailResponse)
async def update_order_status(
    order_id: str = Path(..., description="Order ID"),
    status_data: StatusUpdateRequest = ...,
    current_user: dict = Depends(require_admin),
    service: OrderService = Depends(get_order_service)
):
    """Advance an order on the driver's behalf. Same rules as the driver endpoint."""
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


@router.post("/orders/{order_id}/cancel", response_model=OrderDetailResponse)
async def cancel_order(
    order_id: str = Path(..., description="Order ID"),
    cancel_data: CancelOrderRequest = ...,
    current_user: dict = Depends(require_admin),
    service: OrderService = Depends(get_order_service)
):
    order = await service.cancel_order(
        order_id, cancel_data.reason, actor=current_user, expected_version=cancel_data.expected_version
    )
    return order_detail(service, order)


@router.patch("/orders/{order_id}/payment", response_model=OrderDetailResponse)
async def update_payment(
    order_id: str = Path(..., description="Order ID"),
    payment_data: PaymentUpdateRequest = ...,
    current_user: dict = Depends(require_admin),
    service: OrderService = Depends(get_order_service)
):
    """Record a payment outcome, including refunds."""
    order = await service.record_payment(
        order_id,
        payment_data.status,
        reference=payment_data.reference,
        actor=current_user,
        expected_version=payment_data.expected_version
    )
    return order_detail(service, order)


@router.post("/drivers", response_model=DriverResponse, status_code=status.HTTP_201_CREATED)
async def register_driver(
    driver_data: DriverCreate,
    current_user: dict = Depends(require_admin),
    service: OrderService = Depends(get_order_service)
):
    """
    Register a driver profile.

    The id must be the driver's user id at the identity provider so their
    token maps onto this profile.
    """
    driver = await service.register_driver(
        driver_data.id,
        driver_data.name,
        driver_data.phone,
        vehicle_info=driver_data.vehicle_info,
        rating=driver_data.rating,
        actor=current_user
    )
    return DriverResponse.model_validate(driver)


@router.get("/drivers", response_model=DriverListResponse)
async def list_drivers(
    active_only: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: dict = Depends(require_admin),
    service: OrderService = Depends(get_order_service)
):
    drivers = await service.list_drivers(
        active_only=active_only, skip=(page - 1) * page_size, limit=page_size
    )
    return DriverListResponse(
        drivers=[DriverResponse.model_validate(d) for d in drivers],
        total=len(drivers)
    )
