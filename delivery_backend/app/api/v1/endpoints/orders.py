"""
Client Order API Endpoints.

Customers book deliveries, follow them, cancel them, confirm payment and
rate the delivery once it arrives. Ownership is enforced on every order.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from delivery_backend.app.api.v1.deps import get_order_service, order_detail, order_page
from delivery_backend.app.core.guards import require_client, ownership_guard
from delivery_backend.app.core.exceptions import ValidationError
from delivery_backend.app.domain.orders.entities import DeliveryRequest, Coordinates
from delivery_backend.app.models.order_enums import PaymentStatus, FeedbackRole
from delivery_backend.app.schemas.order import (
    OrderCreate, OrderCreatedResponse, OrderDetailResponse, OrderListResponse,
    OrderHistoryResponse, OrderEventResponse,
    CancelOrderRequest, PaymentUpdateRequest, FeedbackRequest
)
from delivery_backend.app.schemas.pricing import PriceBreakdownResponse
from delivery_backend.app.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Client - Orders"])

# Payment outcomes a client app may report; refunds are admin-only
CLIENT_PAYMENT_STATUSES = (PaymentStatus.PAID, PaymentStatus.FAILED)


@router.post("", response_model=OrderCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    current_user: dict = Depends(require_client),
    service: OrderService = Depends(get_order_service)
):
    """
    Book a delivery (Client only).

    Validates:
    - Recipient phone in national format
    - Pickup and delivery addresses present
    - Distance greater than zero

    Actions:
    - Prices the delivery (time surcharges from the current local time)
    - Creates a `pending` order with a fresh tracking code
    """
    request = DeliveryRequest(
        customer_id=current_user["user_id"],
        pickup_address=order_data.pickup_address,
        pickup_coords=Coordinates(**order_data.pickup_location.model_dump()) if order_data.pickup_location else None,
        delivery_address=order_data.delivery_address,
        delivery_coords=Coordinates(**order_data.delivery_location.model_dump()) if order_data.delivery_location else None,
        recipient_name=order_data.recipient_name,
        recipient_phone=order_data.recipient_phone,
        package_type=order_data.package_type,
        package_description=order_data.package_description,
        special_instructions=order_data.special_instructions,
        is_fragile=order_data.is_fragile,
        has_insurance=order_data.has_insurance,
        payment_method=order_data.payment_method,
        payment_term=order_data.payment_term,
        estimated_distance_km=order_data.estimated_distance_km,
    )

    order = await service.create_order(request, actor=current_user)

    return OrderCreatedResponse(
        order_id=order.id,
        tracking_code=order.tracking_code,
        status=order.status,
        price=order.price,
        price_breakdown=PriceBreakdownResponse.model_validate(order.price_breakdown),
    )


@router.get("", response_model=OrderListResponse)
async def list_my_orders(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: dict = Depends(require_client),
    service: OrderService = Depends(get_order_service)
):
    """List the caller's orders, newest first."""
    orders, total = await service.list_customer_orders(
        current_user["user_id"], skip=(page - 1) * page_size, limit=page_size
    )
    return order_page(orders, total, page, page_size)


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_my_order(
    order_id: str = Path(..., description="Order ID"),
    current_user: dict = Depends(require_client),
    service: OrderService = Depends(get_order_service)
):
    """Get one of the caller's orders with its delivery timeline."""
    order = await service.get_order(order_id)
    ownership_guard.enforce(order, current_user)
    return order_detail(service, order)


@router.get("/{order_id}/history", response_model=OrderHistoryResponse)
async def get_my_order_history(
    order_id: str = Path(..., description="Order ID"),
    current_user: dict = Depends(require_client),
    service: OrderService = Depends(get_order_service)
):
    """Event log of an order: every lifecycle step with actor and time."""
    order = await service.get_order(order_id)
    ownership_guard.enforce(order, current_user)

    events = await service.order_history(order_id)
    return OrderHistoryResponse(
        order_id=order_id,
        events=[OrderEventResponse.model_validate(e) for e in events]
    )


@router.post("/{order_id}/cancel", response_model=OrderDetailResponse)
async def cancel_my_order(
    order_id: str = Path(..., description="Order ID"),
    cancel_data: CancelOrderRequest = ...,
    current_user: dict = Depends(require_client),
    service: OrderService = Depends(get_order_service)
):
    """
    Cancel an order that is not yet delivered.

    Validates:
    - Caller owns the order
    - A reason is given
    """
    order = await service.cancel_order(
        order_id, cancel_data.reason, actor=current_user, expected_version=cancel_data.expected_version
    )
    return order_detail(service, order)


@router.post("/{order_id}/feedback", response_model=OrderDetailResponse)
async def rate_delivery(
    order_id: str = Path(..., description="Order ID"),
    feedback_data: FeedbackRequest = ...,
    current_user: dict = Depends(require_client),
    service: OrderService = Depends(get_order_service)
):
    """Rate a delivered order (1-5), once."""
    order = await service.record_feedback(
        order_id,
        FeedbackRole.CUSTOMER,
        feedback_data.rating,
        feedback=feedback_data.feedback,
        actor=current_user
    )
    return order_detail(service, order)


@router.post("/{order_id}/payment", response_model=OrderDetailResponse)
async def confirm_payment(
    order_id: str = Path(..., description="Order ID"),
    payment_data: PaymentUpdateRequest = ...,
    current_user: dict = Depends(require_client),
    service: OrderService = Depends(get_order_service)
):
    """
    Report a payment outcome from the client app.

    Only `paid` and `failed` are accepted here.
    """
    if payment_data.status not in CLIENT_PAYMENT_STATUSES:
        raise ValidationError(
            f"Clients may only report {', '.join(s.value for s in CLIENT_PAYMENT_STATUSES)}",
            field="status"
        )

    order = await service.record_payment(
        order_id,
        payment_data.status,
        reference=payment_data.reference,
        actor=current_user,
        expected_version=payment_data.expected_version
    )
    return order_detail(service, order)
