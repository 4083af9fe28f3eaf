"""
Shared endpoint dependencies and response builders.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from delivery_backend.app.db.session import get_db
from delivery_backend.app.domain.orders.entities import Order
from delivery_backend.app.schemas.order import OrderDetailResponse, OrderListResponse, OrderResponse
from delivery_backend.app.services.order_service import OrderService


async def get_order_service(db: AsyncSession = Depends(get_db)) -> OrderService:
    return OrderService(db)


def order_detail(service: OrderService, order: Order) -> OrderDetailResponse:
    """Order plus its projected timeline."""
    return OrderDetailResponse.model_validate({
        **order.model_dump(),
        "timeline": [entry.model_dump() for entry in service.timeline(order)],
    })


def order_page(orders, total: int, page: int, page_size: int) -> OrderListResponse:
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size
    )
