"""
Order persistence.

Maps between the immutable domain Order and the `orders` table, and owns the
optimistic concurrency check: `save` only writes when the stored version is
the one the caller started from.

The repository flushes but never commits; the service commits once per
operation so the order row, its event and its audit entry land together.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, List, Tuple

from sqlalchemy import select, update, func, desc, case
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from delivery_backend.app.core.exceptions import NotFoundError, ConcurrencyError, PersistenceError
from delivery_backend.app.domain.orders.entities import Order, DriverSnapshot
from delivery_backend.app.domain.pricing.engine import PriceBreakdown
from delivery_backend.app.models.order import OrderRecord
from delivery_backend.app.models.order_event import OrderEvent
from delivery_backend.app.models.order_enums import OrderStatus, PaymentStatus

logger = logging.getLogger("delivery.repository")

_DATETIME_FIELDS = (
    "created_at", "updated_at", "assigned_at", "picked_up_at",
    "in_transit_at", "delivered_at", "completed_at", "cancelled_at",
)

_PLAIN_FIELDS = (
    "id", "tracking_code", "customer_id", "driver_id",
    "pickup_address", "pickup_lat", "pickup_lon",
    "delivery_address", "delivery_lat", "delivery_lon",
    "recipient_name", "recipient_phone", "package_type", "package_description",
    "special_instructions", "is_fragile", "has_insurance", "estimated_distance_km",
    "status", "payment_method", "payment_term", "payment_status", "payment_reference",
    "price", "cancellation_reason",
    "customer_rating", "customer_feedback", "driver_rating", "driver_feedback",
    "version",
) + _DATETIME_FIELDS


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo on the way back; stored values are always UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def to_domain(record: OrderRecord) -> Order:
    data = {field: getattr(record, field) for field in _PLAIN_FIELDS}
    for field in _DATETIME_FIELDS:
        data[field] = as_utc(data[field])

    data["price_breakdown"] = PriceBreakdown(**record.price_breakdown)
    if record.driver_name is not None:
        data["driver"] = DriverSnapshot(
            name=record.driver_name,
            phone=record.driver_phone,
            rating=record.driver_profile_rating or 0.0,
            vehicle_info=record.driver_vehicle_info,
        )
    return Order(**data)


def to_columns(order: Order) -> dict:
    values = {field: getattr(order, field) for field in _PLAIN_FIELDS}
    values["price_breakdown"] = order.price_breakdown.model_dump()

    driver = order.driver
    values["driver_name"] = driver.name if driver else None
    values["driver_phone"] = driver.phone if driver else None
    values["driver_profile_rating"] = driver.rating if driver else None
    values["driver_vehicle_info"] = driver.vehicle_info if driver else None
    return values


class OrderRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, order: Order) -> Order:
        """Insert a freshly created order."""
        self.db.add(OrderRecord(**to_columns(order)))
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise PersistenceError(f"Could not insert order {order.id}: duplicate key") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not insert order {order.id}") from e
        return order

    async def get(self, order_id: str) -> Order:
        record = await self._fetch_one(select(OrderRecord).where(OrderRecord.id == order_id))
        if record is None:
            raise NotFoundError("Order", order_id)
        return to_domain(record)

    async def get_by_tracking_code(self, tracking_code: str) -> Order:
        record = await self._fetch_one(
            select(OrderRecord).where(OrderRecord.tracking_code == tracking_code.strip().upper())
        )
        if record is None:
            raise NotFoundError("Order", tracking_code)
        return to_domain(record)

    async def save(self, order: Order, expected_version: int) -> Order:
        """
        Persist `order` only if the stored row is still at `expected_version`.

        Raises:
            ConcurrencyError: Another writer got there first.
            NotFoundError: The order does not exist.
        """
        values = to_columns(order)
        values.pop("id")

        stmt = (
            update(OrderRecord)
            .where(OrderRecord.id == order.id, OrderRecord.version == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not update order {order.id}") from e

        if result.rowcount == 0:
            actual = await self.current_version(order.id)
            if actual is None:
                raise NotFoundError("Order", order.id)
            logger.info(
                "Version conflict on order %s: expected v%s, found v%s",
                order.id, expected_version, actual
            )
            raise ConcurrencyError(order.id, expected_version=expected_version, actual_version=actual)

        return order

    async def current_version(self, order_id: str) -> Optional[int]:
        try:
            result = await self.db.execute(
                select(OrderRecord.version).where(OrderRecord.id == order_id)
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read order {order_id}") from e
        return result.scalar_one_or_none()

    async def list_orders(
        self,
        customer_id: Optional[str] = None,
        driver_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50,
        oldest_first: bool = False,
    ) -> Tuple[List[Order], int]:
        """
        List orders with optional filters.

        Returns:
            (page of orders, total matching count)
        """
        query = select(OrderRecord)
        count_query = select(func.count()).select_from(OrderRecord)

        filters = []
        if customer_id:
            filters.append(OrderRecord.customer_id == customer_id)
        if driver_id:
            filters.append(OrderRecord.driver_id == driver_id)
        if status:
            filters.append(OrderRecord.status == status)
        if payment_status:
            filters.append(OrderRecord.payment_status == payment_status)
        if created_from:
            filters.append(OrderRecord.created_at >= created_from)
        if created_to:
            filters.append(OrderRecord.created_at < created_to)

        for condition in filters:
            query = query.where(condition)
            count_query = count_query.where(condition)

        ordering = OrderRecord.created_at if oldest_first else desc(OrderRecord.created_at)
        query = (
            query.order_by(ordering)
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        )

        try:
            total = (await self.db.execute(count_query)).scalar_one()
            records = (await self.db.execute(query)).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError("Could not list orders") from e

        return [to_domain(r) for r in records], total

    async def driver_order_stats(self, driver_id: str) -> dict:
        """Delivered / cancelled counts and delivered revenue for one driver."""
        delivered = OrderRecord.status == OrderStatus.DELIVERED
        query = select(
            func.count(case((delivered, 1))),
            func.count(case((OrderRecord.status == OrderStatus.CANCELLED, 1))),
            func.coalesce(func.sum(case((delivered, OrderRecord.price), else_=0)), 0),
        ).where(OrderRecord.driver_id == driver_id)

        try:
            completed, cancelled, revenue = (await self.db.execute(query)).one()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read order stats for driver {driver_id}") from e

        return {
            "completed_orders": completed,
            "cancelled_orders": cancelled,
            "total_revenue": int(revenue),
        }


    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def append_event(
        self,
        order: Order,
        description: str,
        actor_id: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> OrderEvent:
        event = OrderEvent(
            order_id=order.id,
            status=order.status,
            description=description,
            latitude=latitude,
            longitude=longitude,
            actor_id=actor_id,
            order_version=order.version,
            created_at=order.updated_at,
        )
        self.db.add(event)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not record event for order {order.id}") from e
        return event

    async def list_events(self, order_id: str) -> List[OrderEvent]:
        try:
            result = await self.db.execute(
                select(OrderEvent)
                .where(OrderEvent.order_id == order_id)
                .order_by(OrderEvent.order_version, OrderEvent.id)
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read history for order {order_id}") from e
        return result.scalars().all()

    async def _fetch_one(self, query) -> Optional[OrderRecord]:
        try:
            # Rows written by save() bypass the identity map
            result = await self.db.execute(query.execution_options(populate_existing=True))
        except SQLAlchemyError as e:
            raise PersistenceError("Could not read order") from e
        return result.scalar_one_or_none()
