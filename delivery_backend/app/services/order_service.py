"""
Order Service.

Orchestrates the pure domain (pricing engine, order lifecycle, timeline
projector) against the database. Every mutation follows the same path:

    load -> lifecycle operation -> conditional save (version check)
         -> event log -> audit entry -> commit

and is re-run from the top on a version conflict unless the caller pinned
the version it expects.
"""

import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from delivery_backend.app.core.config import settings
from delivery_backend.app.core.exceptions import ConcurrencyError, NotFoundError
from delivery_backend.app.core.guards import ownership_guard
from delivery_backend.app.core.reliability import retry_on_conflict
from delivery_backend.app.domain.orders.entities import Order, DeliveryRequest
from delivery_backend.app.domain.orders.lifecycle import OrderLifecycle, TransitionMeta
from delivery_backend.app.domain.orders.providers import Clock, IdProvider, SystemClock
from delivery_backend.app.domain.orders.timeline import TimelineProjector, TimelineEntry, STATUS_DESCRIPTIONS
from delivery_backend.app.domain.pricing.engine import PricingEngine, PricingOptions, PriceBreakdown
from delivery_backend.app.domain.pricing.time_flags import is_after_hours, is_weekend
from delivery_backend.app.models.driver import Driver
from delivery_backend.app.models.order_enums import OrderStatus, PaymentStatus, FeedbackRole
from delivery_backend.app.models.order_event import OrderEvent
from delivery_backend.app.repositories.driver_repository import DriverRepository, to_snapshot
from delivery_backend.app.repositories.order_repository import OrderRepository
from delivery_backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger("delivery.orders")

Mutation = Callable[[Order], Awaitable[Order]]
SideEffect = Callable[[Order, Order], Awaitable[None]]


def _actor_id(actor: Optional[dict]) -> Optional[str]:
    return actor.get("user_id") if actor else None


def _actor_role(actor: Optional[dict]) -> Optional[str]:
    return actor.get("role") if actor else None


class OrderService:

    def __init__(
        self,
        db: AsyncSession,
        clock: Optional[Clock] = None,
        ids: Optional[IdProvider] = None,
        pricing: Optional[PricingEngine] = None,
        projector: Optional[TimelineProjector] = None,
        max_attempts: Optional[int] = None,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.lifecycle = OrderLifecycle(clock=self.clock, ids=ids)
        self.pricing = pricing or PricingEngine()
        self.projector = projector or TimelineProjector()
        self.max_attempts = max_attempts or settings.concurrency_max_attempts
        self.orders = OrderRepository(db)
        self.drivers = DriverRepository(db)

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def quote(
        self,
        distance_km: float,
        is_fragile: bool = False,
        has_insurance: bool = False,
        after_hours: Optional[bool] = None,
        weekend: Optional[bool] = None,
    ) -> Tuple[PriceBreakdown, PricingOptions]:
        """
        Price a delivery without creating anything.

        Time-based flags not given by the caller are read off the clock.
        """
        now = self.clock.now()
        options = PricingOptions(
            distance=distance_km,
            is_fragile=is_fragile,
            has_insurance=has_insurance,
            is_after_hours=is_after_hours(now) if after_hours is None else after_hours,
            is_weekend=is_weekend(now) if weekend is None else weekend,
        )
        return self.pricing.calculate(options), options

    def summarize(self, breakdown: PriceBreakdown, distance_km: float) -> str:
        return self.pricing.format_breakdown(breakdown, distance_km)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_order(self, order_id: str) -> Order:
        return await self.orders.get(order_id)

    async def track(self, code: str) -> Order:
        """Look an order up by tracking code, falling back to its id."""
        code = (code or "").strip()
        if code.startswith("ord_"):
            return await self.orders.get(code)
        return await self.orders.get_by_tracking_code(code)

    def timeline(self, order: Order) -> List[TimelineEntry]:
        return self.projector.project(order)

    async def list_customer_orders(self, customer_id: str, skip: int = 0, limit: int = 50):
        return await self.orders.list_orders(customer_id=customer_id, skip=skip, limit=limit)

    async def list_driver_orders(
        self,
        driver_id: str,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 50
    ):
        return await self.orders.list_orders(driver_id=driver_id, status=status, skip=skip, limit=limit)

    async def list_pending_orders(self, skip: int = 0, limit: int = 50):
        """Orders waiting for a driver, oldest first."""
        return await self.orders.list_orders(
            status=OrderStatus.PENDING, skip=skip, limit=limit, oldest_first=True
        )

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        customer_id: Optional[str] = None,
        driver_id: Optional[str] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50,
    ):
        return await self.orders.list_orders(
            customer_id=customer_id,
            driver_id=driver_id,
            status=status,
            payment_status=payment_status,
            created_from=created_from,
            created_to=created_to,
            skip=skip,
            limit=limit,
        )

    async def order_history(self, order_id: str) -> List[OrderEvent]:
        await self.orders.get(order_id)
        return await self.orders.list_events(order_id)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_order(self, request: DeliveryRequest, actor: Optional[dict] = None) -> Order:
        """
        Price and persist a new `pending` order.

        Returns:
            The stored order, carrying its tracking code and price breakdown.

        Raises:
            ValidationError: From the pricing engine for a bad distance, else
                from the lifecycle for any other malformed field.
        """
        breakdown, _ = self.quote(
            request.estimated_distance_km,
            is_fragile=request.is_fragile,
            has_insurance=request.has_insurance,
        )
        order = self.lifecycle.create(request, breakdown)

        try:
            await self.orders.add(order)
            await self.orders.append_event(
                order,
                STATUS_DESCRIPTIONS[OrderStatus.PENDING],
                actor_id=_actor_id(actor) or order.customer_id,
            )
            await log_event(
                self.db,
                action=AuditAction.ORDER_CREATED,
                actor_id=_actor_id(actor) or order.customer_id,
                actor_role=_actor_role(actor),
                resource_type="order",
                resource_id=order.id,
                metadata={
                    "tracking_code": order.tracking_code,
                    "price": order.price,
                    "distance_km": order.estimated_distance_km,
                },
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Order %s created for customer %s (%s, %s %s)",
            order.id, order.customer_id, order.tracking_code, settings.currency_label, order.price
        )
        return order

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def assign_driver(
        self,
        order_id: str,
        driver_id: str,
        actor: Optional[dict] = None,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Attach an active driver to a pending order.

        Raises:
            NotFoundError: Unknown order or unknown / inactive driver.
            InvalidTransitionError: The order is no longer pending.
        """
        async def mutate(order: Order) -> Order:
            driver = await self.drivers.get_active(driver_id)
            return self.lifecycle.assign_driver(order, driver.id, to_snapshot(driver))

        return await self._apply(
            order_id,
            mutate,
            actor=actor,
            action=AuditAction.DRIVER_ASSIGNED,
            expected_version=expected_version,
            describe=lambda o: f"{STATUS_DESCRIPTIONS[OrderStatus.ASSIGNED]} ({o.driver.name})",
            metadata={"driver_id": driver_id},
            check_access=False,
        )

    async def update_status(
        self,
        order_id: str,
        target_status: OrderStatus,
        actor: Optional[dict] = None,
        note: Optional[str] = None,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Move an order one step along the delivery chain.

        `cancelled` is routed to cancel_order with the note as the reason.
        """
        target_status = OrderStatus(target_status)
        if target_status == OrderStatus.CANCELLED:
            return await self.cancel_order(
                order_id, note, actor=actor, expected_version=expected_version
            )

        meta = TransitionMeta(note=note, lat=lat, lon=lon)

        async def mutate(order: Order) -> Order:
            return self.lifecycle.transition(order, target_status, meta)

        async def credit_driver(before: Order, after: Order):
            if after.status == OrderStatus.DELIVERED:
                await self.drivers.credit_delivery(after.driver_id, after.price_breakdown.driver_earnings)

        return await self._apply(
            order_id,
            mutate,
            actor=actor,
            action=AuditAction.ORDER_STATUS_CHANGED,
            expected_version=expected_version,
            describe=lambda o: note or STATUS_DESCRIPTIONS[o.status],
            metadata={"status": target_status.value},
            lat=lat,
            lon=lon,
            on_saved=credit_driver,
        )

    async def cancel_order(
        self,
        order_id: str,
        reason: Optional[str],
        actor: Optional[dict] = None,
        expected_version: Optional[int] = None,
    ) -> Order:
        async def mutate(order: Order) -> Order:
            return self.lifecycle.cancel(order, reason)

        return await self._apply(
            order_id,
            mutate,
            actor=actor,
            action=AuditAction.ORDER_CANCELLED,
            expected_version=expected_version,
            describe=lambda o: o.cancellation_reason,
            metadata={"reason": reason},
        )

    async def record_payment(
        self,
        order_id: str,
        status: PaymentStatus,
        reference: Optional[str] = None,
        actor: Optional[dict] = None,
        expected_version: Optional[int] = None,
    ) -> Order:
        status = PaymentStatus(status)

        async def mutate(order: Order) -> Order:
            return self.lifecycle.record_payment_status(order, status, reference)

        return await self._apply(
            order_id,
            mutate,
            actor=actor,
            action=AuditAction.PAYMENT_STATUS_CHANGED,
            expected_version=expected_version,
            describe=lambda o: f"Payment {o.payment_status.value}",
            metadata={"payment_status": status.value, "reference": reference},
        )

    async def record_feedback(
        self,
        order_id: str,
        role: FeedbackRole,
        rating: int,
        feedback: Optional[str] = None,
        actor: Optional[dict] = None,
    ) -> Order:
        role = FeedbackRole(role)

        async def mutate(order: Order) -> Order:
            return self.lifecycle.record_feedback(order, role, rating, feedback)

        async def rate_driver(before: Order, after: Order):
            if role == FeedbackRole.CUSTOMER and after.driver_id:
                await self.drivers.record_rating(after.driver_id, rating)

        return await self._apply(
            order_id,
            mutate,
            actor=actor,
            action=AuditAction.FEEDBACK_RECORDED,
            describe=lambda o: f"{role.value.capitalize()} rated the delivery {rating}/5",
            metadata={"role": role.value, "rating": rating},
            on_saved=rate_driver,
        )

    # ------------------------------------------------------------------
    # Drivers
    # ------------------------------------------------------------------

    async def register_driver(
        self,
        driver_id: str,
        name: str,
        phone: str,
        vehicle_info: Optional[str] = None,
        rating: float = 0.0,
        actor: Optional[dict] = None,
    ) -> Driver:
        now = self.clock.now()
        driver = Driver(
            id=driver_id,
            name=name,
            phone=phone,
            vehicle_info=vehicle_info,
            rating=rating,
            rating_count=0,
            total_deliveries=0,
            earnings=0,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        try:
            await self.drivers.add(driver)
            await log_event(
                self.db,
                action=AuditAction.DRIVER_REGISTERED,
                actor_id=_actor_id(actor),
                actor_role=_actor_role(actor),
                resource_type="driver",
                resource_id=driver_id,
                metadata={"name": name},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Driver %s registered", driver_id)
        return driver

    async def list_drivers(self, active_only: bool = False, skip: int = 0, limit: int = 50):
        return await self.drivers.list_drivers(active_only=active_only, skip=skip, limit=limit)

    async def driver_stats(self, driver_id: str) -> dict:
        """
        Earnings summary for one driver: running totals from the profile plus
        delivered / cancelled counts from their orders.

        Raises:
            NotFoundError: No driver profile with this id.
        """
        driver = await self.drivers.find(driver_id)
        if driver is None:
            raise NotFoundError("Driver", driver_id)

        order_stats = await self.orders.driver_order_stats(driver_id)
        return {
            "driver_id": driver.id,
            "name": driver.name,
            "rating": round(driver.rating or 0.0, 1),
            "rating_count": driver.rating_count or 0,
            "total_deliveries": driver.total_deliveries or 0,
            "earnings": driver.earnings or 0,
            "currency": settings.currency_label,
            **order_stats,
        }


    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _apply(
        self,
        order_id: str,
        mutate: Mutation,
        actor: Optional[dict],
        action: str,
        describe: Callable[[Order], str],
        expected_version: Optional[int] = None,
        metadata: Optional[dict] = None,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
        check_access: bool = True,
        on_saved: Optional[SideEffect] = None,
    ) -> Order:
        async def attempt() -> Order:
            try:
                order = await self.orders.get(order_id)
                if check_access and actor is not None:
                    ownership_guard.enforce(order, actor)
                if expected_version is not None and order.version != expected_version:
                    raise ConcurrencyError(
                        order.id, expected_version=expected_version, actual_version=order.version
                    )

                updated = await mutate(order)
                if updated is order:
                    return order

                await self.orders.save(updated, expected_version=order.version)
                if on_saved is not None:
                    await on_saved(order, updated)
                await self.orders.append_event(
                    updated, describe(updated), actor_id=_actor_id(actor), latitude=lat, longitude=lon
                )
                await log_event(
                    self.db,
                    action=action,
                    actor_id=_actor_id(actor),
                    actor_role=_actor_role(actor),
                    resource_type="order",
                    resource_id=updated.id,
                    metadata={
                        "from_status": order.status.value,
                        "to_status": updated.status.value,
                        "version": updated.version,
                        **(metadata or {}),
                    },
                )
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

            logger.info(
                "%s order=%s status=%s->%s payment=%s v%s",
                action, updated.id, order.status.value, updated.status.value,
                updated.payment_status.value, updated.version
            )
            return updated

        # A pinned version means the caller acted on what it saw; never retry past it
        if expected_version is not None:
            return await attempt()
        return await retry_on_conflict(attempt, max_attempts=self.max_attempts)

