"""
Driver profile persistence.
"""

from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from delivery_backend.app.core.exceptions import NotFoundError, PersistenceError, ValidationError
from delivery_backend.app.domain.orders.entities import DriverSnapshot
from delivery_backend.app.models.driver import Driver


def to_snapshot(driver: Driver) -> DriverSnapshot:
    return DriverSnapshot(
        name=driver.name,
        phone=driver.phone,
        rating=driver.rating or 0.0,
        vehicle_info=driver.vehicle_info,
    )


class DriverRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, driver: Driver) -> Driver:
        if await self.find(driver.id) is not None:
            raise ValidationError(f"Driver {driver.id} is already registered", field="id")

        self.db.add(driver)
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise ValidationError(f"Driver {driver.id} is already registered", field="id") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not register driver {driver.id}") from e
        return driver

    async def find(self, driver_id: str, for_update: bool = False) -> Optional[Driver]:
        query = select(Driver).where(Driver.id == driver_id).execution_options(populate_existing=True)
        if for_update:
            query = query.with_for_update()
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read driver {driver_id}") from e
        return result.scalar_one_or_none()

    async def get_active(self, driver_id: str) -> Driver:
        """
        Fetch a driver that can take orders.

        Raises:
            NotFoundError: Unknown or deactivated driver.
        """
        driver = await self.find(driver_id)
        if driver is None or not driver.is_active:
            raise NotFoundError("Driver", driver_id)
        return driver

    async def list_drivers(self, active_only: bool = False, skip: int = 0, limit: int = 50) -> List[Driver]:
        query = select(Driver)
        if active_only:
            query = query.where(Driver.is_active == True)
        query = query.order_by(Driver.name).offset(skip).limit(limit)

        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise PersistenceError("Could not list drivers") from e
        return result.scalars().all()

    async def credit_delivery(self, driver_id: str, amount: int):
        """Add one delivery and its payout to the driver's running totals."""
        stmt = (
            update(Driver)
            .where(Driver.id == driver_id)
            .values(
                total_deliveries=Driver.total_deliveries + 1,
                earnings=Driver.earnings + amount,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not credit driver {driver_id}") from e
        if result.rowcount == 0:
            raise NotFoundError("Driver", driver_id)

    async def record_rating(self, driver_id: str, rating: int) -> Driver:
        """
        Fold a customer rating into the driver's average.

        The first rating replaces whatever rating the profile was registered with.
        """
        driver = await self.find(driver_id, for_update=True)
        if driver is None:
            raise NotFoundError("Driver", driver_id)

        count = driver.rating_count or 0
        current = driver.rating if count else 0.0
        driver.rating = (current * count + rating) / (count + 1)
        driver.rating_count = count + 1

        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not update rating for driver {driver_id}") from e
        return driver
