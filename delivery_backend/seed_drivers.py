"""
Database seeding script for driver profiles.

Creates a few active drivers for development so that orders can be
accepted straight away. Driver ids must match the `user_id` claim of the
driver tokens issued by the identity provider.

Run with: python -m delivery_backend.seed_drivers
"""

import asyncio

from delivery_backend.app.db.session import AsyncSessionLocal, engine, Base
from delivery_backend.app.services.order_service import OrderService
from delivery_backend.app.models.audit_log import AuditLog  # noqa: F401
from delivery_backend.app.models.order import OrderRecord  # noqa: F401
from delivery_backend.app.models.order_event import OrderEvent  # noqa: F401

SEED_DRIVERS = [
    {"driver_id": "drv_dev_1", "name": "Peter Kamau", "phone": "+254711000111",
     "vehicle_info": "Motorbike KMDA 123B", "rating": 4.8},
    {"driver_id": "drv_dev_2", "name": "Mary Achieng", "phone": "+254722000222",
     "vehicle_info": "Motorbike KMEB 456C", "rating": 4.6},
    {"driver_id": "drv_dev_3", "name": "John Otieno", "phone": "+254733000333",
     "vehicle_info": "Probox KCZ 789D", "rating": 4.9},
]


async def seed_drivers():
    """
    Seed driver profiles.

    Existing profiles are left untouched.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting driver seeding...")
        service = OrderService(db)

        created = 0
        for data in SEED_DRIVERS:
            if await service.drivers.find(data["driver_id"]) is not None:
                print(f"ℹ️  Driver {data['driver_id']} already exists, skipping")
                continue

            await service.register_driver(**data)
            created += 1
            print(f"✅ Created driver {data['driver_id']} ({data['name']})")

    await engine.dispose()
    print(f"\n🎉 Driver seeding completed: {created} created")


if __name__ == "__main__":
    asyncio.run(seed_drivers())
