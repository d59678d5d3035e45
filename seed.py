"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - riders 4001 and 4002, both online
  - orders 1005 and 1006 awaiting assignment, offered to both riders
  - order 1001 already accepted by rider 4001 and awaiting pickup
"""

import asyncio
from decimal import Decimal

from sqlalchemy import text

from rider_dispatch.infrastructure.database import async_session_factory, engine
from rider_dispatch.infrastructure.locks import LocalKeyedLock
from rider_dispatch.infrastructure.store import SqlStoreProvider
from rider_dispatch.services.dispatch import DispatchService

RIDERS = [
    {"id": 4001, "name": "Rider 4001"},
    {"id": 4002, "name": "Rider 4002"},
]

ORDERS = [
    {
        "order_id": 1001,
        "restaurant_name": "The Wok Master",
        "pickup_address": "15 Central Avenue, Kitchen Entrance",
        "customer_name": "Sarah Connor",
        "delivery_address": "32 Skyway Towers, Unit 5A",
        "total_amount": Decimal("27.80"),
    },
    {
        "order_id": 1005,
        "restaurant_name": "Pizza Palace",
        "pickup_address": "123 Main St",
        "customer_name": "Demo Customer",
        "delivery_address": "789 Oak Lane, Apt 2B",
        "total_amount": Decimal("35.50"),
    },
    {
        "order_id": 1006,
        "restaurant_name": "Taco Express",
        "pickup_address": "45 Market Rd",
        "customer_name": "Demo Customer",
        "delivery_address": "12 Birch Road",
        "total_amount": Decimal("18.00"),
    },
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM riders"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

    dispatch = DispatchService(
        SqlStoreProvider(async_session_factory), LocalKeyedLock()
    )

    # ── Riders ────────────────────────────────────────────────────────
    for r in RIDERS:
        result = await dispatch.register_rider(r["name"], rider_id=r["id"], online=True)
        result.unwrap()
    print(f"  Created {len(RIDERS)} riders")

    # ── Orders ────────────────────────────────────────────────────────
    for o in ORDERS:
        (await dispatch.create_order(**o)).unwrap()
    print(f"  Created {len(ORDERS)} orders")

    # ── Offers ────────────────────────────────────────────────────────
    (await dispatch.offer_order(1001, [4001])).unwrap()
    (await dispatch.accept_offer(4001, 1001)).unwrap()
    for order_id in (1005, 1006):
        (await dispatch.offer_order(order_id, [4001, 4002])).unwrap()
    print("  Offered 1005 and 1006; rider 4001 is on order 1001")

    # Explicit ids bypass the serial sequences; move them past the seed data
    async with async_session_factory() as session:
        for table in ("riders", "orders"):
            await session.execute(
                text(
                    f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), "
                    f"(SELECT max(id) FROM {table}))"
                )
            )
        await session.commit()

    print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
