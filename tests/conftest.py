"""
Shared test fixtures.

Service-level tests run against ``InterleavingStore`` (an ``InMemoryStore``
that yields on every access) with the in-process lock backend.  The SQL
store is exercised against a throwaway SQLite file (via aiosqlite) so tests
run without Docker / PostgreSQL / Redis.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from rider_dispatch.domain.enums import OfferPolicy
from rider_dispatch.infrastructure.database import Base
from rider_dispatch.infrastructure.locks import LocalKeyedLock
from rider_dispatch.infrastructure.store import (
    InMemoryStore,
    InMemoryStoreProvider,
    SqlStoreProvider,
)
from rider_dispatch.services.dispatch import DispatchService

# Registers the ORM tables on Base.metadata
import rider_dispatch.infrastructure.models  # noqa: F401


START = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic, manually advanced UTC clock."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class InterleavingStore(InMemoryStore):
    """
    Yields to the event loop around every read and write, so concurrent
    operations interleave inside their critical sections the way they do
    against a real database.
    """

    async def get_order(self, order_id, for_update=False):
        await asyncio.sleep(0)
        return await super().get_order(order_id, for_update)

    async def save_order(self, order):
        await asyncio.sleep(0)
        await super().save_order(order)

    async def add_order(self, order):
        await asyncio.sleep(0)
        return await super().add_order(order)

    async def get_rider(self, rider_id, for_update=False):
        await asyncio.sleep(0)
        return await super().get_rider(rider_id, for_update)

    async def save_rider(self, rider):
        await asyncio.sleep(0)
        await super().save_rider(rider)

    async def add_rider(self, rider):
        await asyncio.sleep(0)
        return await super().add_rider(rider)

    async def get_offer(self, order_id):
        await asyncio.sleep(0)
        return await super().get_offer(order_id)

    async def delete_offer(self, order_id):
        await asyncio.sleep(0)
        await super().delete_offer(order_id)


ORDER_1005 = {
    "order_id": 1005,
    "restaurant_name": "Pizza Palace",
    "pickup_address": "123 Main St",
    "customer_name": "Demo Customer",
    "delivery_address": "789 Oak Lane, Apt 2B",
    "total_amount": Decimal("35.50"),
}


async def seed_riders_and_offer(dispatch: DispatchService) -> None:
    """Riders 4001 and 4002 online; order 1005 offered to both."""
    for rider_id in (4001, 4002):
        result = await dispatch.register_rider(
            f"Rider {rider_id}", rider_id=rider_id, online=True
        )
        result.unwrap()
    (await dispatch.create_order(**ORDER_1005)).unwrap()
    (await dispatch.offer_order(1005, [4001, 4002])).unwrap()


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dispatch(clock: FakeClock) -> DispatchService:
    return DispatchService(
        InMemoryStoreProvider(InterleavingStore()),
        LocalKeyedLock(wait_seconds=1.0),
        policy=OfferPolicy.CANDIDATES,
        offer_ttl_seconds=60,
        clock=clock,
    )


@pytest_asyncio.fixture
async def scenario(dispatch: DispatchService) -> DispatchService:
    await seed_riders_and_offer(dispatch)
    return dispatch


@pytest_asyncio.fixture
async def sql_stores(tmp_path) -> AsyncGenerator[SqlStoreProvider, None]:
    """Create tables in a fresh SQLite file, yield a provider, then dispose."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'dispatch.db'}", echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield SqlStoreProvider(
        async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    )

    await engine.dispose()


@pytest.fixture
def sql_dispatch(sql_stores: SqlStoreProvider, clock: FakeClock) -> DispatchService:
    return DispatchService(
        sql_stores,
        LocalKeyedLock(wait_seconds=5.0),
        offer_ttl_seconds=60,
        clock=clock,
    )


@pytest_asyncio.fixture
async def sql_scenario(sql_dispatch: DispatchService) -> DispatchService:
    await seed_riders_and_offer(sql_dispatch)
    return sql_dispatch
