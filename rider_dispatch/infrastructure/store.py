"""
Storage port consumed by the dispatch services.

``DeliveryStore`` is the keyed store the core reads from and persists to;
``StoreProvider.session()`` opens a unit of work around it that commits on
success and rolls back on error.  Services always open the unit of work
*inside* the per-entity lock so the commit is visible before the lock is
released.

``InMemoryStore`` hands out copies, so an operation that fails half-way
never leaks a partial mutation into shared state.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rider_dispatch.domain.entities import Offer, Order, Rider


class DeliveryStore(ABC):
    # ── Orders ────────────────────────────────────────────────────────

    @abstractmethod
    async def get_order(
        self, order_id: int, for_update: bool = False
    ) -> Optional[Order]: ...

    @abstractmethod
    async def add_order(self, order: Order) -> Order: ...

    @abstractmethod
    async def save_order(self, order: Order) -> None: ...

    # ── Riders ────────────────────────────────────────────────────────

    @abstractmethod
    async def get_rider(
        self, rider_id: int, for_update: bool = False
    ) -> Optional[Rider]: ...

    @abstractmethod
    async def add_rider(self, rider: Rider) -> Rider: ...

    @abstractmethod
    async def save_rider(self, rider: Rider) -> None: ...

    @abstractmethod
    async def list_eligible_riders(self) -> set[int]:
        """Ids of riders that are online with no active delivery."""

    # ── Offers ────────────────────────────────────────────────────────

    @abstractmethod
    async def get_offer(self, order_id: int) -> Optional[Offer]: ...

    @abstractmethod
    async def save_offer(self, offer: Offer) -> None: ...

    @abstractmethod
    async def delete_offer(self, order_id: int) -> None: ...

    @abstractmethod
    async def list_offers(self) -> list[Offer]: ...

    @abstractmethod
    async def list_expired_offers(self, now: datetime) -> list[Offer]: ...


class StoreProvider(ABC):
    @abstractmethod
    def session(self):
        """Async context manager yielding a ``DeliveryStore``."""


# ── In-memory implementation ──────────────────────────────────────────


class InMemoryStore(DeliveryStore):
    def __init__(self) -> None:
        self._orders: dict[int, Order] = {}
        self._riders: dict[int, Rider] = {}
        self._offers: dict[int, Offer] = {}
        self._next_order_id = 1
        self._next_rider_id = 1

    async def get_order(self, order_id, for_update=False):
        order = self._orders.get(order_id)
        return copy.deepcopy(order) if order else None

    async def add_order(self, order):
        if order.id is None:
            while self._next_order_id in self._orders:
                self._next_order_id += 1
            order.id = self._next_order_id
        self._orders[order.id] = copy.deepcopy(order)
        return order

    async def save_order(self, order):
        self._orders[order.id] = copy.deepcopy(order)

    async def get_rider(self, rider_id, for_update=False):
        rider = self._riders.get(rider_id)
        return copy.deepcopy(rider) if rider else None

    async def add_rider(self, rider):
        if rider.id is None:
            while self._next_rider_id in self._riders:
                self._next_rider_id += 1
            rider.id = self._next_rider_id
        self._riders[rider.id] = copy.deepcopy(rider)
        return rider

    async def save_rider(self, rider):
        self._riders[rider.id] = copy.deepcopy(rider)

    async def list_eligible_riders(self):
        return {r.id for r in self._riders.values() if r.is_eligible}

    async def get_offer(self, order_id):
        offer = self._offers.get(order_id)
        return copy.deepcopy(offer) if offer else None

    async def save_offer(self, offer):
        self._offers[offer.order_id] = copy.deepcopy(offer)

    async def delete_offer(self, order_id):
        self._offers.pop(order_id, None)

    async def list_offers(self):
        return sorted(
            (copy.deepcopy(o) for o in self._offers.values()),
            key=lambda o: (o.offered_at is None, o.offered_at, o.order_id),
        )

    async def list_expired_offers(self, now):
        return [o for o in await self.list_offers() if o.is_expired(now)]


class InMemoryStoreProvider(StoreProvider):
    def __init__(self, store: Optional[InMemoryStore] = None):
        self.store = store or InMemoryStore()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[DeliveryStore]:
        yield self.store


class SqlStoreProvider(StoreProvider):
    """One ``AsyncSession`` per unit of work; commit on success."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def session(self) -> AsyncIterator[DeliveryStore]:
        from .repositories import SqlDeliveryStore

        async with self.session_factory() as session:
            try:
                yield SqlDeliveryStore(session)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
