"""
Rider availability and active-delivery binding.

A thin accessor/mutator layer: the assignment registry and the delivery
tracker call ``bind`` / ``release`` while they already hold the rider's
lock and unit of work.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from rider_dispatch.domain.entities import Order, Rider, utcnow
from rider_dispatch.domain.enums import RiderAvailability
from rider_dispatch.domain.errors import InvalidStateError, NotFound
from rider_dispatch.infrastructure.locks import KeyedLock, rider_key
from rider_dispatch.infrastructure.store import DeliveryStore, StoreProvider

logger = logging.getLogger(__name__)


async def load_order(
    store: DeliveryStore, order_id: int, for_update: bool = False
) -> Order:
    order = await store.get_order(order_id, for_update=for_update)
    if order is None:
        raise NotFound(f"Order {order_id} not found")
    return order


async def load_rider(
    store: DeliveryStore, rider_id: int, for_update: bool = False
) -> Rider:
    rider = await store.get_rider(rider_id, for_update=for_update)
    if rider is None:
        raise NotFound(f"Rider {rider_id} not found")
    return rider


class RiderSession:
    def __init__(
        self,
        stores: StoreProvider,
        locks: KeyedLock,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.stores = stores
        self.locks = locks
        self.clock = clock

    async def register(
        self, name: str, rider_id: Optional[int] = None, online: bool = False
    ) -> Rider:
        rider = Rider(
            id=rider_id,
            name=name,
            availability=(
                RiderAvailability.ONLINE if online else RiderAvailability.OFFLINE
            ),
            updated_at=self.clock(),
        )
        async with self.locks.hold_id(rider_key, rider_id):
            async with self.stores.session() as store:
                if rider_id is not None and await store.get_rider(rider_id):
                    raise InvalidStateError(f"Rider {rider_id} already exists")
                rider = await store.add_rider(rider)
        logger.info("Registered rider %s (%s)", rider.id, rider.availability.value)
        return rider

    async def get(self, rider_id: int) -> Rider:
        async with self.stores.session() as store:
            return await load_rider(store, rider_id)

    async def set_availability(self, rider_id: int, online: bool) -> Rider:
        """
        Going online is always allowed.  Going offline leaves an active
        delivery untouched; it only drops the rider from future offers.
        """
        async with self.locks.hold(rider_key(rider_id)):
            async with self.stores.session() as store:
                rider = await load_rider(store, rider_id, for_update=True)
                rider.availability = (
                    RiderAvailability.ONLINE if online else RiderAvailability.OFFLINE
                )
                rider.updated_at = self.clock()
                await store.save_rider(rider)

        if not online and rider.active_order_id is not None:
            logger.info(
                "Rider %s went offline with order %s still in progress",
                rider_id,
                rider.active_order_id,
            )
        else:
            logger.info("Rider %s is now %s", rider_id, rider.availability.value)
        return rider

    async def list_eligible(self) -> set[int]:
        async with self.stores.session() as store:
            return await store.list_eligible_riders()

    # ── Binding (caller holds the rider lock) ─────────────────────────

    def bind(self, rider: Rider, order_id: int) -> None:
        rider.bind(order_id)
        rider.updated_at = self.clock()

    def release(self, rider: Rider, order_id: int) -> None:
        rider.release(order_id)
        rider.updated_at = self.clock()
