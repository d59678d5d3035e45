"""
Delivery Tracker
================

Drives an assigned order through AWAITING_PICKUP -> IN_TRANSIT -> DELIVERED
and handles cancellation.  Reaching a terminal status releases the rider so
they become eligible for new offers again.

Every mutation holds the order lock and the lock of the rider whose binding
may change, and commits before releasing them.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from rider_dispatch.domain.entities import Order, utcnow
from rider_dispatch.domain.enums import OrderStatus, allowed_next
from rider_dispatch.domain.errors import (
    AlreadyTerminal,
    IllegalTransition,
    NotAssignedRider,
)
from rider_dispatch.infrastructure.locks import KeyedLock, order_key, rider_key
from rider_dispatch.infrastructure.store import DeliveryStore, StoreProvider

from .rider_session import RiderSession, load_order, load_rider

logger = logging.getLogger(__name__)


class DeliveryTracker:
    def __init__(
        self,
        stores: StoreProvider,
        locks: KeyedLock,
        riders: RiderSession,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.stores = stores
        self.locks = locks
        self.riders = riders
        self.clock = clock

    async def advance(
        self, order_id: int, rider_id: int, target_status: OrderStatus
    ) -> Order:
        try:
            target = OrderStatus(target_status)
        except ValueError:
            raise IllegalTransition(f"Unknown status {target_status!r}") from None

        async with self.locks.hold_all(order_key(order_id), rider_key(rider_id)):
            async with self.stores.session() as store:
                order = await load_order(store, order_id, for_update=True)
                if order.is_terminal:
                    raise AlreadyTerminal(
                        f"Order {order_id} is already {order.status.value}"
                    )
                if order.rider_id != rider_id:
                    raise NotAssignedRider(
                        f"Rider {rider_id} is not assigned to order {order_id}"
                    )
                if target not in allowed_next(order.status):
                    raise IllegalTransition(
                        f"Cannot move order {order_id} from "
                        f"{order.status.value} to {target.value}"
                    )

                order.transition_to(target, self.clock(), f"rider:{rider_id}")
                if order.is_terminal:
                    await self._free_rider(store, order)
                await store.save_order(order)

        logger.info("Order %s is now %s", order_id, order.status.value)
        return order

    async def cancel(self, order_id: int, actor: Optional[str] = None) -> Order:
        """Force any non-terminal order to CANCELLED and free its rider."""
        while True:
            async with self.stores.session() as store:
                seen_rider = (await load_order(store, order_id)).rider_id

            keys = [order_key(order_id)]
            if seen_rider is not None:
                keys.append(rider_key(seen_rider))

            async with self.locks.hold_all(*keys):
                async with self.stores.session() as store:
                    order = await load_order(store, order_id, for_update=True)
                    if order.rider_id == seen_rider:
                        order.transition_to(
                            OrderStatus.CANCELLED, self.clock(), actor
                        )
                        await store.delete_offer(order_id)
                        await self._free_rider(store, order)
                        await store.save_order(order)
                        break
            # accepted between the peek and the lock; retry holding that rider

        logger.info("Order %s cancelled by %s", order_id, actor or "system")
        return order

    async def _free_rider(self, store: DeliveryStore, order: Order) -> None:
        if order.rider_id is None:
            return
        rider = await load_rider(store, order.rider_id, for_update=True)
        self.riders.release(rider, order.id)
        await store.save_rider(rider)
