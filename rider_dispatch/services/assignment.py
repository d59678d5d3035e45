"""
Assignment Registry
===================

Offers pending orders to candidate riders and resolves each offer exactly
once: accepted by one rider, expired, or dropped by cancellation.

Concurrency safety
------------------
* ``accept`` holds ``order:<id>`` then ``rider:<id>`` for the whole
  read-check-write, and commits before releasing them.  Of N simultaneous
  accepts on one order the first to take the order lock wins; the rest
  find the rider binding already set and fail with ``AlreadyAccepted``.
* Holding the rider lock as well stops one rider from accepting two
  different orders at once.
* Expiry takes the same order lock and re-reads the offer, so it can never
  undo an accept that got there first.

Eligibility policy
------------------
``OfferPolicy.CANDIDATES`` restricts acceptance to the riders an order was
offered to; ``OfferPolicy.OPEN`` lets any eligible online rider accept.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from rider_dispatch.domain.entities import Offer, Order, utcnow
from rider_dispatch.domain.enums import OfferPolicy, OrderStatus
from rider_dispatch.domain.errors import (
    AlreadyAccepted,
    InvalidStateError,
    LockUnavailable,
    OrderNotPending,
    RiderIneligible,
)
from rider_dispatch.infrastructure.locks import KeyedLock, order_key, rider_key
from rider_dispatch.infrastructure.store import StoreProvider

from .rider_session import RiderSession, load_order, load_rider

logger = logging.getLogger(__name__)


class AssignmentRegistry:
    def __init__(
        self,
        stores: StoreProvider,
        locks: KeyedLock,
        riders: RiderSession,
        policy: OfferPolicy = OfferPolicy.CANDIDATES,
        offer_ttl_seconds: int = 90,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.stores = stores
        self.locks = locks
        self.riders = riders
        self.policy = OfferPolicy(policy)
        self.offer_ttl = timedelta(seconds=offer_ttl_seconds)
        self.clock = clock

    @property
    def is_open(self) -> bool:
        return self.policy == OfferPolicy.OPEN

    async def offer_order(
        self, order_id: int, candidate_rider_ids: Optional[Iterable[int]] = None
    ) -> Offer:
        """
        Open an offer for *order_id*.  ``None`` candidates means every rider
        eligible right now.
        """
        async with self.locks.hold(order_key(order_id)):
            async with self.stores.session() as store:
                order = await load_order(store, order_id, for_update=True)
                if order.status != OrderStatus.AWAITING_ASSIGNMENT:
                    raise InvalidStateError(
                        f"Order {order_id} is {order.status.value}, "
                        f"only {OrderStatus.AWAITING_ASSIGNMENT.value} can be offered"
                    )
                if await store.get_offer(order_id) is not None:
                    raise InvalidStateError(
                        f"Order {order_id} already has an open offer"
                    )

                if candidate_rider_ids is None:
                    candidates = frozenset(await store.list_eligible_riders())
                else:
                    candidates = frozenset(candidate_rider_ids)
                    for rider_id in sorted(candidates):
                        await load_rider(store, rider_id)

                now = self.clock()
                offer = Offer(
                    order_id=order_id,
                    candidate_rider_ids=candidates,
                    offered_at=now,
                    expires_at=now + self.offer_ttl,
                )
                await store.save_offer(offer)

        if not candidates and not self.is_open:
            logger.warning("Order %s offered to an empty candidate pool", order_id)
        logger.info(
            "Order %s offered to %d rider(s), expires %s",
            order_id,
            len(candidates),
            offer.expires_at.isoformat(),
        )
        return offer

    async def accept(self, order_id: int, rider_id: int) -> Order:
        async with self.locks.hold_all(order_key(order_id), rider_key(rider_id)):
            async with self.stores.session() as store:
                order = await load_order(store, order_id, for_update=True)

                # a finished order keeps its rider_id, so test this first
                if order.is_terminal:
                    raise OrderNotPending(
                        f"Order {order_id} is already {order.status.value}"
                    )
                if order.rider_id is not None:
                    if order.rider_id == rider_id:
                        # retry of our own successful accept
                        return order
                    raise AlreadyAccepted(
                        f"Order {order_id} was already accepted by another rider"
                    )

                offer = await store.get_offer(order_id)
                now = self.clock()
                if order.status != OrderStatus.AWAITING_ASSIGNMENT or offer is None:
                    raise OrderNotPending(f"Order {order_id} has no open offer")
                if offer.is_expired(now):
                    raise OrderNotPending(f"Offer for order {order_id} has expired")

                rider = await load_rider(store, rider_id, for_update=True)
                if not rider.is_online:
                    raise RiderIneligible(f"Rider {rider_id} is offline")
                if rider.active_order_id is not None:
                    raise RiderIneligible(
                        f"Rider {rider_id} is still delivering order "
                        f"{rider.active_order_id}"
                    )
                if not offer.admits(rider_id, open_policy=self.is_open):
                    raise RiderIneligible(
                        f"Rider {rider_id} is not a candidate for order {order_id}"
                    )

                order.assign(rider_id, now)
                self.riders.bind(rider, order_id)
                await store.save_order(order)
                await store.save_rider(rider)
                await store.delete_offer(order_id)

        logger.info("Rider %s accepted order %s", rider_id, order_id)
        return order

    async def expire_offer(self, order_id: int) -> Order:
        """Withdraw an unaccepted offer; the order returns to the unassigned pool."""
        async with self.locks.hold(order_key(order_id)):
            async with self.stores.session() as store:
                order = await load_order(store, order_id, for_update=True)
                if await store.get_offer(order_id) is None:
                    raise OrderNotPending(f"Order {order_id} has no open offer")
                await store.delete_offer(order_id)

        logger.info("Offer for order %s withdrawn", order_id)
        return order

    async def expire_due_offers(self, now: Optional[datetime] = None) -> list[int]:
        """Withdraw every offer past its deadline.  Returns the order ids."""
        now = now or self.clock()
        async with self.stores.session() as store:
            due = await store.list_expired_offers(now)

        expired: list[int] = []
        for offer in due:
            try:
                async with self.locks.hold(order_key(offer.order_id)):
                    async with self.stores.session() as store:
                        current = await store.get_offer(offer.order_id)
                        if current is None or not current.is_expired(now):
                            continue
                        await store.delete_offer(offer.order_id)
            except LockUnavailable:
                logger.warning(
                    "Order %s busy, expiry deferred to next cycle", offer.order_id
                )
                continue
            expired.append(offer.order_id)
            logger.info("Offer for order %s expired", offer.order_id)
        return expired

    async def pending_offers_for(self, rider_id: int) -> list[tuple[Offer, Order]]:
        """Offers *rider_id* could accept right now, oldest first."""
        async with self.stores.session() as store:
            rider = await load_rider(store, rider_id)
            if not rider.is_eligible:
                return []
            now = self.clock()
            result = []
            for offer in await store.list_offers():
                if offer.is_expired(now) or not offer.admits(
                    rider_id, open_policy=self.is_open
                ):
                    continue
                order = await store.get_order(offer.order_id)
                if order is None or order.status != OrderStatus.AWAITING_ASSIGNMENT:
                    continue
                result.append((offer, order))
            return result

    async def list_open_offers(self) -> list[Offer]:
        async with self.stores.session() as store:
            return await store.list_offers()
