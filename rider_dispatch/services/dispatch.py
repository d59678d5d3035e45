"""
Dispatch facade
===============

The single entry point the presentation layer talks to.  Composes the rider
session, assignment registry and delivery tracker over one store provider and
one lock backend.  Every public method returns a ``Result``; domain errors
never propagate past this class.

Reads (``get_order_view``, ``get_rider_dashboard``, ``list_open_offers``)
take no locks and may observe a slightly stale snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional

from rider_dispatch.domain.entities import Offer, Order, Rider, utcnow
from rider_dispatch.domain.enums import (
    STATUS_HINTS,
    OfferPolicy,
    OrderStatus,
    RiderAvailability,
)
from rider_dispatch.domain.errors import InvalidStateError
from rider_dispatch.infrastructure.locks import KeyedLock, order_key
from rider_dispatch.infrastructure.store import StoreProvider

from .assignment import AssignmentRegistry
from .delivery import DeliveryTracker
from .results import as_result
from .rider_session import RiderSession, load_order


# ── Views ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class OrderSnapshot:
    order_id: int
    status: OrderStatus
    display_label: str
    next_status: Optional[OrderStatus]
    action_label: Optional[str]
    rider_id: Optional[int]
    restaurant_name: str
    pickup_address: str
    customer_name: str
    delivery_address: str
    total_amount: Decimal
    is_terminal: bool

    @classmethod
    def from_order(cls, order: Order) -> "OrderSnapshot":
        hint = STATUS_HINTS[order.status]
        return cls(
            order_id=order.id,
            status=order.status,
            display_label=hint.display,
            next_status=hint.next_status,
            action_label=hint.button_text,
            rider_id=order.rider_id,
            restaurant_name=order.restaurant_name,
            pickup_address=order.pickup_address,
            customer_name=order.customer_name,
            delivery_address=order.delivery_address,
            total_amount=order.total_amount,
            is_terminal=order.is_terminal,
        )


@dataclass(frozen=True)
class OfferSummary:
    order_id: int
    restaurant_name: str
    pickup_address: str
    total_amount: Decimal
    expires_at: Optional[datetime]


@dataclass(frozen=True)
class RiderDashboard:
    rider_id: int
    availability: RiderAvailability
    pending_offers: list[OfferSummary]
    active_delivery: Optional[OrderSnapshot]


# ── Service ───────────────────────────────────────────────────────────


class DispatchService:
    def __init__(
        self,
        stores: StoreProvider,
        locks: KeyedLock,
        policy: OfferPolicy = OfferPolicy.CANDIDATES,
        offer_ttl_seconds: int = 90,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.stores = stores
        self.locks = locks
        self.clock = clock
        self.riders = RiderSession(stores, locks, clock)
        self.assignments = AssignmentRegistry(
            stores,
            locks,
            self.riders,
            policy=policy,
            offer_ttl_seconds=offer_ttl_seconds,
            clock=clock,
        )
        self.deliveries = DeliveryTracker(stores, locks, self.riders, clock)

    # ── Reads ─────────────────────────────────────────────────────────

    @as_result
    async def get_order(self, order_id: int) -> Order:
        async with self.stores.session() as store:
            return await load_order(store, order_id)

    @as_result
    async def get_order_view(self, order_id: int) -> OrderSnapshot:
        async with self.stores.session() as store:
            return OrderSnapshot.from_order(await load_order(store, order_id))

    @as_result
    async def get_rider(self, rider_id: int) -> Rider:
        return await self.riders.get(rider_id)

    @as_result
    async def get_rider_dashboard(self, rider_id: int) -> RiderDashboard:
        rider = await self.riders.get(rider_id)
        offers = [
            OfferSummary(
                order_id=order.id,
                restaurant_name=order.restaurant_name,
                pickup_address=order.pickup_address,
                total_amount=order.total_amount,
                expires_at=offer.expires_at,
            )
            for offer, order in await self.assignments.pending_offers_for(rider_id)
        ]

        active = None
        if rider.active_order_id is not None:
            async with self.stores.session() as store:
                order = await store.get_order(rider.active_order_id)
            if order is not None:
                active = OrderSnapshot.from_order(order)

        return RiderDashboard(
            rider_id=rider.id,
            availability=rider.availability,
            pending_offers=offers,
            active_delivery=active,
        )

    @as_result
    async def list_open_offers(self) -> list[Offer]:
        return await self.assignments.list_open_offers()

    # ── Rider actions ─────────────────────────────────────────────────

    @as_result
    async def register_rider(
        self, name: str, rider_id: Optional[int] = None, online: bool = False
    ) -> Rider:
        return await self.riders.register(name, rider_id=rider_id, online=online)

    @as_result
    async def toggle_availability(self, rider_id: int, online: bool) -> Rider:
        return await self.riders.set_availability(rider_id, online)

    @as_result
    async def accept_offer(self, rider_id: int, order_id: int) -> Order:
        return await self.assignments.accept(order_id, rider_id)

    @as_result
    async def advance_delivery(
        self, rider_id: int, order_id: int, target_status: OrderStatus
    ) -> Order:
        return await self.deliveries.advance(order_id, rider_id, target_status)

    # ── Order administration ──────────────────────────────────────────

    @as_result
    async def create_order(
        self,
        restaurant_name: str,
        pickup_address: str,
        customer_name: str,
        delivery_address: str,
        total_amount: Decimal,
        order_id: Optional[int] = None,
    ) -> Order:
        order = Order(
            id=order_id,
            restaurant_name=restaurant_name,
            pickup_address=pickup_address,
            customer_name=customer_name,
            delivery_address=delivery_address,
            total_amount=Decimal(total_amount),
            created_at=self.clock(),
        )
        async with self.locks.hold_id(order_key, order_id):
            async with self.stores.session() as store:
                if order_id is not None and await store.get_order(order_id):
                    raise InvalidStateError(f"Order {order_id} already exists")
                return await store.add_order(order)

    @as_result
    async def offer_order(
        self, order_id: int, rider_ids: Optional[Iterable[int]] = None
    ) -> Offer:
        return await self.assignments.offer_order(order_id, rider_ids)

    @as_result
    async def expire_offer(self, order_id: int) -> Order:
        return await self.assignments.expire_offer(order_id)

    @as_result
    async def expire_due_offers(self, now: Optional[datetime] = None) -> list[int]:
        return await self.assignments.expire_due_offers(now)

    @as_result
    async def cancel_order(self, order_id: int, actor: Optional[str] = None) -> Order:
        return await self.deliveries.cancel(order_id, actor)
