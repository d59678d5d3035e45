"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  ``SqlDeliveryStore`` composes them behind the
``DeliveryStore`` port and maps ORM rows to domain entities.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import OfferModel, OrderModel, OrderStatusEventModel, RiderModel
from .store import DeliveryStore
from rider_dispatch.domain.entities import Offer, Order, Rider, StatusChange
from rider_dispatch.domain.enums import OrderStatus, RiderAvailability
from rider_dispatch.domain.errors import InvalidStateError


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything in the domain is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OrderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, order: OrderModel) -> OrderModel:
        self.session.add(order)
        await self.session.flush()
        return order

    async def get_by_id(
        self, order_id: int, for_update: bool = False
    ) -> Optional[OrderModel]:
        return await self.session.get(
            OrderModel, order_id, with_for_update=for_update or None
        )


class RiderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, rider: RiderModel) -> RiderModel:
        self.session.add(rider)
        await self.session.flush()
        return rider

    async def get_by_id(
        self, rider_id: int, for_update: bool = False
    ) -> Optional[RiderModel]:
        return await self.session.get(
            RiderModel, rider_id, with_for_update=for_update or None
        )

    async def get_eligible_ids(self) -> set[int]:
        result = await self.session.execute(
            select(RiderModel.id).where(
                RiderModel.availability == RiderAvailability.ONLINE,
                RiderModel.active_order_id.is_(None),
            )
        )
        return set(result.scalars().all())


class OfferRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_order(self, order_id: int) -> Optional[OfferModel]:
        return await self.session.get(OfferModel, order_id)

    async def upsert(self, offer: OfferModel) -> None:
        await self.session.merge(offer)
        await self.session.flush()

    async def delete(self, order_id: int) -> None:
        row = await self.get_by_order(order_id)
        if row is not None:
            await self.session.delete(row)
            await self.session.flush()

    async def get_all(self) -> list[OfferModel]:
        result = await self.session.execute(
            select(OfferModel).order_by(OfferModel.offered_at, OfferModel.order_id)
        )
        return list(result.scalars().all())

    async def get_expired(self, now: datetime) -> list[OfferModel]:
        result = await self.session.execute(
            select(OfferModel)
            .where(OfferModel.expires_at <= now)
            .order_by(OfferModel.expires_at)
        )
        return list(result.scalars().all())


# ── Port implementation ───────────────────────────────────────────────


class SqlDeliveryStore(DeliveryStore):
    def __init__(self, session: AsyncSession):
        self.session = session
        self.orders = OrderRepository(session)
        self.riders = RiderRepository(session)
        self.offers = OfferRepository(session)

    # orders

    async def get_order(self, order_id, for_update=False):
        row = await self.orders.get_by_id(order_id, for_update=for_update)
        return _order_from_row(row) if row else None

    async def add_order(self, order):
        row = OrderModel(
            id=order.id,
            restaurant_name=order.restaurant_name,
            pickup_address=order.pickup_address,
            customer_name=order.customer_name,
            delivery_address=order.delivery_address,
            total_amount=order.total_amount,
            status=order.status,
            rider_id=order.rider_id,
            created_at=order.created_at,
            assigned_at=order.assigned_at,
            events=[_event_row(order.id, change) for change in order.history],
        )
        try:
            await self.orders.create(row)
        except IntegrityError:
            raise InvalidStateError(f"Order {order.id} already exists") from None
        order.id = row.id
        return order

    async def save_order(self, order):
        row = await self.orders.get_by_id(order.id)
        row.status = order.status
        row.rider_id = order.rider_id
        row.assigned_at = order.assigned_at
        # history is append-only; persist whatever the row has not seen yet
        for change in order.history[len(row.events):]:
            row.events.append(_event_row(order.id, change))
        await self.session.flush()

    # riders

    async def get_rider(self, rider_id, for_update=False):
        row = await self.riders.get_by_id(rider_id, for_update=for_update)
        return _rider_from_row(row) if row else None

    async def add_rider(self, rider):
        row = RiderModel(
            id=rider.id,
            name=rider.name,
            availability=rider.availability,
            active_order_id=rider.active_order_id,
            updated_at=rider.updated_at,
        )
        try:
            await self.riders.create(row)
        except IntegrityError:
            raise InvalidStateError(f"Rider {rider.id} already exists") from None
        rider.id = row.id
        return rider

    async def save_rider(self, rider):
        row = await self.riders.get_by_id(rider.id)
        row.availability = rider.availability
        row.active_order_id = rider.active_order_id
        row.updated_at = rider.updated_at
        await self.session.flush()

    async def list_eligible_riders(self):
        return await self.riders.get_eligible_ids()

    # offers

    async def get_offer(self, order_id):
        row = await self.offers.get_by_order(order_id)
        return _offer_from_row(row) if row else None

    async def save_offer(self, offer):
        await self.offers.upsert(
            OfferModel(
                order_id=offer.order_id,
                candidate_rider_ids=sorted(offer.candidate_rider_ids),
                offered_at=offer.offered_at,
                expires_at=offer.expires_at,
            )
        )

    async def delete_offer(self, order_id):
        await self.offers.delete(order_id)

    async def list_offers(self):
        return [_offer_from_row(r) for r in await self.offers.get_all()]

    async def list_expired_offers(self, now):
        return [_offer_from_row(r) for r in await self.offers.get_expired(now)]


# ── Mapping ───────────────────────────────────────────────────────────


def _event_row(
    order_id: Optional[int], change: StatusChange
) -> OrderStatusEventModel:
    return OrderStatusEventModel(
        order_id=order_id,
        status=change.status,
        actor=change.actor,
        occurred_at=change.occurred_at,
    )


def _order_from_row(row: OrderModel) -> Order:
    return Order(
        id=row.id,
        restaurant_name=row.restaurant_name,
        pickup_address=row.pickup_address,
        customer_name=row.customer_name,
        delivery_address=row.delivery_address,
        total_amount=Decimal(row.total_amount),
        status=OrderStatus(row.status),
        rider_id=row.rider_id,
        created_at=_aware(row.created_at),
        assigned_at=_aware(row.assigned_at),
        history=[
            StatusChange(OrderStatus(e.status), _aware(e.occurred_at), e.actor)
            for e in row.events
        ],
    )


def _rider_from_row(row: RiderModel) -> Rider:
    return Rider(
        id=row.id,
        name=row.name,
        availability=RiderAvailability(row.availability),
        active_order_id=row.active_order_id,
        updated_at=_aware(row.updated_at),
    )


def _offer_from_row(row: OfferModel) -> Offer:
    return Offer(
        order_id=row.order_id,
        candidate_rider_ids=frozenset(row.candidate_rider_ids or ()),
        offered_at=_aware(row.offered_at),
        expires_at=_aware(row.expires_at),
    )
