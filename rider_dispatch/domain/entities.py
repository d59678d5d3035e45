"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Order``: enforces valid lifecycle transitions
  (AWAITING_ASSIGNMENT -> AWAITING_PICKUP -> IN_TRANSIT -> DELIVERED,
  CANCELLED from any non-terminal state) and records each one.
- ``Rider`` owns the at-most-one active delivery invariant.
- ``Offer`` is the ephemeral relation between a pending order and its
  candidate riders.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from .enums import OrderStatus, RiderAvailability, allowed_next, is_terminal
from .errors import AlreadyTerminal, IllegalTransition, InvalidStateError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class StatusChange:
    status: OrderStatus
    occurred_at: datetime
    actor: Optional[str] = None


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Order:
    id: Optional[int] = None
    restaurant_name: str = ""
    pickup_address: str = ""
    customer_name: str = ""
    delivery_address: str = ""
    total_amount: Decimal = Decimal("0.00")
    status: OrderStatus = OrderStatus.AWAITING_ASSIGNMENT
    rider_id: Optional[int] = None
    created_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    history: list[StatusChange] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def transition_to(
        self, new_status: OrderStatus, at: datetime, actor: Optional[str] = None
    ) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        new_status = OrderStatus(new_status)
        if self.is_terminal:
            raise AlreadyTerminal(
                f"Order {self.id} is already {self.status.value}"
            )
        if new_status not in allowed_next(self.status):
            raise IllegalTransition(
                f"Cannot transition order {self.id} from "
                f"{self.status.value} to {new_status.value}"
            )
        self.status = new_status
        self.history.append(StatusChange(self.status, at, actor))

    def assign(self, rider_id: int, at: datetime) -> None:
        """Bind *rider_id* and move to AWAITING_PICKUP."""
        if self.rider_id is not None:
            raise InvalidStateError(
                f"Order {self.id} is already assigned to rider {self.rider_id}"
            )
        self.transition_to(OrderStatus.AWAITING_PICKUP, at, f"rider:{rider_id}")
        self.rider_id = rider_id
        self.assigned_at = at


@dataclass
class Rider:
    id: Optional[int] = None
    name: str = ""
    availability: RiderAvailability = RiderAvailability.OFFLINE
    active_order_id: Optional[int] = None
    updated_at: Optional[datetime] = None

    @property
    def is_online(self) -> bool:
        return self.availability == RiderAvailability.ONLINE

    @property
    def is_eligible(self) -> bool:
        """Online and not already carrying a delivery."""
        return self.is_online and self.active_order_id is None

    def bind(self, order_id: int) -> None:
        if self.active_order_id is not None:
            raise InvalidStateError(
                f"Rider {self.id} already has active order {self.active_order_id}"
            )
        self.active_order_id = order_id

    def release(self, order_id: int) -> None:
        if self.active_order_id == order_id:
            self.active_order_id = None


@dataclass
class Offer:
    order_id: int
    candidate_rider_ids: frozenset[int] = frozenset()
    offered_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def admits(self, rider_id: int, open_policy: bool = False) -> bool:
        return open_policy or rider_id in self.candidate_rider_ids
