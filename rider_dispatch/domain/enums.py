"""Domain enumerations, state-transition rules and per-status hints."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


class OrderStatus(str, enum.Enum):
    AWAITING_ASSIGNMENT = "AWAITING_ASSIGNMENT"
    AWAITING_PICKUP = "AWAITING_PICKUP"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class RiderAvailability(str, enum.Enum):
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"


class OfferPolicy(str, enum.Enum):
    """Who may accept an open offer."""

    CANDIDATES = "candidates"  # only riders the order was offered to
    OPEN = "open"  # any eligible online rider


# State machine: maps current status -> set of valid next statuses
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.AWAITING_ASSIGNMENT: frozenset(
        {OrderStatus.AWAITING_PICKUP, OrderStatus.CANCELLED}
    ),
    OrderStatus.AWAITING_PICKUP: frozenset(
        {OrderStatus.IN_TRANSIT, OrderStatus.CANCELLED}
    ),
    OrderStatus.IN_TRANSIT: frozenset(
        {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
    ),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset(
    s for s, nxt in ORDER_TRANSITIONS.items() if not nxt
)


def allowed_next(status: OrderStatus) -> frozenset[OrderStatus]:
    return ORDER_TRANSITIONS.get(OrderStatus(status), frozenset())


def is_terminal(status: OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


# ── Presentation hints ────────────────────────────────────────────────


@dataclass(frozen=True)
class StatusHint:
    """Display text for a status and the rider action offered from it."""

    display: str
    next_status: Optional[OrderStatus] = None
    button_text: Optional[str] = None


STATUS_HINTS: dict[OrderStatus, StatusHint] = {
    OrderStatus.AWAITING_ASSIGNMENT: StatusHint("Awaiting Rider Assignment"),
    OrderStatus.AWAITING_PICKUP: StatusHint(
        "Awaiting Pickup", OrderStatus.IN_TRANSIT, "Mark as: Picked Up"
    ),
    OrderStatus.IN_TRANSIT: StatusHint(
        "In Transit", OrderStatus.DELIVERED, "Mark as: Delivered / Complete"
    ),
    OrderStatus.DELIVERED: StatusHint("Delivered"),
    OrderStatus.CANCELLED: StatusHint("Cancelled"),
}
