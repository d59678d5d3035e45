"""Unit tests for the order status model and entity transitions (State Pattern)."""

from datetime import datetime, timezone

import pytest

from rider_dispatch.domain.entities import Order, Rider
from rider_dispatch.domain.enums import (
    ORDER_TRANSITIONS,
    STATUS_HINTS,
    OrderStatus,
    allowed_next,
    is_terminal,
)
from rider_dispatch.domain.errors import (
    AlreadyTerminal,
    IllegalTransition,
    InvalidStateError,
)

AT = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


class TestStatusModel:
    def test_terminal_statuses(self):
        assert is_terminal(OrderStatus.DELIVERED)
        assert is_terminal(OrderStatus.CANCELLED)
        assert not is_terminal(OrderStatus.AWAITING_ASSIGNMENT)
        assert not is_terminal(OrderStatus.AWAITING_PICKUP)
        assert not is_terminal(OrderStatus.IN_TRANSIT)

    def test_forward_chain(self):
        assert OrderStatus.AWAITING_PICKUP in allowed_next(OrderStatus.AWAITING_ASSIGNMENT)
        assert OrderStatus.IN_TRANSIT in allowed_next(OrderStatus.AWAITING_PICKUP)
        assert OrderStatus.DELIVERED in allowed_next(OrderStatus.IN_TRANSIT)

    def test_cancel_reachable_from_every_non_terminal(self):
        for status in OrderStatus:
            if is_terminal(status):
                assert allowed_next(status) == frozenset()
            else:
                assert OrderStatus.CANCELLED in allowed_next(status)

    def test_no_skipping_or_backward_edges(self):
        order = list(OrderStatus)[:4]  # the forward chain, in order
        for status, targets in ORDER_TRANSITIONS.items():
            for target in targets - {OrderStatus.CANCELLED}:
                assert order.index(target) == order.index(status) + 1

    def test_accepts_plain_strings(self):
        assert allowed_next("IN_TRANSIT") == {
            OrderStatus.DELIVERED,
            OrderStatus.CANCELLED,
        }
        assert is_terminal("DELIVERED")

    def test_hints_cover_every_status(self):
        assert set(STATUS_HINTS) == set(OrderStatus)

    def test_hints_point_along_legal_edges(self):
        for status, hint in STATUS_HINTS.items():
            if hint.next_status is not None:
                assert hint.next_status in allowed_next(status)
                assert hint.button_text

    def test_rider_action_labels(self):
        assert STATUS_HINTS[OrderStatus.AWAITING_PICKUP].button_text == "Mark as: Picked Up"
        assert STATUS_HINTS[OrderStatus.IN_TRANSIT].next_status == OrderStatus.DELIVERED
        assert STATUS_HINTS[OrderStatus.DELIVERED].next_status is None
        assert STATUS_HINTS[OrderStatus.AWAITING_ASSIGNMENT].display == (
            "Awaiting Rider Assignment"
        )


class TestOrderStateMachine:
    def test_initial_status_is_awaiting_assignment(self):
        order = Order()
        assert order.status == OrderStatus.AWAITING_ASSIGNMENT
        assert order.rider_id is None

    # ── Valid transitions ─────────────────────────────────────────

    def test_assign_binds_rider(self):
        order = Order(id=1005)
        order.assign(4001, AT)
        assert order.status == OrderStatus.AWAITING_PICKUP
        assert order.rider_id == 4001
        assert order.assigned_at == AT

    def test_full_delivery_records_history(self):
        order = Order(id=1005)
        order.assign(4001, AT)
        order.transition_to(OrderStatus.IN_TRANSIT, AT, "rider:4001")
        order.transition_to(OrderStatus.DELIVERED, AT, "rider:4001")
        assert [c.status for c in order.history] == [
            OrderStatus.AWAITING_PICKUP,
            OrderStatus.IN_TRANSIT,
            OrderStatus.DELIVERED,
        ]
        assert order.is_terminal

    def test_in_transit_to_cancelled(self):
        order = Order(status=OrderStatus.IN_TRANSIT)
        order.transition_to(OrderStatus.CANCELLED, AT, "admin")
        assert order.status == OrderStatus.CANCELLED
        assert order.history[-1].actor == "admin"

    # ── Invalid transitions ───────────────────────────────────────

    def test_skipping_pickup_fails(self):
        order = Order(status=OrderStatus.AWAITING_PICKUP)
        with pytest.raises(IllegalTransition):
            order.transition_to(OrderStatus.DELIVERED, AT)
        assert order.status == OrderStatus.AWAITING_PICKUP
        assert order.history == []

    def test_backward_transition_fails(self):
        order = Order(status=OrderStatus.IN_TRANSIT)
        with pytest.raises(IllegalTransition):
            order.transition_to(OrderStatus.AWAITING_PICKUP, AT)

    def test_delivered_to_anything_fails(self):
        order = Order(status=OrderStatus.DELIVERED)
        with pytest.raises(AlreadyTerminal):
            order.transition_to(OrderStatus.CANCELLED, AT)

    def test_cancelled_to_anything_fails(self):
        order = Order(status=OrderStatus.CANCELLED)
        with pytest.raises(AlreadyTerminal):
            order.transition_to(OrderStatus.AWAITING_ASSIGNMENT, AT)

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            Order().transition_to("TELEPORTED", AT)

    def test_double_assign_fails(self):
        order = Order(id=1005)
        order.assign(4001, AT)
        with pytest.raises(InvalidStateError):
            order.assign(4002, AT)
        assert order.rider_id == 4001


class TestRiderBinding:
    def test_offline_rider_not_eligible(self):
        assert not Rider(id=4001).is_eligible

    def test_busy_rider_not_eligible(self):
        rider = Rider(id=4001)
        rider.availability = "ONLINE"
        rider.bind(1005)
        assert not rider.is_eligible

    def test_second_binding_rejected(self):
        rider = Rider(id=4001)
        rider.bind(1005)
        with pytest.raises(InvalidStateError):
            rider.bind(1006)

    def test_release_only_clears_matching_order(self):
        rider = Rider(id=4001)
        rider.bind(1005)
        rider.release(1006)
        assert rider.active_order_id == 1005
        rider.release(1005)
        assert rider.active_order_id is None
