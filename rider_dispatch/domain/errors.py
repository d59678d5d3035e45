"""
Error taxonomy.

Every error the core can report derives from ``DispatchError`` and carries a
stable ``code`` so the presentation layer can branch on it without string
matching.  Nothing here is retried by the core.
"""

from __future__ import annotations


class DispatchError(Exception):
    code = "dispatch_error"


class NotFound(DispatchError):
    """Unknown order or rider id."""

    code = "not_found"


class InvalidStateError(DispatchError):
    """Operation is not valid for the order's current status."""

    code = "invalid_state"


class IllegalTransition(DispatchError):
    """Target status is not reachable from the current one."""

    code = "illegal_transition"


class AlreadyAccepted(DispatchError):
    """Another rider won the acceptance race."""

    code = "already_accepted"


class RiderIneligible(DispatchError):
    """Rider is offline, busy with another delivery, or not a candidate."""

    code = "rider_ineligible"


class NotAssignedRider(DispatchError):
    code = "not_assigned_rider"


class AlreadyTerminal(DispatchError):
    code = "already_terminal"


class OrderNotPending(DispatchError):
    """The order has no open offer to accept or withdraw."""

    code = "order_not_pending"


class LockUnavailable(DispatchError):
    """A per-entity lock could not be obtained before its wait timed out."""

    code = "lock_unavailable"
