"""
Background Offer-Expiry Worker
==============================

Runs every ``EXPIRY_INTERVAL_SECONDS`` (default 5 s).

Concurrency safety
------------------
* A cycle-level lock (``offer_expiry``) lets only one instance sweep at a
  time; an instance that cannot take it skips the cycle.
* Each expiry takes the same per-order lock as ``accept``, so a rider who
  wins the lock first keeps the order.

Algorithm per cycle
-------------------
1. Withdraw every offer whose deadline has passed.
2. If ``REOFFER_ON_EXPIRY`` is set, offer each withdrawn order again to
   the riders eligible at that moment.
"""

from __future__ import annotations

import asyncio
import logging

from rider_dispatch.config import settings
from rider_dispatch.domain.errors import LockUnavailable
from rider_dispatch.services.dispatch import DispatchService

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_expiry_loop(service: DispatchService) -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop(service))
    logger.info(
        "Expiry worker started (interval=%ds)", settings.expiry_interval_seconds
    )


async def stop_expiry_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Expiry worker stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop(service: DispatchService) -> None:
    """Periodic loop: run an expiry cycle then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_expiry_cycle(service)
        except Exception:
            logger.exception("Unhandled error in expiry cycle")
        # Wait for the interval or until stop is signalled
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.expiry_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle


async def run_expiry_cycle(
    service: DispatchService, reoffer: bool | None = None
) -> list[int]:
    """Execute one expiry cycle.  Returns the ids of orders whose offer expired."""
    if reoffer is None:
        reoffer = settings.reoffer_on_expiry

    try:
        async with service.locks.hold("offer_expiry"):
            result = await service.expire_due_offers()
            expired = result.unwrap()
            if reoffer:
                for order_id in expired:
                    offered = await service.offer_order(order_id)
                    if not offered.ok:
                        logger.warning(
                            "Could not re-offer order %s: %s", order_id, offered.error
                        )
    except LockUnavailable:
        logger.debug("Lock held by another worker – skipping cycle")
        return []

    if expired:
        logger.info("Expiry cycle: %d offer(s) withdrawn", len(expired))
    return expired
