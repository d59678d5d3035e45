"""
FastAPI application factory.

* Registers routes for orders, riders and admin.
* Builds the dispatch service and starts / stops the offer-expiry worker
  via lifespan events.
* Maps ``DispatchError`` codes to HTTP status codes.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from rider_dispatch.api.dependencies import (
    build_dispatch_service,
    release_backends,
)
from rider_dispatch.api.middleware import limiter
from rider_dispatch.api.routes import admin, orders, riders
from rider_dispatch.domain.errors import (
    AlreadyAccepted,
    AlreadyTerminal,
    DispatchError,
    IllegalTransition,
    InvalidStateError,
    LockUnavailable,
    NotAssignedRider,
    NotFound,
    OrderNotPending,
    RiderIneligible,
)
from rider_dispatch.workers import expiry as _expiry

logging.basicConfig(level=logging.INFO)

ERROR_STATUS: dict[type[DispatchError], int] = {
    NotFound: 404,
    NotAssignedRider: 403,
    RiderIneligible: 403,
    InvalidStateError: 409,
    IllegalTransition: 409,
    AlreadyAccepted: 409,
    AlreadyTerminal: 409,
    OrderNotPending: 409,
    LockUnavailable: 503,
}


def status_for(exc: DispatchError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 400


async def _dispatch_error_handler(request: Request, exc: DispatchError):
    return JSONResponse(
        status_code=status_for(exc),
        content={"detail": str(exc), "code": exc.code},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the service and start the expiry worker; stop it on shutdown."""
    app.state.dispatch = await build_dispatch_service()
    await _expiry.start_expiry_loop(app.state.dispatch)
    yield
    await _expiry.stop_expiry_loop()
    await release_backends()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Rider Dispatch API",
        description=(
            "Offers food-delivery orders to couriers, resolves concurrent "
            "acceptances to exactly one rider, and tracks each delivery "
            "from pickup to completion."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(DispatchError, _dispatch_error_handler)

    # Routers
    app.include_router(orders.router, prefix="/api/v1")
    app.include_router(riders.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
