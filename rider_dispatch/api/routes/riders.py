"""
Rider endpoints
===============

POST /api/v1/riders                                         -- register a rider
GET  /api/v1/riders/{rider_id}                              -- rider record
GET  /api/v1/riders/{rider_id}/dashboard                    -- offers + active delivery
PUT  /api/v1/riders/{rider_id}/availability                 -- go online / offline
POST /api/v1/riders/{rider_id}/offers/{order_id}/accept     -- accept an offered order
POST /api/v1/riders/{rider_id}/deliveries/{order_id}/status -- advance the active delivery
"""

from fastapi import APIRouter, Depends, Request

from rider_dispatch.api.dependencies import get_dispatch
from rider_dispatch.api.middleware import RATE_LIMIT, limiter
from rider_dispatch.api.schemas import (
    AvailabilityRequest,
    ErrorResponse,
    OrderResponse,
    RiderCreateRequest,
    RiderDashboardResponse,
    RiderResponse,
    StatusUpdateRequest,
)
from rider_dispatch.services.dispatch import DispatchService

router = APIRouter(prefix="/riders", tags=["riders"])


@router.post(
    "",
    status_code=201,
    response_model=RiderResponse,
    summary="Register a rider",
    responses={409: {"model": ErrorResponse}},
)
@limiter.limit(RATE_LIMIT)
async def register_rider(
    request: Request,
    body: RiderCreateRequest,
    dispatch: DispatchService = Depends(get_dispatch),
):
    result = await dispatch.register_rider(
        body.name, rider_id=body.id, online=body.online
    )
    return result.unwrap()


@router.get(
    "/{rider_id}",
    response_model=RiderResponse,
    summary="Get a rider",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(RATE_LIMIT)
async def get_rider(
    request: Request,
    rider_id: int,
    dispatch: DispatchService = Depends(get_dispatch),
):
    return (await dispatch.get_rider(rider_id)).unwrap()


@router.get(
    "/{rider_id}/dashboard",
    response_model=RiderDashboardResponse,
    summary="Rider dashboard",
    description=(
        "Availability, the offers the rider may accept right now (empty "
        "while offline or busy) and the active delivery, if any."
    ),
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(RATE_LIMIT)
async def get_dashboard(
    request: Request,
    rider_id: int,
    dispatch: DispatchService = Depends(get_dispatch),
):
    return (await dispatch.get_rider_dashboard(rider_id)).unwrap()


@router.put(
    "/{rider_id}/availability",
    response_model=RiderResponse,
    summary="Go online or offline",
    description=(
        "Going offline never interrupts an active delivery; it only removes "
        "the rider from future offers."
    ),
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(RATE_LIMIT)
async def toggle_availability(
    request: Request,
    rider_id: int,
    body: AvailabilityRequest,
    dispatch: DispatchService = Depends(get_dispatch),
):
    return (await dispatch.toggle_availability(rider_id, body.online)).unwrap()


@router.post(
    "/{rider_id}/offers/{order_id}/accept",
    response_model=OrderResponse,
    summary="Accept an offered order",
    description=(
        "Exactly one of several concurrent accepts on the same order "
        "succeeds; the others get 409 ``already_accepted``."
    ),
    responses={
        403: {"model": ErrorResponse, "description": "Rider ineligible"},
        404: {"model": ErrorResponse},
        409: {
            "model": ErrorResponse,
            "description": "Already accepted or not pending",
        },
    },
)
@limiter.limit(RATE_LIMIT)
async def accept_offer(
    request: Request,
    rider_id: int,
    order_id: int,
    dispatch: DispatchService = Depends(get_dispatch),
):
    return (await dispatch.accept_offer(rider_id, order_id)).unwrap()


@router.post(
    "/{rider_id}/deliveries/{order_id}/status",
    response_model=OrderResponse,
    summary="Advance the active delivery",
    responses={
        403: {"model": ErrorResponse, "description": "Not the assigned rider"},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Illegal or terminal"},
    },
)
@limiter.limit(RATE_LIMIT)
async def advance_delivery(
    request: Request,
    rider_id: int,
    order_id: int,
    body: StatusUpdateRequest,
    dispatch: DispatchService = Depends(get_dispatch),
):
    result = await dispatch.advance_delivery(rider_id, order_id, body.status)
    return result.unwrap()
