"""
Order endpoints
===============

POST  /api/v1/orders                         -- create an order (AWAITING_ASSIGNMENT)
GET   /api/v1/orders/{order_id}              -- status, display label, next action
GET   /api/v1/orders/{order_id}/details      -- full order with status history
POST  /api/v1/orders/{order_id}/offer        -- offer to candidate riders
POST  /api/v1/orders/{order_id}/expire-offer -- withdraw an unaccepted offer
PATCH /api/v1/orders/{order_id}/cancel       -- cancel from any non-terminal status
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from rider_dispatch.api.dependencies import get_dispatch
from rider_dispatch.api.middleware import RATE_LIMIT, limiter
from rider_dispatch.api.schemas import (
    CancelRequest,
    ErrorResponse,
    OfferRequest,
    OfferResponse,
    OrderCreateRequest,
    OrderResponse,
    OrderViewResponse,
)
from rider_dispatch.services.dispatch import DispatchService

router = APIRouter(prefix="/orders", tags=["orders"])

_errors = {
    404: {"model": ErrorResponse, "description": "Order not found"},
    409: {"model": ErrorResponse, "description": "Not valid in current status"},
}


@router.post(
    "",
    status_code=201,
    response_model=OrderResponse,
    summary="Create an order awaiting assignment",
    responses={409: _errors[409]},
)
@limiter.limit(RATE_LIMIT)
async def create_order(
    request: Request,
    body: OrderCreateRequest,
    dispatch: DispatchService = Depends(get_dispatch),
):
    result = await dispatch.create_order(
        restaurant_name=body.restaurant_name,
        pickup_address=body.pickup_address,
        customer_name=body.customer_name,
        delivery_address=body.delivery_address,
        total_amount=body.total_amount,
        order_id=body.id,
    )
    return result.unwrap()


@router.get(
    "/{order_id}",
    response_model=OrderViewResponse,
    summary="Get order status and the rider action available",
    responses={404: _errors[404]},
)
@limiter.limit(RATE_LIMIT)
async def get_order_view(
    request: Request,
    order_id: int,
    dispatch: DispatchService = Depends(get_dispatch),
):
    return (await dispatch.get_order_view(order_id)).unwrap()


@router.get(
    "/{order_id}/details",
    response_model=OrderResponse,
    summary="Get the full order including its status history",
    responses={404: _errors[404]},
)
@limiter.limit(RATE_LIMIT)
async def get_order_details(
    request: Request,
    order_id: int,
    dispatch: DispatchService = Depends(get_dispatch),
):
    return (await dispatch.get_order(order_id)).unwrap()


@router.post(
    "/{order_id}/offer",
    status_code=201,
    response_model=OfferResponse,
    summary="Offer an order to riders",
    description=(
        "Opens an offer for an order in AWAITING_ASSIGNMENT.  Without "
        "``rider_ids`` the offer goes to every rider currently online with "
        "no active delivery."
    ),
    responses=_errors,
)
@limiter.limit(RATE_LIMIT)
async def offer_order(
    request: Request,
    order_id: int,
    body: Optional[OfferRequest] = None,
    dispatch: DispatchService = Depends(get_dispatch),
):
    rider_ids = body.rider_ids if body else None
    offer = (await dispatch.offer_order(order_id, rider_ids)).unwrap()
    return OfferResponse.from_offer(offer)


@router.post(
    "/{order_id}/expire-offer",
    response_model=OrderResponse,
    summary="Withdraw an unaccepted offer",
    responses=_errors,
)
@limiter.limit(RATE_LIMIT)
async def expire_offer(
    request: Request,
    order_id: int,
    dispatch: DispatchService = Depends(get_dispatch),
):
    return (await dispatch.expire_offer(order_id)).unwrap()


@router.patch(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    summary="Cancel an order",
    description=(
        "Transitions any non-terminal order to CANCELLED, withdraws its offer "
        "and frees the assigned rider."
    ),
    responses=_errors,
)
@limiter.limit(RATE_LIMIT)
async def cancel_order(
    request: Request,
    order_id: int,
    body: Optional[CancelRequest] = None,
    dispatch: DispatchService = Depends(get_dispatch),
):
    actor = body.actor if body and body.actor else "admin"
    return (await dispatch.cancel_order(order_id, actor)).unwrap()
