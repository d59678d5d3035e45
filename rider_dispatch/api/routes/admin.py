"""
Admin / observability endpoints
===============================

GET  /api/v1/admin/offers        -- list all open offers
POST /api/v1/admin/offers/expire -- run one expiry cycle now
GET  /api/v1/admin/health        -- simple health check
"""

from fastapi import APIRouter, Depends, Request

from rider_dispatch.api.dependencies import get_dispatch
from rider_dispatch.api.middleware import RATE_LIMIT, limiter
from rider_dispatch.api.schemas import HealthResponse, OfferResponse
from rider_dispatch.services.dispatch import DispatchService
from rider_dispatch.workers.expiry import run_expiry_cycle

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/offers",
    response_model=list[OfferResponse],
    summary="List all open offers",
)
@limiter.limit(RATE_LIMIT)
async def get_open_offers(
    request: Request,
    dispatch: DispatchService = Depends(get_dispatch),
):
    offers = (await dispatch.list_open_offers()).unwrap()
    return [OfferResponse.from_offer(o) for o in offers]


@router.post(
    "/offers/expire",
    response_model=list[int],
    summary="Withdraw every offer past its deadline",
)
@limiter.limit(RATE_LIMIT)
async def expire_due_offers(
    request: Request,
    dispatch: DispatchService = Depends(get_dispatch),
):
    return await run_expiry_cycle(dispatch)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
