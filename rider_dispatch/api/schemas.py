"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from rider_dispatch.domain.entities import Offer
from rider_dispatch.domain.enums import OrderStatus, RiderAvailability


# ── Requests ──────────────────────────────────────────────────────────


class OrderCreateRequest(BaseModel):
    id: Optional[int] = Field(None, ge=1, description="Explicit order id.")
    restaurant_name: str = Field(..., min_length=1, max_length=200)
    pickup_address: str = Field(..., min_length=1, max_length=255)
    customer_name: str = Field(..., min_length=1, max_length=120)
    delivery_address: str = Field(..., min_length=1, max_length=255)
    total_amount: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)


class OfferRequest(BaseModel):
    rider_ids: Optional[list[int]] = Field(
        None,
        description="Candidate riders. Omit to offer to every eligible rider.",
    )


class CancelRequest(BaseModel):
    actor: Optional[str] = Field(None, max_length=64)


class RiderCreateRequest(BaseModel):
    id: Optional[int] = Field(None, ge=1)
    name: str = Field(..., min_length=1, max_length=120)
    online: bool = False


class AvailabilityRequest(BaseModel):
    online: bool


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


# ── Responses ─────────────────────────────────────────────────────────


class StatusChangeResponse(BaseModel):
    status: OrderStatus
    occurred_at: datetime
    actor: Optional[str] = None

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    id: int
    restaurant_name: str
    pickup_address: str
    customer_name: str
    delivery_address: str
    total_amount: Decimal
    status: OrderStatus
    rider_id: Optional[int] = None
    created_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    history: list[StatusChangeResponse] = []

    model_config = {"from_attributes": True}


class OrderViewResponse(BaseModel):
    order_id: int
    status: OrderStatus
    display_label: str
    next_status: Optional[OrderStatus] = None
    action_label: Optional[str] = None
    rider_id: Optional[int] = None
    restaurant_name: str
    pickup_address: str
    customer_name: str
    delivery_address: str
    total_amount: Decimal
    is_terminal: bool

    model_config = {"from_attributes": True}


class OfferResponse(BaseModel):
    order_id: int
    candidate_rider_ids: list[int]
    offered_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_offer(cls, offer: Offer) -> "OfferResponse":
        return cls(
            order_id=offer.order_id,
            candidate_rider_ids=sorted(offer.candidate_rider_ids),
            offered_at=offer.offered_at,
            expires_at=offer.expires_at,
        )


class OfferSummaryResponse(BaseModel):
    order_id: int
    restaurant_name: str
    pickup_address: str
    total_amount: Decimal
    expires_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RiderResponse(BaseModel):
    id: int
    name: str
    availability: RiderAvailability
    active_order_id: Optional[int] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RiderDashboardResponse(BaseModel):
    rider_id: int
    availability: RiderAvailability
    pending_offers: list[OfferSummaryResponse] = []
    active_delivery: Optional[OrderViewResponse] = None

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    code: str
