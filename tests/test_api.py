"""
Integration tests for the REST API endpoints.

The dispatch service dependency is overridden with an in-memory instance
driven by a fake clock, so the routes run without PostgreSQL or Redis.
"""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from rider_dispatch.api.middleware import limiter
from rider_dispatch.services.dispatch import DispatchService


# ── Fixture ───────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(dispatch: DispatchService):
    """AsyncClient whose routes talk to the in-memory ``dispatch`` fixture."""
    from rider_dispatch.api.app import create_app
    from rider_dispatch.api.dependencies import get_dispatch

    limiter.reset()
    app = create_app()
    app.dependency_overrides[get_dispatch] = lambda: dispatch

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _seed(client: AsyncClient) -> None:
    for rider_id in (4001, 4002):
        resp = await client.post(
            "/api/v1/riders",
            json={"id": rider_id, "name": f"Rider {rider_id}", "online": True},
        )
        assert resp.status_code == 201
    resp = await client.post(
        "/api/v1/orders",
        json={
            "id": 1005,
            "restaurant_name": "Pizza Palace",
            "pickup_address": "123 Main St",
            "customer_name": "Demo Customer",
            "delivery_address": "789 Oak Lane, Apt 2B",
            "total_amount": "35.50",
        },
    )
    assert resp.status_code == 201
    resp = await client.post(
        "/api/v1/orders/1005/offer", json={"rider_ids": [4002, 4001]}
    )
    assert resp.status_code == 201


# ── Tests ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_create_order_returns_201(client: AsyncClient):
    resp = await client.post(
        "/api/v1/orders",
        json={
            "restaurant_name": "The Wok Master",
            "pickup_address": "42 Canal Rd",
            "customer_name": "Demo Customer",
            "delivery_address": "5 Hill St",
            "total_amount": "22.75",
        },
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "AWAITING_ASSIGNMENT"
    assert data["id"] is not None
    assert data["rider_id"] is None


@pytest.mark.asyncio
async def test_create_order_rejects_negative_total(client: AsyncClient):
    resp = await client.post(
        "/api/v1/orders",
        json={
            "restaurant_name": "X",
            "pickup_address": "Y",
            "customer_name": "Z",
            "delivery_address": "W",
            "total_amount": "-1",
        },
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_duplicate_order_id_conflicts(client: AsyncClient):
    await _seed(client)
    resp = await client.post(
        "/api/v1/orders",
        json={
            "id": 1005,
            "restaurant_name": "Dup",
            "pickup_address": "Y",
            "customer_name": "Z",
            "delivery_address": "W",
            "total_amount": "1.00",
        },
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "invalid_state"


@pytest.mark.asyncio
async def test_get_order_not_found(client: AsyncClient):
    resp = await client.get("/api/v1/orders/9999")
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_offer_lists_sorted_candidates(client: AsyncClient):
    await _seed(client)
    resp = await client.get("/api/v1/admin/offers")
    assert resp.status_code == 200
    offers = resp.json()
    assert len(offers) == 1
    assert offers[0]["candidate_rider_ids"] == [4001, 4002]


@pytest.mark.asyncio
async def test_dashboard_shows_offer(client: AsyncClient):
    await _seed(client)
    resp = await client.get("/api/v1/riders/4001/dashboard")
    assert resp.status_code == 200
    data = resp.json()
    assert data["availability"] == "ONLINE"
    assert [o["order_id"] for o in data["pending_offers"]] == [1005]
    assert data["pending_offers"][0]["total_amount"] == "35.50"
    assert data["active_delivery"] is None


@pytest.mark.asyncio
async def test_full_delivery_flow(client: AsyncClient):
    await _seed(client)

    resp = await client.post("/api/v1/riders/4001/offers/1005/accept")
    assert resp.status_code == 200
    assert resp.json()["status"] == "AWAITING_PICKUP"
    assert resp.json()["rider_id"] == 4001

    view = (await client.get("/api/v1/orders/1005")).json()
    assert view["display_label"] == "Awaiting Pickup"
    assert view["next_status"] == "IN_TRANSIT"
    assert view["action_label"] == "Mark as: Picked Up"

    resp = await client.post(
        "/api/v1/riders/4001/deliveries/1005/status", json={"status": "IN_TRANSIT"}
    )
    assert resp.status_code == 200
    resp = await client.post(
        "/api/v1/riders/4001/deliveries/1005/status", json={"status": "DELIVERED"}
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "DELIVERED"

    details = (await client.get("/api/v1/orders/1005/details")).json()
    assert [h["status"] for h in details["history"]] == [
        "AWAITING_PICKUP",
        "IN_TRANSIT",
        "DELIVERED",
    ]
    rider = (await client.get("/api/v1/riders/4001")).json()
    assert rider["active_order_id"] is None


@pytest.mark.asyncio
async def test_second_accept_conflicts(client: AsyncClient):
    await _seed(client)
    await client.post("/api/v1/riders/4001/offers/1005/accept")

    resp = await client.post("/api/v1/riders/4002/offers/1005/accept")

    assert resp.status_code == 409
    assert resp.json()["code"] == "already_accepted"


@pytest.mark.asyncio
async def test_concurrent_accepts_over_http(client: AsyncClient):
    await _seed(client)

    r1, r2 = await asyncio.gather(
        client.post("/api/v1/riders/4001/offers/1005/accept"),
        client.post("/api/v1/riders/4002/offers/1005/accept"),
    )

    assert sorted([r1.status_code, r2.status_code]) == [200, 409]


@pytest.mark.asyncio
async def test_offline_rider_forbidden(client: AsyncClient):
    await _seed(client)
    resp = await client.put(
        "/api/v1/riders/4002/availability", json={"online": False}
    )
    assert resp.status_code == 200
    assert resp.json()["availability"] == "OFFLINE"

    resp = await client.post("/api/v1/riders/4002/offers/1005/accept")
    assert resp.status_code == 403
    assert resp.json()["code"] == "rider_ineligible"


@pytest.mark.asyncio
async def test_wrong_rider_cannot_advance(client: AsyncClient):
    await _seed(client)
    await client.post("/api/v1/riders/4001/offers/1005/accept")

    resp = await client.post(
        "/api/v1/riders/4002/deliveries/1005/status", json={"status": "IN_TRANSIT"}
    )

    assert resp.status_code == 403
    assert resp.json()["code"] == "not_assigned_rider"


@pytest.mark.asyncio
async def test_skipping_pickup_conflicts(client: AsyncClient):
    await _seed(client)
    await client.post("/api/v1/riders/4001/offers/1005/accept")

    resp = await client.post(
        "/api/v1/riders/4001/deliveries/1005/status", json={"status": "DELIVERED"}
    )

    assert resp.status_code == 409
    assert resp.json()["code"] == "illegal_transition"


@pytest.mark.asyncio
async def test_unknown_status_is_validation_error(client: AsyncClient):
    await _seed(client)
    resp = await client.post(
        "/api/v1/riders/4001/deliveries/1005/status", json={"status": "LOST"}
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_cancel_order(client: AsyncClient):
    await _seed(client)
    resp = await client.patch("/api/v1/orders/1005/cancel")
    assert resp.status_code == 200
    assert resp.json()["status"] == "CANCELLED"
    assert resp.json()["history"][-1]["actor"] == "admin"

    offers = (await client.get("/api/v1/admin/offers")).json()
    assert offers == []


@pytest.mark.asyncio
async def test_cancel_already_cancelled_order_fails(client: AsyncClient):
    await _seed(client)
    await client.patch("/api/v1/orders/1005/cancel", json={"actor": "support"})
    resp = await client.patch("/api/v1/orders/1005/cancel")
    assert resp.status_code == 409
    assert resp.json()["code"] == "already_terminal"


@pytest.mark.asyncio
async def test_expire_endpoint_sweeps_overdue_offers(client: AsyncClient, clock):
    await _seed(client)

    resp = await client.post("/api/v1/admin/offers/expire")
    assert resp.json() == []

    clock.advance(60)
    resp = await client.post("/api/v1/admin/offers/expire")
    assert resp.status_code == 200
    assert resp.json() == [1005]

    resp = await client.post("/api/v1/riders/4001/offers/1005/accept")
    assert resp.status_code == 409
    assert resp.json()["code"] == "order_not_pending"


@pytest.mark.asyncio
async def test_manual_expire_offer(client: AsyncClient):
    await _seed(client)
    resp = await client.post("/api/v1/orders/1005/expire-offer")
    assert resp.status_code == 200
    assert resp.json()["status"] == "AWAITING_ASSIGNMENT"

    resp = await client.post("/api/v1/orders/1005/expire-offer")
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_offer_without_body_goes_to_eligible_riders(client: AsyncClient):
    await client.post("/api/v1/riders", json={"id": 7, "name": "Seven", "online": True})
    await client.post("/api/v1/riders", json={"id": 8, "name": "Eight"})
    await client.post(
        "/api/v1/orders",
        json={
            "id": 1006,
            "restaurant_name": "Taco Express",
            "pickup_address": "9 Side St",
            "customer_name": "Demo Customer",
            "delivery_address": "1 Elm St",
            "total_amount": "18.00",
        },
    )

    resp = await client.post("/api/v1/orders/1006/offer")

    assert resp.status_code == 201
    assert resp.json()["candidate_rider_ids"] == [7]
