"""
Order API Integration Tests.

Exercises the HTTP surface end to end: booking, public tracking, the driver
flow, admin operations, role guards and the error envelope.
"""

import json
import pytest
from delivery_backend.tests.factories import order_payload


@pytest.fixture
async def registered_driver(client, admin_headers):
    response = await client.post("/v1/admin/drivers", headers=admin_headers, json={
        "id": "drv_1",
        "name": "Peter Kamau",
        "phone": "+254711000111",
        "vehicle_info": "Motorbike KMDA 123B",
        "rating": 4.8
    })
    assert response.status_code == 201
    return response.json()


@pytest.fixture
async def booked_order(client, client_headers):
    response = await client.post("/v1/orders", headers=client_headers, json=order_payload())
    assert response.status_code == 201
    return response.json()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["redis"] == "up"


@pytest.mark.asyncio
async def test_quote_is_public(client):
    response = await client.post("/v1/pricing/quote", json={
        "distance_km": 5, "is_after_hours": False, "is_weekend": False
    })

    assert response.status_code == 200
    data = response.json()
    assert data["currency"] == "KSh"
    assert data["breakdown"]["subtotal"] == 135
    assert data["breakdown"]["total"] == 150
    assert "Minimum charge applied" in data["summary"]


@pytest.mark.asyncio
async def test_quote_with_surcharges(client):
    response = await client.post("/v1/pricing/quote", json={
        "distance_km": 12, "is_fragile": True, "has_insurance": True,
        "is_after_hours": False, "is_weekend": False
    })

    breakdown = response.json()["breakdown"]
    assert breakdown["total"] == 296
    assert breakdown["company_commission"] == 44
    assert breakdown["driver_earnings"] == 252


@pytest.mark.asyncio
async def test_quote_rejects_zero_distance(client):
    response = await client.post("/v1/pricing/quote", json={"distance_km": 0})

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
@pytest.mark.parametrize("raw_distance", ["Infinity", "NaN", "1e30"])
async def test_quote_rejects_unbounded_distance(client, raw_distance):
    response = await client.post(
        "/v1/pricing/quote",
        content=f'{{"distance_km": {raw_distance}}}',
        headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_tracking_by_code_without_token(client, booked_order):
    response = await client.get(f"/v1/tracking/{booked_order['tracking_code']}")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "pending"
    assert len(data["timeline"]) == 5
    assert data["timeline"][0]["completed"] is True
    assert data["timeline"][1]["display_time"].startswith("Est. ")
    assert "recipient_phone" not in data


@pytest.mark.asyncio
async def test_tracking_unknown_code(client):
    response = await client.get("/v1/tracking/PKGDOESNOT1")

    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


# ---------------------------------------------------------------------------
# Client flow
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_order_response(booked_order):
    assert booked_order["order_id"].startswith("ord_")
    assert booked_order["tracking_code"].startswith("PKG")
    assert booked_order["status"] == "pending"
    assert booked_order["price"] == booked_order["price_breakdown"]["total"]
    assert booked_order["price_breakdown"]["subtotal"] == 212


@pytest.mark.asyncio
async def test_create_order_rejects_bad_phone(client, client_headers):
    response = await client.post("/v1/orders", headers=client_headers, json=order_payload(recipient_phone="0712345678"))

    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == "ERR_VALIDATION_001"
    assert body["details"]["field"] == "recipient_phone"


@pytest.mark.asyncio
async def test_create_order_requires_distance(client, client_headers):
    payload = order_payload()
    del payload["estimated_distance_km"]

    response = await client.post("/v1/orders", headers=client_headers, json=payload)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_order_rejects_infinite_distance(client, client_headers):
    body = json.dumps(order_payload(estimated_distance_km=float("inf")))

    response = await client.post(
        "/v1/orders", headers={**client_headers, "Content-Type": "application/json"}, content=body
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_client_sees_only_own_orders(client, client_headers, other_client_headers, booked_order):
    mine = await client.get("/v1/orders", headers=client_headers)
    theirs = await client.get("/v1/orders", headers=other_client_headers)

    assert mine.json()["total"] == 1
    assert theirs.json()["total"] == 0

    response = await client.get(f"/v1/orders/{booked_order['order_id']}", headers=other_client_headers)
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_001"


@pytest.mark.asyncio
async def test_client_cancels_order(client, client_headers, booked_order):
    response = await client.post(
        f"/v1/orders/{booked_order['order_id']}/cancel",
        headers=client_headers,
        json={"reason": "Booked by mistake"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled"
    assert data["timeline"][-1]["status"] == "cancelled"
    assert data["timeline"][-1]["description"] == "Booked by mistake"

    again = await client.post(
        f"/v1/orders/{booked_order['order_id']}/cancel",
        headers=client_headers,
        json={"reason": "Twice"}
    )
    assert again.status_code == 409
    assert again.json()["error_code"] == "ERR_STATE_001"


@pytest.mark.asyncio
async def test_client_payment_confirmation(client, client_headers, booked_order):
    url = f"/v1/orders/{booked_order['order_id']}/payment"

    paid = await client.post(url, headers=client_headers, json={"status": "paid", "reference": "QHX81KL2"})
    assert paid.status_code == 200
    assert paid.json()["payment_status"] == "paid"

    refund = await client.post(url, headers=client_headers, json={"status": "refunded"})
    assert refund.status_code == 422


# ---------------------------------------------------------------------------
# Driver flow
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_end_to_end_delivery(client, client_headers, driver_headers, registered_driver, booked_order):
    order_id = booked_order["order_id"]

    available = await client.get("/v1/driver/orders/available", headers=driver_headers)
    assert [o["id"] for o in available.json()["orders"]] == [order_id]

    accepted = await client.post(f"/v1/driver/orders/{order_id}/accept", headers=driver_headers)
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "assigned"
    assert accepted.json()["driver"]["name"] == "Peter Kamau"

    for target in ("picked_up", "in_transit", "delivered"):
        response = await client.patch(
            f"/v1/driver/orders/{order_id}/status",
            headers=driver_headers,
            json={"target_status": target, "lat": -1.29, "lon": 36.82}
        )
        assert response.status_code == 200, response.json()
        assert response.json()["status"] == target

    rated = await client.post(f"/v1/orders/{order_id}/feedback", headers=client_headers, json={"rating": 5, "feedback": "Quick"})
    assert rated.status_code == 200
    assert rated.json()["customer_rating"] == 5

    driver_rated = await client.post(f"/v1/driver/orders/{order_id}/feedback", headers=driver_headers, json={"rating": 4})
    assert driver_rated.status_code == 200
    assert driver_rated.json()["driver_rating"] == 4

    detail = await client.get(f"/v1/orders/{order_id}", headers=client_headers)
    timeline = detail.json()["timeline"]
    assert all(entry["completed"] and not entry["is_estimate"] for entry in timeline)
    assert detail.json()["version"] == 7

    history = await client.get(f"/v1/orders/{order_id}/history", headers=client_headers)
    events = history.json()["events"]
    assert [e["status"] for e in events][:5] == ["pending", "assigned", "picked_up", "in_transit", "delivered"]
    assert len(events) == 7

    mine = await client.get("/v1/driver/orders", headers=driver_headers)
    assert mine.json()["total"] == 1


@pytest.mark.asyncio
async def test_driver_earnings(client, client_headers, driver_headers, registered_driver, booked_order):
    order_id = booked_order["order_id"]

    before = await client.get("/v1/driver/earnings", headers=driver_headers)
    assert before.status_code == 200
    assert before.json()["earnings"] == 0
    assert before.json()["rating"] == 4.8

    await client.post(f"/v1/driver/orders/{order_id}/accept", headers=driver_headers)
    for target in ("picked_up", "in_transit", "delivered"):
        await client.patch(f"/v1/driver/orders/{order_id}/status", headers=driver_headers, json={"target_status": target})
    await client.post(f"/v1/orders/{order_id}/feedback", headers=client_headers, json={"rating": 4})

    response = await client.get("/v1/driver/earnings", headers=driver_headers)
    stats = response.json()
    assert stats["driver_id"] == "drv_1"
    assert stats["total_deliveries"] == 1
    assert stats["completed_orders"] == 1
    assert stats["earnings"] == booked_order["price_breakdown"]["driver_earnings"]
    assert stats["total_revenue"] == booked_order["price"]
    assert stats["rating"] == 4.0
    assert stats["rating_count"] == 1


@pytest.mark.asyncio
async def test_earnings_need_a_driver_profile(client, other_driver_headers, client_headers):
    missing = await client.get("/v1/driver/earnings", headers=other_driver_headers)
    assert missing.status_code == 404

    forbidden = await client.get("/v1/driver/earnings", headers=client_headers)
    assert forbidden.status_code == 403



@pytest.mark.asyncio
async def test_driver_cannot_skip_stages(client, driver_headers, registered_driver, booked_order):
    order_id = booked_order["order_id"]
    await client.post(f"/v1/driver/orders/{order_id}/accept", headers=driver_headers)

    response = await client.patch(
        f"/v1/driver/orders/{order_id}/status", headers=driver_headers, json={"target_status": "delivered"}
    )

    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_STATE_001"


@pytest.mark.asyncio
async def test_unregistered_driver_cannot_accept(client, other_driver_headers, booked_order):
    response = await client.post(f"/v1/driver/orders/{booked_order['order_id']}/accept", headers=other_driver_headers)

    assert response.status_code == 404
    assert response.json()["details"]["resource"] == "Driver"


@pytest.mark.asyncio
async def test_other_driver_cannot_update(client, driver_headers, other_driver_headers, registered_driver, booked_order):
    order_id = booked_order["order_id"]
    await client.post(f"/v1/driver/orders/{order_id}/accept", headers=driver_headers)

    response = await client.patch(
        f"/v1/driver/orders/{order_id}/status", headers=other_driver_headers, json={"target_status": "picked_up"}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_stale_expected_version(client, driver_headers, registered_driver, booked_order):
    order_id = booked_order["order_id"]
    await client.post(f"/v1/driver/orders/{order_id}/accept", headers=driver_headers)

    response = await client.patch(
        f"/v1/driver/orders/{order_id}/status",
        headers=driver_headers,
        json={"target_status": "picked_up", "expected_version": 1}
    )

    assert response.status_code == 409
    body = response.json()
    assert body["error_code"] == "ERR_CONFLICT_001"
    assert body["details"]["actual_version"] == 2


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_admin_assign_and_filter(client, admin_headers, registered_driver, booked_order):
    order_id = booked_order["order_id"]

    assigned = await client.patch(
        f"/v1/admin/orders/{order_id}/assign-driver",
        headers=admin_headers,
        json={"driver_id": "drv_1", "expected_version": 1}
    )
    assert assigned.status_code == 200

    listing = await client.get("/v1/admin/orders", headers=admin_headers, params={"status": "assigned"})
    assert listing.json()["total"] == 1
    assert listing.json()["orders"][0]["driver_id"] == "drv_1"

    none_pending = await client.get("/v1/admin/orders", headers=admin_headers, params={"status": "pending"})
    assert none_pending.json()["total"] == 0


@pytest.mark.asyncio
async def test_admin_assign_unknown_driver(client, admin_headers, booked_order):
    response = await client.patch(
        f"/v1/admin/orders/{booked_order['order_id']}/assign-driver",
        headers=admin_headers,
        json={"driver_id": "drv_ghost"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_refund(client, admin_headers, client_headers, booked_order):
    order_id = booked_order["order_id"]
    await client.post(f"/v1/orders/{order_id}/payment", headers=client_headers, json={"status": "paid"})

    refunded = await client.patch(
        f"/v1/admin/orders/{order_id}/payment", headers=admin_headers, json={"status": "refunded"}
    )
    assert refunded.status_code == 200
    assert refunded.json()["payment_status"] == "refunded"


@pytest.mark.asyncio
async def test_admin_lists_drivers(client, admin_headers, registered_driver):
    response = await client.get("/v1/admin/drivers", headers=admin_headers)

    assert response.status_code == 200
    assert [d["id"] for d in response.json()["drivers"]] == ["drv_1"]


# ---------------------------------------------------------------------------
# Auth & guards
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_missing_token(client):
    response = await client.get("/v1/orders")

    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_AUTH_001"


@pytest.mark.asyncio
async def test_garbage_token(client):
    response = await client.get("/v1/orders", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/v1/admin/orders", "/v1/driver/orders/available"])
async def test_client_role_is_rejected(client, client_headers, path):
    response = await client.get(path, headers=client_headers)

    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_001"


@pytest.mark.asyncio
async def test_driver_cannot_book(client, driver_headers):
    response = await client.post("/v1/orders", headers=driver_headers, json=order_payload())
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_me_and_logout(client, client_headers):
    me = await client.get("/v1/auth/me", headers=client_headers)
    assert me.status_code == 200
    assert me.json()["user_id"] == "cust_1"
    assert me.json()["role"] == "CLIENT"

    logout = await client.post("/v1/auth/logout", headers=client_headers)
    assert logout.status_code == 200
    assert logout.json()["revoked"] is True

    after = await client.get("/v1/auth/me", headers=client_headers)
    assert after.status_code == 401
    assert after.json()["error_code"] == "ERR_AUTH_002"


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "req-123"})
    assert response.headers["X-Correlation-ID"] == "req-123"
