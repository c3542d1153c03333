import uuid
from decimal import Decimal

import httpx
import pytest

from app.api.deps import get_checkout_config, get_notifier, get_payment_gateway
from app.core.security import create_access_token
from app.database import get_db, get_session_factory
from app.main import app
from app.models import UserRole
from tests.factories import order_payload


@pytest.fixture
async def client(session_factory, checkout_config, gateway, notifier):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_checkout_config] = lambda: checkout_config
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()


def _auth(user, role: UserRole) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, role.value)}"}


# ==================== Orders ====================

async def test_place_order_returns_201(client, seed):
    response = await client.post(
        "/api/v1/orders",
        json=order_payload([(seed.widget.id, 5)], discount_code="SAVE10"),
        headers=_auth(seed.customer, UserRole.CUSTOMER),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "PENDING_APPROVAL"
    assert body["payment_status"] == "COMPLETED"
    assert Decimal(body["total_amount"]) == Decimal("113.00")
    assert body["payment_result"]["transaction_id"] == "txn-1"


async def test_place_order_requires_authentication(client, seed):
    response = await client.post("/api/v1/orders", json=order_payload([(seed.widget.id, 5)]))

    assert response.status_code == 401


async def test_invalid_token_is_401(client, seed):
    response = await client.post(
        "/api/v1/orders",
        json=order_payload([(seed.widget.id, 5)]),
        headers={"Authorization": "Bearer not-a-token"},
    )

    assert response.status_code == 401


async def test_business_rule_failure_is_400(client, seed):
    response = await client.post(
        "/api/v1/orders",
        json=order_payload([(seed.gadget.id, 9)]),
        headers=_auth(seed.customer, UserRole.CUSTOMER),
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Insufficient stock for Gadget: 8 available, 9 requested"


async def test_missing_items_is_400(client, seed):
    response = await client.post(
        "/api/v1/orders",
        json={"shipping_address": order_payload([])["shipping_address"], "payment_method": "credit_card"},
        headers=_auth(seed.customer, UserRole.CUSTOMER),
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Order must contain at least one item"


async def test_malformed_body_is_400(client, seed):
    response = await client.post(
        "/api/v1/orders",
        json={"items": [{"product_id": "not-a-uuid", "quantity": 1}]},
        headers=_auth(seed.customer, UserRole.CUSTOMER),
    )

    assert response.status_code == 400
    assert "product_id" in response.json()["detail"]


@pytest.mark.parametrize("quantity", ["5", 5.0, True])
async def test_non_integer_quantity_is_400(client, seed, quantity):
    response = await client.post(
        "/api/v1/orders",
        json={"items": [{"product_id": str(seed.widget.id), "quantity": quantity}]},
        headers=_auth(seed.customer, UserRole.CUSTOMER),
    )

    assert response.status_code == 400
    assert "items.0.quantity" in response.json()["detail"]


async def test_payment_failure_still_returns_201(client, seed, gateway):
    gateway.error = RuntimeError("gateway unreachable")

    response = await client.post(
        "/api/v1/orders",
        json=order_payload([(seed.widget.id, 5)]),
        headers=_auth(seed.customer, UserRole.CUSTOMER),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["payment_status"] == "FAILED"
    assert body["payment_result"]["success"] is False
    assert "follow up" in body["message"]


async def test_unexpected_failure_is_500(client, seed, monkeypatch):
    from app.services.order_service import OrderService

    async def explode(self, *args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(OrderService, "place_order", explode)

    response = await client.post(
        "/api/v1/orders",
        json=order_payload([(seed.widget.id, 5)]),
        headers=_auth(seed.customer, UserRole.CUSTOMER),
    )

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to place order. Please try again later."


async def test_get_my_order(client, seed):
    headers = _auth(seed.customer, UserRole.CUSTOMER)
    placed = await client.post("/api/v1/orders", json=order_payload([(seed.widget.id, 5)]), headers=headers)
    order_id = placed.json()["order_id"]

    response = await client.get(f"/api/v1/orders/me/{order_id}", headers=headers)
    other = await client.get(f"/api/v1/orders/me/{order_id}", headers=_auth(seed.buyer, UserRole.WHOLESALE_BUYER))

    assert response.status_code == 200
    body = response.json()
    assert body["items"][0]["product_name"] == "Widget"
    assert body["status_history"][0]["to_status"] == "PENDING_APPROVAL"
    assert body["payment_transaction_id"] == "txn-1"
    assert other.status_code == 404


async def test_list_my_orders(client, seed):
    headers = _auth(seed.customer, UserRole.CUSTOMER)
    for _ in range(3):
        await client.post("/api/v1/orders", json=order_payload([(seed.widget.id, 5)]), headers=headers)
    await client.post(
        "/api/v1/orders",
        json=order_payload([(seed.widget.id, 5)]),
        headers=_auth(seed.buyer, UserRole.WHOLESALE_BUYER),
    )

    response = await client.get("/api/v1/orders/me", params={"page": 2, "size": 2}, headers=headers)
    pending = await client.get("/api/v1/orders/me", params={"status": "PENDING_APPROVAL"}, headers=headers)
    approved = await client.get("/api/v1/orders/me", params={"status": "APPROVED"}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert (body["total"], body["page"], body["size"], body["pages"]) == (3, 2, 2, 2)
    assert len(body["items"]) == 1
    assert pending.json()["total"] == 3
    assert approved.json() == {"items": [], "total": 0, "page": 1, "size": 10, "pages": 1}


async def test_list_my_orders_rejects_unknown_status(client, seed):
    response = await client.get(
        "/api/v1/orders/me", params={"status": "LOST"}, headers=_auth(seed.customer, UserRole.CUSTOMER)
    )

    assert response.status_code == 400


# ==================== Discounts ====================

async def test_validate_discount_does_not_consume_code(client, seed):
    headers = _auth(seed.customer, UserRole.CUSTOMER)

    response = await client.post(
        "/api/v1/discounts/validate", json={"code": "oneuse", "subtotal": "40.00"}, headers=headers
    )
    again = await client.post(
        "/api/v1/discounts/validate", json={"code": "oneuse", "subtotal": "40.00"}, headers=headers
    )

    assert response.json()["valid"] is True
    assert Decimal(response.json()["discount_amount"]) == Decimal("5.00")
    assert again.json()["valid"] is True


# ==================== Inventory (admin) ====================

async def test_inventory_requires_admin(client, seed):
    response = await client.get(
        f"/api/v1/inventory/{seed.widget.id}", headers=_auth(seed.customer, UserRole.CUSTOMER)
    )

    assert response.status_code == 403


async def test_admin_adjust_and_read_levels(client, seed):
    headers = _auth(seed.admin, UserRole.ADMIN)

    adjusted = await client.post(
        "/api/v1/inventory/adjust",
        json={"product_id": str(seed.gadget.id), "location_id": "toronto-warehouse", "change": 4},
        headers=headers,
    )
    levels = await client.get(f"/api/v1/inventory/{seed.gadget.id}", headers=headers)
    movements = await client.get(f"/api/v1/inventory/{seed.gadget.id}/movements", headers=headers)

    assert adjusted.status_code == 200
    assert adjusted.json()["available_quantity"] == 12
    assert levels.json() == [{
        "product_id": str(seed.gadget.id),
        "location_id": "toronto-warehouse",
        "quantity": 12,
        "reserved_quantity": 0,
        "available_quantity": 12,
        "reorder_point": None,
        "reorder_quantity": None,
    }]
    assert {m["movement_type"] for m in movements.json()} == {"RECEIPT", "ADJUSTMENT_PLUS"}


async def test_admin_adjust_rejected_is_400(client, seed):
    response = await client.post(
        "/api/v1/inventory/adjust",
        json={"product_id": str(seed.gadget.id), "location_id": "toronto-warehouse", "change": -9},
        headers=_auth(seed.admin, UserRole.ADMIN),
    )

    assert response.status_code == 400


async def test_admin_transfer_and_reservations(client, seed):
    headers = _auth(seed.admin, UserRole.ADMIN)

    transfer = await client.post(
        "/api/v1/inventory/transfer",
        json={
            "product_id": str(seed.widget.id),
            "from_location_id": "toronto-warehouse",
            "to_location_id": "main-warehouse",
            "quantity": 20,
        },
        headers=headers,
    )
    hold = {"location_id": "main-warehouse", "items": [{"product_id": str(seed.widget.id), "quantity": 8}]}
    reserved = await client.post("/api/v1/inventory/reserve", json=hold, headers=headers)
    released = await client.post("/api/v1/inventory/release", json=hold, headers=headers)
    over_release = await client.post("/api/v1/inventory/release", json=hold, headers=headers)

    assert transfer.status_code == 201
    assert uuid.UUID(transfer.json()["transfer_id"])
    assert reserved.status_code == 204
    assert released.status_code == 204
    assert over_release.status_code == 400

    levels = await client.get(f"/api/v1/inventory/{seed.widget.id}", headers=headers)
    by_location = {level["location_id"]: level["quantity"] for level in levels.json()}
    assert by_location == {"main-warehouse": 20, "toronto-warehouse": 180, "vancouver-warehouse": 5}


async def test_admin_fulfill_ships_reserved_units(client, seed):
    headers = _auth(seed.admin, UserRole.ADMIN)
    hold = {"location_id": "toronto-warehouse", "items": [{"product_id": str(seed.gadget.id), "quantity": 3}]}

    await client.post("/api/v1/inventory/reserve", json=hold, headers=headers)
    fulfilled = await client.post("/api/v1/inventory/fulfill", json=hold, headers=headers)

    assert fulfilled.status_code == 204
    levels = await client.get(f"/api/v1/inventory/{seed.gadget.id}", headers=headers)
    assert levels.json()[0]["quantity"] == 5
    assert levels.json()[0]["reserved_quantity"] == 0


async def test_admin_location_inventory(client, seed):
    headers = _auth(seed.admin, UserRole.ADMIN)

    response = await client.get("/api/v1/inventory/locations/vancouver-warehouse", headers=headers)
    missing = await client.get("/api/v1/inventory/locations/nowhere", headers=headers)

    assert response.status_code == 200
    assert [(row["product_id"], row["quantity"]) for row in response.json()] == [(str(seed.widget.id), 5)]
    assert missing.status_code == 404


async def test_admin_low_stock_report(client, seed):
    headers = _auth(seed.admin, UserRole.ADMIN)

    updated = await client.put(
        "/api/v1/inventory/reorder-levels",
        json={"product_id": str(seed.gadget.id), "location_id": "toronto-warehouse",
              "reorder_point": 10, "reorder_quantity": 25},
        headers=headers,
    )
    response = await client.get("/api/v1/inventory/low-stock", headers=headers)
    customer = await client.get("/api/v1/inventory/low-stock", headers=_auth(seed.customer, UserRole.CUSTOMER))

    assert updated.status_code == 200
    assert updated.json()["reorder_point"] == 10
    assert response.status_code == 200
    assert response.json() == [{
        "product_id": str(seed.gadget.id),
        "location_id": "toronto-warehouse",
        "quantity": 8,
        "reserved_quantity": 0,
        "available_quantity": 8,
        "reorder_point": 10,
        "reorder_quantity": 25,
        "sku": "GAD-001",
        "product_name": "Gadget",
    }]
    assert customer.status_code == 403


async def test_reorder_levels_without_stock_record_is_400(client, seed):
    response = await client.put(
        "/api/v1/inventory/reorder-levels",
        json={"product_id": str(seed.gadget.id), "location_id": "main-warehouse", "reorder_point": 3},
        headers=_auth(seed.admin, UserRole.ADMIN),
    )

    assert response.status_code == 400


# ==================== Health ====================

async def test_health_reports_database(client, monkeypatch, session_factory):
    import app.main as main_module

    monkeypatch.setattr(main_module, "async_session_factory", session_factory)

    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "connected"
