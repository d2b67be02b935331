"""
API tests for the order and inventory endpoints.
"""

from decimal import Decimal

import httpx
import pytest
from fastapi.testclient import TestClient

from petshop_order_service.app.api.deps import (
    get_async_session,
    get_notification_dispatcher,
)
from petshop_order_service.app.events.schemas import ORDER_CONFIRMED, STOCK_RESTORE
from petshop_order_service.app.main import create_app


def as_user(user_id: int, role: str = "customer") -> dict:
    return {"X-User-ID": str(user_id), "X-User-Role": role}


@pytest.fixture
def app(db_manager, dispatcher):
    app = create_app()

    async def override_session():
        async with db_manager.async_session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_session
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    return app


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def create_order_with(client, customer_id: int, *lines) -> int:
    response = await client.post("/api/v1/orders", headers=as_user(customer_id))
    assert response.status_code == 201
    order_id = response.json()["id"]
    for product_id, quantity in lines:
        response = await client.post(
            f"/api/v1/orders/{order_id}/items",
            json={"product_id": product_id, "quantity": quantity},
            headers=as_user(customer_id),
        )
        assert response.status_code == 201
    return order_id


class TestOrderLifecycleApi:
    async def test_create_add_confirm_cancel(self, client, catalog, dispatcher, delivered):
        alice = catalog["alice"]
        order_id = await create_order_with(client, alice, (catalog["kibble"], 3))

        response = await client.get(f"/api/v1/orders/{order_id}", headers=as_user(alice))
        body = response.json()
        assert body["status"] == "pending"
        assert Decimal(body["total_amount"]) == Decimal("29.70")
        assert body["items"][0]["product_id"] == catalog["kibble"]
        assert Decimal(body["items"][0]["subtotal"]) == Decimal("29.70")

        response = await client.post(
            f"/api/v1/orders/{order_id}/confirm", headers=as_user(alice)
        )
        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"

        response = await client.post(
            f"/api/v1/orders/{order_id}/cancel",
            json={"reason": "changed_mind"},
            headers=as_user(alice),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        await dispatcher.drain()
        assert len(delivered(ORDER_CONFIRMED)) == 1
        restore = delivered(STOCK_RESTORE)[0]
        assert restore.data["reason"] == "changed_mind"
        assert restore.data["items"] == [{"product_id": catalog["kibble"], "quantity": 3}]

    async def test_confirm_with_insufficient_stock(self, client, catalog):
        alice, bob = catalog["alice"], catalog["bob"]
        first = await create_order_with(client, alice, (catalog["kibble"], 3))
        second = await create_order_with(client, bob, (catalog["kibble"], 3))

        await client.post(f"/api/v1/orders/{first}/confirm", headers=as_user(alice))
        response = await client.post(
            f"/api/v1/orders/{second}/confirm", headers=as_user(bob)
        )

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["type"] == "insufficient_stock"
        assert error["details"] == {
            "product_id": catalog["kibble"],
            "requested": 3,
            "available": 2,
        }

    async def test_confirm_empty_order(self, client, catalog):
        order_id = await create_order_with(client, catalog["alice"])

        response = await client.post(
            f"/api/v1/orders/{order_id}/confirm", headers=as_user(catalog["alice"])
        )

        assert response.status_code == 409
        assert response.json()["error"]["details"]["reason"] == "no items"

    async def test_add_item_with_zero_quantity(self, client, catalog):
        order_id = await create_order_with(client, catalog["alice"])

        response = await client.post(
            f"/api/v1/orders/{order_id}/items",
            json={"product_id": catalog["kibble"], "quantity": 0},
            headers=as_user(catalog["alice"]),
        )

        assert response.status_code == 400
        assert response.json()["error"]["type"] == "value_error"

    async def test_remove_item(self, client, catalog):
        alice = catalog["alice"]
        order_id = await create_order_with(
            client, alice, (catalog["kibble"], 1), (catalog["leash"], 1)
        )
        order = (await client.get(f"/api/v1/orders/{order_id}", headers=as_user(alice))).json()

        response = await client.delete(
            f"/api/v1/orders/{order_id}/items/{order['items'][0]['id']}",
            headers=as_user(alice),
        )

        assert response.status_code == 200
        assert Decimal(response.json()["total_amount"]) == Decimal("15.00")

    async def test_unknown_order(self, client, catalog):
        response = await client.get("/api/v1/orders/9999", headers=as_user(1, "admin"))

        assert response.status_code == 404
        assert response.json()["error"]["type"] == "not_found"

    async def test_status_updates_are_admin_only(self, client, catalog):
        alice = catalog["alice"]
        order_id = await create_order_with(client, alice, (catalog["leash"], 1))
        await client.post(f"/api/v1/orders/{order_id}/confirm", headers=as_user(alice))

        response = await client.put(
            f"/api/v1/orders/{order_id}/status",
            json={"status": "processing"},
            headers=as_user(alice),
        )
        assert response.status_code == 403

        response = await client.put(
            f"/api/v1/orders/{order_id}/status",
            json={"status": "processing"},
            headers=as_user(99, "admin"),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "processing"

    async def test_skipping_a_status_is_a_conflict(self, client, catalog):
        alice = catalog["alice"]
        order_id = await create_order_with(client, alice, (catalog["leash"], 1))
        await client.post(f"/api/v1/orders/{order_id}/confirm", headers=as_user(alice))

        response = await client.put(
            f"/api/v1/orders/{order_id}/status",
            json={"status": "delivered"},
            headers=as_user(99, "admin"),
        )

        assert response.status_code == 409
        assert response.json()["error"]["type"] == "invalid_transition"

    async def test_delete_order(self, client, catalog):
        alice = catalog["alice"]
        order_id = await create_order_with(client, alice, (catalog["leash"], 1))

        response = await client.delete(f"/api/v1/orders/{order_id}", headers=as_user(alice))
        assert response.status_code == 204

        response = await client.get(f"/api/v1/orders/{order_id}", headers=as_user(alice))
        assert response.status_code == 404


class TestOwnershipAndListing:
    async def test_customers_cannot_touch_other_orders(self, client, catalog):
        order_id = await create_order_with(client, catalog["alice"], (catalog["leash"], 1))
        bob = as_user(catalog["bob"])

        assert (await client.get(f"/api/v1/orders/{order_id}", headers=bob)).status_code == 403
        response = await client.post(f"/api/v1/orders/{order_id}/confirm", headers=bob)
        assert response.status_code == 403

    async def test_missing_identity_is_unauthorized(self, client, catalog):
        response = await client.get("/api/v1/orders")
        assert response.status_code == 401

    async def test_customer_cannot_create_for_someone_else(self, client, catalog):
        response = await client.post(
            "/api/v1/orders",
            json={"customer_id": catalog["bob"]},
            headers=as_user(catalog["alice"]),
        )
        assert response.status_code == 403

    async def test_admin_creates_for_customer(self, client, catalog):
        response = await client.post(
            "/api/v1/orders",
            json={"customer_id": catalog["bob"]},
            headers=as_user(999, "admin"),
        )
        assert response.status_code == 201
        assert response.json()["customer_id"] == catalog["bob"]

    async def test_listing_is_scoped_to_the_caller(self, client, catalog):
        await create_order_with(client, catalog["alice"])
        await create_order_with(client, catalog["alice"])
        await create_order_with(client, catalog["bob"])

        response = await client.get("/api/v1/orders", headers=as_user(catalog["alice"]))
        assert response.json()["total"] == 2

        response = await client.get(
            "/api/v1/orders", params={"status": "pending"}, headers=as_user(1, "admin")
        )
        assert response.json()["total"] == 3

    async def test_count_by_status(self, client, catalog):
        await create_order_with(client, catalog["alice"])

        response = await client.get(
            "/api/v1/orders/status/pending/count", headers=as_user(1, "admin")
        )

        assert response.status_code == 200
        assert response.json() == {"status": "pending", "count": 1}

    async def test_count_unknown_status(self, client, catalog):
        response = await client.get(
            "/api/v1/orders/status/misplaced/count", headers=as_user(1, "admin")
        )
        assert response.status_code == 400

    async def test_low_stock_report(self, client, catalog):
        response = await client.get(
            "/api/v1/inventory/low-stock", headers=as_user(1, "admin")
        )

        assert response.status_code == 200
        body = response.json()
        assert body["threshold"] == 10
        assert [p["id"] for p in body["products"]] == [catalog["kibble"]]

        response = await client.get(
            "/api/v1/inventory/low-stock", headers=as_user(catalog["alice"])
        )
        assert response.status_code == 403

    async def test_order_statistics(self, client, catalog):
        order_id = await create_order_with(client, catalog["alice"], (catalog["leash"], 1))
        await create_order_with(client, catalog["bob"])
        await client.post(
            f"/api/v1/orders/{order_id}/confirm", headers=as_user(catalog["alice"])
        )

        response = await client.get(
            "/api/v1/orders/statistics", headers=as_user(1, "admin")
        )

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert body["by_status"]["pending"] == 1
        assert body["by_status"]["confirmed"] == 1
        assert body["by_status"]["delivered"] == 0

    async def test_order_statistics_are_admin_only(self, client, catalog):
        response = await client.get(
            "/api/v1/orders/statistics", headers=as_user(catalog["alice"])
        )
        assert response.status_code == 403

    async def test_listing_by_creation_window(self, client, catalog):
        await create_order_with(client, catalog["alice"])
        admin = as_user(1, "admin")

        response = await client.get(
            "/api/v1/orders",
            params={"created_from": "2000-01-01T00:00:00", "created_to": "2999-01-01T00:00:00"},
            headers=admin,
        )
        assert response.json()["total"] == 1

        response = await client.get(
            "/api/v1/orders", params={"created_from": "2999-01-01T00:00:00"}, headers=admin
        )
        assert response.json()["total"] == 0

        response = await client.get(
            "/api/v1/orders",
            params={"created_from": "2026-05-01T00:00:00", "created_to": "2026-04-01T00:00:00"},
            headers=admin,
        )
        assert response.status_code == 400

    async def test_add_item_returns_the_updated_order(self, client, catalog):
        alice = catalog["alice"]
        order_id = await create_order_with(client, alice)

        response = await client.post(
            f"/api/v1/orders/{order_id}/items",
            json={"product_id": catalog["catnip"], "quantity": 2},
            headers=as_user(alice),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["id"] == order_id
        assert [item["quantity"] for item in body["items"]] == [2]
        assert Decimal(body["total_amount"]) == Decimal("7.00")


class TestHealth:
    def test_health_reports_event_transport(self):
        client = TestClient(create_app())

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"]["events"]["kafka_enabled"] is False
