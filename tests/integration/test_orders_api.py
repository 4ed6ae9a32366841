"""Integration tests for checkout, seller order management and payments."""

from decimal import Decimal

import pytest
from services.marketplace_service.app.main import app
from tests.conftest import (
    make_customer_user,
    make_service_user,
    override_auth,
    seed_product,
)
from tests.factories import delivery_details, in_one_hour, pickup_details


async def _checkout(client, product_ids, **overrides):
    payload = {
        "order_type": "delivery",
        "selected_product_ids": [str(pid) for pid in product_ids],
        "delivery_details": delivery_details(),
    }
    payload.update(overrides)
    return await client.post("/orders/from-cart", json=payload)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_accept_and_deliver(client, customer, seller, store, db_session):
    product = await seed_product(
        db_session, store, base_price=Decimal("75"), shipping_fee=Decimal("20"), stock=4
    )

    with override_auth(app, customer):
        await client.post(
            "/cart/items", json={"product_id": str(product.id), "quantity": 2}
        )
        response = await _checkout(client, [product.id])

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "1 order(s) placed successfully"
        [order] = body["data"]["orders"]
        assert order["status"] == "pending"
        assert Decimal(order["total_amount"]) == Decimal("170")
        assert order["delivery_details"]["room_number"] == "204"

        cart = (await client.get("/cart")).json()["data"]
        assert cart["items"] == []

    with override_auth(app, seller):
        listing = (await client.get("/seller/orders", params={"status": "pending"})).json()
        assert listing["data"]["total"] == 1

        response = await client.post(
            f"/seller/orders/{order['id']}/accept",
            json={"estimated_preparation_time": 20},
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "accepted"

        for status in ("preparing", "ready", "out_for_delivery", "delivered"):
            response = await client.patch(
                f"/seller/orders/{order['id']}/status", json={"status": status}
            )
            assert response.status_code == 200, response.json()

    final = response.json()["data"]
    assert final["status"] == "delivered"
    assert final["payment_status"] == "paid"
    assert [h["status"] for h in final["status_history"]] == [
        "pending",
        "accepted",
        "preparing",
        "ready",
        "out_for_delivery",
        "delivered",
    ]

    response = await client.get(f"/products/{product.id}")
    assert response.json()["data"]["stock"] == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_invalid_transition_returns_conflict(client, customer, seller, store, db_session):
    product = await seed_product(db_session, store)

    with override_auth(app, customer):
        await client.post("/cart/items", json={"product_id": str(product.id)})
        order = (await _checkout(client, [product.id])).json()["data"]["orders"][0]

    with override_auth(app, seller):
        response = await client.patch(
            f"/seller/orders/{order['id']}/status", json={"status": "delivered"}
        )

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["category"] == "conflict"
    assert error["reason"] == "invalid_transition"
    assert error["current"] == "pending"
    assert error["requested"] == "delivered"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_accept_without_stock_returns_conflict(client, seller, store, db_session):
    product = await seed_product(db_session, store, stock=2)
    orders = []
    for _ in range(2):
        with override_auth(app, make_customer_user()):
            await client.post(
                "/cart/items", json={"product_id": str(product.id), "quantity": 2}
            )
            orders.append(
                (await _checkout(client, [product.id])).json()["data"]["orders"][0]
            )

    with override_auth(app, seller):
        first = await client.post(
            f"/seller/orders/{orders[0]['id']}/accept",
            json={"estimated_preparation_time": 10},
        )
        second = await client.post(
            f"/seller/orders/{orders[1]['id']}/accept",
            json={"estimated_preparation_time": 10},
        )

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["error"]["reason"] == "insufficient_stock"
    assert second.json()["error"]["available"] == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cancel_returns_items_to_cart(client, customer, store, db_session):
    product = await seed_product(db_session, store)

    with override_auth(app, customer):
        await client.post(
            "/cart/items", json={"product_id": str(product.id), "quantity": 2}
        )
        order = (
            await _checkout(
                client,
                [product.id],
                order_type="pickup",
                delivery_details=None,
                pickup_details=pickup_details(pickup_time=in_one_hour().isoformat()),
            )
        ).json()["data"]["orders"][0]

        response = await client.post(
            f"/orders/{order['id']}/cancel", json={"reason": "Wrong order"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "canceled"
        assert response.json()["data"]["canceled_by"] == "customer"

        cart = (await client.get("/cart")).json()["data"]
        mine = (await client.get("/orders/mine")).json()["data"]

    assert cart["item_count"] == 2
    assert mine["total"] == 1
    assert mine["items"][0]["status"] == "canceled"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_incomplete_details_rejected(client, customer, store, db_session):
    product = await seed_product(db_session, store)

    with override_auth(app, customer):
        await client.post("/cart/items", json={"product_id": str(product.id)})
        response = await _checkout(
            client, [product.id], delivery_details=delivery_details(building=None)
        )

    assert response.status_code == 409
    assert response.json()["error"]["reason"] == "incomplete_details"
    assert response.json()["error"]["missing"] == ["building"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_direct_order_endpoint(client, customer, store, db_session):
    product = await seed_product(db_session, store, stock=3)

    with override_auth(app, customer):
        response = await client.post(
            "/orders/direct",
            json={
                "order_type": "delivery",
                "items": [{"product_id": str(product.id), "quantity": 3}],
                "delivery_details": delivery_details(),
            },
        )

    assert response.status_code == 201
    [order] = response.json()["data"]["orders"]
    assert order["source"] == "direct"
    product_data = (await client.get(f"/products/{product.id}")).json()["data"]
    assert product_data["stock"] == 0
    assert product_data["is_available"] is False


@pytest.mark.asyncio
@pytest.mark.integration
async def test_order_hidden_from_other_customers(client, customer, store, db_session):
    product = await seed_product(db_session, store)

    with override_auth(app, customer):
        await client.post("/cart/items", json={"product_id": str(product.id)})
        order = (await _checkout(client, [product.id])).json()["data"]["orders"][0]

    with override_auth(app, make_customer_user()):
        response = await client.get(f"/orders/{order['id']}")

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_manual_payment_proof_flow(client, customer, seller, store, db_session):
    product = await seed_product(db_session, store)

    with override_auth(app, customer):
        await client.post("/cart/items", json={"product_id": str(product.id)})
        order = (
            await _checkout(client, [product.id], payment_method="gcash_manual")
        ).json()["data"]["orders"][0]
        response = await client.post(
            f"/orders/{order['id']}/payment-proof",
            json={"reference": "GC-777", "proof_image_url": "https://img.test/r.png"},
        )
        assert response.status_code == 200
        assert response.json()["data"]["payment_proof"]["status"] == "pending_verification"

    with override_auth(app, seller):
        response = await client.post(f"/seller/orders/{order['id']}/payment-proof/approve")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["payment_status"] == "paid"
    assert data["payment_proof"]["status"] == "approved"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_internal_payment_confirmation(client, customer, store, db_session):
    product = await seed_product(db_session, store)

    with override_auth(app, customer):
        await client.post("/cart/items", json={"product_id": str(product.id)})
        order = (
            await _checkout(client, [product.id], payment_method="gcash")
        ).json()["data"]["orders"][0]

        # Customers cannot call internal endpoints
        response = await client.post(
            f"/internal/orders/{order['id']}/paid", json={"reference": "PAY-1"}
        )
        assert response.status_code == 403

    with override_auth(app, make_service_user()):
        first = await client.post(
            f"/internal/orders/{order['id']}/paid", json={"reference": "PAY-1"}
        )
        replay = await client.post(
            f"/internal/orders/{order['id']}/paid", json={"reference": "PAY-1"}
        )

    assert first.status_code == 200
    assert replay.status_code == 200
    assert replay.json()["data"]["payment_status"] == "paid"
    assert replay.json()["data"]["paid_at"] == first.json()["data"]["paid_at"]
