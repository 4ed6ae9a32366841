"""Integration tests for catalog endpoints (seller store and products)."""

import uuid
from decimal import Decimal

import pytest
from services.marketplace_service.app.main import app
from tests.conftest import make_customer_user, override_auth

MILK_TEA_PAYLOAD = {
    "name": "Milk Tea",
    "base_price": "100.00",
    "stock": 0,
    "estimated_time": 15,
    "variant_categories": [
        {
            "name": "Size",
            "is_required": True,
            "allow_multiple": False,
            "choices": [
                {"name": "Regular", "price": "100.00", "stock": 5},
                {"name": "Large", "price": "120.00", "stock": 5},
            ],
        },
        {
            "name": "Add-ons",
            "is_required": False,
            "allow_multiple": True,
            "choices": [{"name": "Pearls", "price_adjustment": "15.00", "stock": 5}],
        },
    ],
}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "marketplace"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_seller_creates_store_and_product(client, seller):
    with override_auth(app, seller):
        response = await client.post("/seller/store", json={"name": "Tea Corner"})
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["owner_id"] == seller.user_id

        response = await client.post("/seller/products", json=MILK_TEA_PAYLOAD)

    assert response.status_code == 201
    product = response.json()["data"]
    assert product["is_available"] is True
    assert [c["name"] for c in product["variant_categories"]] == ["Size", "Add-ons"]
    assert Decimal(product["base_price"]) == Decimal("100")

    response = await client.get(f"/products/{product['id']}")
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Milk Tea"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_second_store_for_same_seller_conflicts(client, seller, store):
    with override_auth(app, seller):
        response = await client.post("/seller/store", json={"name": "Another"})

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error"]["category"] == "conflict"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_restock_choice_makes_product_available(client, seller, store):
    with override_auth(app, seller):
        payload = dict(MILK_TEA_PAYLOAD)
        payload["variant_categories"] = [
            {
                "name": "Size",
                "choices": [{"name": "Regular", "price": "90.00", "stock": 0}],
            }
        ]
        product = (await client.post("/seller/products", json=payload)).json()["data"]
        assert product["is_available"] is False
        choice_id = product["variant_categories"][0]["choices"][0]["id"]

        response = await client.post(
            f"/seller/products/{product['id']}/choices/{choice_id}/restock",
            json={"quantity": 4},
        )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["is_available"] is True
    assert data["variant_categories"][0]["choices"][0]["stock"] == 4


@pytest.mark.asyncio
@pytest.mark.integration
async def test_customer_cannot_manage_products(client):
    with override_auth(app, make_customer_user()):
        response = await client.post("/seller/products", json=MILK_TEA_PAYLOAD)

    assert response.status_code == 403
    assert response.json()["error"]["category"] == "authorization"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_product_is_404(client):
    response = await client.get(f"/products/{uuid.uuid4()}")

    assert response.status_code == 404
    body = response.json()
    assert body["error"]["category"] == "not_found"
    assert body["message"] == "Product not found"
