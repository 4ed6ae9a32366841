"""Integration tests for cart endpoints."""

from decimal import Decimal

import pytest
from services.marketplace_service.app.main import app
from tests.conftest import override_auth, seed_product

LARGE_WITH_PEARLS = [
    {"category": "Size", "choice": "Large"},
    {"category": "Add-ons", "choice": "Pearls"},
]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_empty_cart_reads_as_empty(client, customer):
    with override_auth(app, customer):
        response = await client.get("/cart")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["id"] is None
    assert data["items"] == []
    assert Decimal(data["total"]) == Decimal("0")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_add_view_and_summarise_cart(client, customer, milk_tea):
    with override_auth(app, customer):
        response = await client.post(
            "/cart/items",
            json={
                "product_id": str(milk_tea.id),
                "quantity": 2,
                "variant_selections": LARGE_WITH_PEARLS,
            },
        )
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Item added to cart"
        assert body["data"]["action"] == "added"

        response = await client.post(
            "/cart/items",
            json={
                "product_id": str(milk_tea.id),
                "quantity": 1,
                "variant_selections": list(reversed(LARGE_WITH_PEARLS)),
            },
        )
        assert response.json()["data"]["action"] == "updated"

        cart = (await client.get("/cart")).json()["data"]
        summary = (await client.get("/cart/summary")).json()["data"]

    [line] = cart["items"]
    assert line["quantity"] == 3
    assert Decimal(line["unit_price"]) == Decimal("135")
    assert Decimal(cart["total"]) == Decimal("405")
    assert summary["line_count"] == 1
    assert summary["item_count"] == 3
    assert Decimal(summary["total"]) == Decimal("405")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_add_beyond_stock_returns_conflict_envelope(client, customer, store, db_session):
    product = await seed_product(db_session, store, stock=3)

    with override_auth(app, customer):
        response = await client.post(
            "/cart/items", json={"product_id": str(product.id), "quantity": 4}
        )

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["data"] is None
    assert body["message"] == "Only 3 items available"
    assert body["error"]["category"] == "conflict"
    assert body["error"]["reason"] == "insufficient_stock"
    assert body["error"]["available"] == 3


@pytest.mark.asyncio
@pytest.mark.integration
async def test_missing_required_selection_is_validation_error(client, customer, milk_tea):
    with override_auth(app, customer):
        response = await client.post(
            "/cart/items",
            json={
                "product_id": str(milk_tea.id),
                "variant_selections": [{"category": "Add-ons", "choice": "Pearls"}],
            },
        )

    assert response.status_code == 400
    body = response.json()
    assert body["error"]["category"] == "validation"
    assert body["error"]["errors"] == ["Please select a Size"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_malformed_body_is_422(client, customer):
    with override_auth(app, customer):
        response = await client.post("/cart/items", json={"quantity": 0})

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"]["category"] == "validation"
    assert body["error"]["errors"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_remove_and_clear(client, customer, store, db_session):
    product = await seed_product(db_session, store, base_price=Decimal("25"))
    other = await seed_product(db_session, store, base_price=Decimal("10"))

    with override_auth(app, customer):
        cart = (
            await client.post("/cart/items", json={"product_id": str(product.id)})
        ).json()["data"]["cart"]
        await client.post("/cart/items", json={"product_id": str(other.id)})
        line_id = cart["items"][0]["id"]

        response = await client.patch(f"/cart/items/{line_id}", json={"quantity": 4})
        assert response.status_code == 200
        assert Decimal(response.json()["data"]["cart"]["total"]) == Decimal("110")

        response = await client.delete(f"/cart/items/{line_id}")
        assert response.json()["data"]["action"] == "removed"
        assert response.json()["data"]["cart"]["line_count"] == 1

        response = await client.delete("/cart")

    assert response.status_code == 200
    assert response.json()["data"]["items"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_validate_reports_price_change(client, customer, store, db_session):
    product = await seed_product(db_session, store, base_price=Decimal("40"))

    with override_auth(app, customer):
        await client.post("/cart/items", json={"product_id": str(product.id)})
        product.base_price = Decimal("45")
        await db_session.commit()

        response = await client.post("/cart/validate")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["valid"] is False
    assert data["issues"] == []
    [change] = data["price_changes"]
    assert Decimal(change["old_price"]) == Decimal("40")
    assert Decimal(change["new_price"]) == Decimal("45")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_seller_cannot_use_cart(client, seller):
    with override_auth(app, seller):
        response = await client.get("/cart")

    assert response.status_code == 403
