"""Unit tests for cart_ops: dedup, derived totals, validation."""

import uuid
from decimal import Decimal

import pytest
from services.marketplace_service.errors import (
    InsufficientStock,
    NotFound,
    ValidationFailed,
)
from services.marketplace_service.services import cart_ops
from services.marketplace_service.services.catalog_ops import get_product
from tests.conftest import seed_product

SIZE_LARGE = {"category": "Size", "choice": "Large"}
PEARLS = {"category": "Add-ons", "choice": "Pearls"}
PUDDING = {"category": "Add-ons", "choice": "Pudding"}


def _assert_totals_consistent(cart):
    for line in cart.items:
        assert line.subtotal == line.unit_price * line.quantity
    assert cart.total == sum((line.subtotal for line in cart.items), Decimal("0"))
    assert cart.line_count == len(cart.items)
    assert cart.item_count == sum(line.quantity for line in cart.items)


# ---------------------------------------------------------------------------
# add_item
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_add_item_snapshots_price_and_selections(db_session, customer, milk_tea):
    cart, action = await cart_ops.add_item(
        db_session,
        customer_id=customer.user_id,
        product_id=milk_tea.id,
        quantity=2,
        selections=[SIZE_LARGE, PEARLS],
    )

    assert action == "added"
    [line] = cart.items
    assert line.unit_price == Decimal("135")
    assert line.subtotal == Decimal("270")
    assert line.product_snapshot["name"] == "Milk Tea"
    # First selected choice with an image wins
    assert line.product_snapshot["image"] == "https://img.test/large.png"
    assert [(s["category"], s["choice"]) for s in line.variant_selections] == [
        ("Size", "Large"),
        ("Add-ons", "Pearls"),
    ]
    assert Decimal(line.variant_selections[0]["price"]) == Decimal("120")
    _assert_totals_consistent(cart)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_same_selections_in_any_order_merge_into_one_line(
    db_session, customer, milk_tea
):
    await cart_ops.add_item(
        db_session,
        customer_id=customer.user_id,
        product_id=milk_tea.id,
        quantity=1,
        selections=[SIZE_LARGE, PEARLS, PUDDING],
    )
    cart, action = await cart_ops.add_item(
        db_session,
        customer_id=customer.user_id,
        product_id=milk_tea.id,
        quantity=2,
        selections=[PUDDING, SIZE_LARGE, PEARLS],
    )

    assert action == "updated"
    assert len(cart.items) == 1
    assert cart.items[0].quantity == 3
    _assert_totals_consistent(cart)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_different_selections_make_separate_lines(db_session, customer, milk_tea):
    await cart_ops.add_item(
        db_session,
        customer_id=customer.user_id,
        product_id=milk_tea.id,
        selections=[SIZE_LARGE],
    )
    cart, _ = await cart_ops.add_item(
        db_session,
        customer_id=customer.user_id,
        product_id=milk_tea.id,
        selections=[SIZE_LARGE, PEARLS],
    )

    assert cart.line_count == 2
    assert cart.total == Decimal("255")
    _assert_totals_consistent(cart)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_merged_line_keeps_original_price(db_session, customer, store):
    product = await seed_product(db_session, store, base_price=Decimal("50"))
    await cart_ops.add_item(
        db_session, customer_id=customer.user_id, product_id=product.id
    )

    product.base_price = Decimal("70")
    await db_session.commit()

    cart, _ = await cart_ops.add_item(
        db_session, customer_id=customer.user_id, product_id=product.id
    )
    assert cart.items[0].unit_price == Decimal("50")
    assert cart.total == Decimal("100")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_add_item_requires_valid_selections(db_session, customer, milk_tea):
    with pytest.raises(ValidationFailed) as exc_info:
        await cart_ops.add_item(
            db_session,
            customer_id=customer.user_id,
            product_id=milk_tea.id,
            selections=[PEARLS],
        )
    assert exc_info.value.errors == ["Please select a Size"]
    assert await cart_ops.get_cart(db_session, customer.user_id) is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_add_item_rejects_quantity_over_stock(db_session, customer, store):
    product = await seed_product(db_session, store, stock=3)

    with pytest.raises(InsufficientStock) as exc_info:
        await cart_ops.add_item(
            db_session,
            customer_id=customer.user_id,
            product_id=product.id,
            quantity=4,
        )

    assert exc_info.value.message == "Only 3 items available"
    assert exc_info.value.available == 3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_merge_rechecks_stock_for_combined_quantity(db_session, customer, store):
    product = await seed_product(db_session, store, stock=3)
    await cart_ops.add_item(
        db_session, customer_id=customer.user_id, product_id=product.id, quantity=2
    )

    with pytest.raises(InsufficientStock):
        await cart_ops.add_item(
            db_session, customer_id=customer.user_id, product_id=product.id, quantity=2
        )

    cart = await cart_ops.get_cart(db_session, customer.user_id)
    assert cart.items[0].quantity == 2
    assert cart.item_count == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_add_unknown_product_is_not_found(db_session, customer):
    with pytest.raises(NotFound):
        await cart_ops.add_item(
            db_session, customer_id=customer.user_id, product_id=uuid.uuid4()
        )


# ---------------------------------------------------------------------------
# update / remove / clear
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_quantity_recomputes_totals(db_session, customer, store):
    product = await seed_product(db_session, store, base_price=Decimal("40"), stock=10)
    cart, _ = await cart_ops.add_item(
        db_session, customer_id=customer.user_id, product_id=product.id
    )

    cart, action = await cart_ops.update_item_quantity(
        db_session,
        customer_id=customer.user_id,
        line_id=cart.items[0].id,
        quantity=5,
    )

    assert action == "updated"
    assert cart.total == Decimal("200")
    assert cart.item_count == 5
    _assert_totals_consistent(cart)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_quantity_zero_removes_line(db_session, customer, store):
    product = await seed_product(db_session, store)
    cart, _ = await cart_ops.add_item(
        db_session, customer_id=customer.user_id, product_id=product.id
    )

    cart, action = await cart_ops.update_item_quantity(
        db_session, customer_id=customer.user_id, line_id=cart.items[0].id, quantity=0
    )

    assert action == "removed"
    assert cart.items == []
    assert cart.total == Decimal("0")
    assert cart.line_count == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_quantity_beyond_stock_is_refused(db_session, customer, store):
    product = await seed_product(db_session, store, stock=2)
    cart, _ = await cart_ops.add_item(
        db_session, customer_id=customer.user_id, product_id=product.id
    )

    with pytest.raises(InsufficientStock):
        await cart_ops.update_item_quantity(
            db_session,
            customer_id=customer.user_id,
            line_id=cart.items[0].id,
            quantity=3,
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_clear_cart_keeps_empty_cart(db_session, customer, store):
    product = await seed_product(db_session, store)
    await cart_ops.add_item(
        db_session, customer_id=customer.user_id, product_id=product.id, quantity=2
    )

    cart = await cart_ops.clear_cart(db_session, customer_id=customer.user_id)

    assert cart is not None
    assert cart.items == []
    summary = await cart_ops.cart_summary(db_session, customer_id=customer.user_id)
    assert summary == {"line_count": 0, "item_count": 0, "total": Decimal("0")}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_summary_of_missing_cart_is_empty(db_session, customer):
    summary = await cart_ops.cart_summary(db_session, customer_id=customer.user_id)
    assert summary["line_count"] == 0
    assert summary["total"] == Decimal("0")


# ---------------------------------------------------------------------------
# validate_items / check_price_changes
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_validate_flags_insufficient_stock_without_changing_quantity(
    db_session, customer, store
):
    product = await seed_product(db_session, store, stock=5)
    await cart_ops.add_item(
        db_session, customer_id=customer.user_id, product_id=product.id, quantity=3
    )
    product.stock = 1
    await db_session.commit()

    cart, issues = await cart_ops.validate_items(db_session, customer_id=customer.user_id)

    [issue] = issues
    assert issue["action"] == "reduce_quantity"
    assert issue["available_quantity"] == 1
    line = cart.items[0]
    assert line.quantity == 3
    assert line.is_modified is True
    assert line.modification_note == "Only 1 items available"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_validate_flags_deleted_product_for_removal(db_session, customer, store):
    product = await seed_product(db_session, store)
    await cart_ops.add_item(
        db_session, customer_id=customer.user_id, product_id=product.id
    )
    await db_session.delete(product)
    await db_session.commit()

    cart, issues = await cart_ops.validate_items(db_session, customer_id=customer.user_id)

    assert [i["action"] for i in issues] == ["remove"]
    assert cart.items[0].is_modified is True


@pytest.mark.asyncio
@pytest.mark.unit
async def test_validate_flags_selection_that_went_out_of_stock(
    db_session, customer, milk_tea
):
    await cart_ops.add_item(
        db_session,
        customer_id=customer.user_id,
        product_id=milk_tea.id,
        selections=[SIZE_LARGE],
    )
    milk_tea.variant_categories[0].choices[1].stock = 0
    await db_session.commit()

    _, issues = await cart_ops.validate_items(db_session, customer_id=customer.user_id)

    assert issues[0]["action"] == "review"
    assert "Large is out of stock" in issues[0]["issue"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_price_changes_reported_without_repricing(db_session, customer, store):
    product = await seed_product(db_session, store, base_price=Decimal("100"))
    await cart_ops.add_item(
        db_session, customer_id=customer.user_id, product_id=product.id
    )
    product = await get_product(db_session, product.id)
    product.base_price = Decimal("110")
    await db_session.commit()

    cart = await cart_ops.get_cart(db_session, customer.user_id)
    changes = await cart_ops.check_price_changes(db_session, cart)

    assert len(changes) == 1
    assert changes[0]["old_price"] == Decimal("100")
    assert changes[0]["new_price"] == Decimal("110")
    cart = await cart_ops.get_cart(db_session, customer.user_id)
    assert cart.items[0].unit_price == Decimal("100")
