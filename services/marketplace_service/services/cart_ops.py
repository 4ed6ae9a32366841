"""Cart operations: one cart per customer, deduplicated lines, derived totals.

Stock checks here are advisory. Nothing in the cart reserves inventory; the
authoritative check happens when a seller accepts the order.
"""

import uuid
from decimal import Decimal
from typing import Iterable, Optional

from libs.common.logging import get_logger
from services.marketplace_service.errors import (
    InsufficientStock,
    NotFound,
    ValidationFailed,
)
from services.marketplace_service.models import Cart, CartItem, selection_key
from services.marketplace_service.services.catalog_ops import (
    calculate_price,
    check_stock,
    get_product,
    load_products,
    snapshot_product,
    snapshot_selections,
    validate_selections,
)
from services.marketplace_service.services.transaction import atomic
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


# ============================================================================
# CART LOOKUP
# ============================================================================


async def get_cart(db: AsyncSession, customer_id: str) -> Optional[Cart]:
    """Return the customer's cart with its lines, or None."""
    result = await db.execute(
        select(Cart)
        .where(Cart.customer_id == customer_id)
        .options(selectinload(Cart.items))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_or_create_cart(db: AsyncSession, customer_id: str) -> Cart:
    cart = await get_cart(db, customer_id)
    if cart:
        return cart

    cart = Cart(customer_id=customer_id, items=[])
    db.add(cart)
    await db.flush()
    logger.info("Created cart %s for customer %s", cart.id, customer_id)
    return cart


def _find_line(cart: Optional[Cart], line_id: uuid.UUID) -> CartItem:
    line = next((item for item in (cart.items if cart else []) if item.id == line_id), None)
    if line is None:
        raise NotFound("Cart item not found")
    return line


def _raise_unavailable(stock, *, product_id, requested: int) -> None:
    logger.warning(
        "Stock check failed for product %s (requested %d): %s",
        product_id,
        requested,
        stock.message,
    )
    raise InsufficientStock(
        stock.message,
        available=stock.available_quantity,
        requested=requested,
        product_id=str(product_id),
    )


# ============================================================================
# CART MUTATIONS
# ============================================================================


async def add_item(
    db: AsyncSession,
    *,
    customer_id: str,
    product_id: uuid.UUID,
    quantity: int = 1,
    selections: Optional[list[dict]] = None,
) -> tuple[Cart, str]:
    """Add a product to the cart, merging into an identical line if present.

    Returns ``(cart, action)`` where action is ``added`` or ``updated``. A
    merged line keeps the price it was first added at.
    """
    if quantity < 1:
        raise ValidationFailed("Quantity must be at least 1")

    product = await get_product(db, product_id)
    selections = list(selections or [])
    if product.has_variants:
        validation = validate_selections(product, selections)
        if not validation.valid:
            raise ValidationFailed(validation.errors[0], errors=validation.errors)

    stock = check_stock(product, selections, quantity)
    if not stock.available:
        _raise_unavailable(stock, product_id=product.id, requested=quantity)

    snapshots = snapshot_selections(product, selections)
    key = selection_key(product.id, snapshots)

    async with atomic(db):
        cart = await get_or_create_cart(db, customer_id)
        line = cart.find_line(key)
        if line:
            merged = line.quantity + quantity
            stock = check_stock(product, selections, merged)
            if not stock.available:
                _raise_unavailable(stock, product_id=product.id, requested=merged)
            line.quantity = merged
            action = "updated"
        else:
            unit_price = calculate_price(product, selections)
            cart.items.append(
                CartItem(
                    product_id=product.id,
                    product_snapshot=snapshot_product(product, snapshots),
                    variant_selections=snapshots,
                    quantity=quantity,
                    unit_price=unit_price,
                    subtotal=unit_price * quantity,
                )
            )
            action = "added"
        cart.recalculate_totals()

    logger.info(
        "Cart %s: %s %d x product %s", customer_id, action, quantity, product.id
    )
    return await get_cart(db, customer_id), action


async def update_item_quantity(
    db: AsyncSession,
    *,
    customer_id: str,
    line_id: uuid.UUID,
    quantity: int,
) -> tuple[Optional[Cart], str]:
    """Set a line's quantity. Zero or less removes the line."""
    if quantity <= 0:
        return await remove_item(db, customer_id=customer_id, line_id=line_id)

    cart = await get_cart(db, customer_id)
    line = _find_line(cart, line_id)

    products = await load_products(db, [line.product_id])
    product = products.get(line.product_id)
    if product is None:
        raise NotFound("Product is no longer available")

    stock = check_stock(product, line.variant_selections, quantity)
    if not stock.available:
        _raise_unavailable(stock, product_id=product.id, requested=quantity)

    async with atomic(db):
        line.quantity = quantity
        cart.recalculate_totals()

    return await get_cart(db, customer_id), "updated"


async def remove_item(
    db: AsyncSession, *, customer_id: str, line_id: uuid.UUID
) -> tuple[Optional[Cart], str]:
    cart = await get_cart(db, customer_id)
    line = _find_line(cart, line_id)

    async with atomic(db):
        cart.items.remove(line)
        cart.recalculate_totals()

    return await get_cart(db, customer_id), "removed"


async def clear_cart(db: AsyncSession, *, customer_id: str) -> Optional[Cart]:
    """Remove every line. The (now empty) cart row is kept."""
    cart = await get_cart(db, customer_id)
    if cart is None:
        return None

    async with atomic(db):
        cart.items.clear()
        cart.recalculate_totals()

    logger.info("Cleared cart for customer %s", customer_id)
    return await get_cart(db, customer_id)


async def cart_summary(db: AsyncSession, *, customer_id: str) -> dict:
    cart = await get_cart(db, customer_id)
    if cart is None:
        return {"line_count": 0, "item_count": 0, "total": Decimal("0")}
    return {
        "line_count": cart.line_count,
        "item_count": cart.item_count,
        "total": cart.total,
    }


def merge_items_into_cart(cart: Cart, items: Iterable) -> None:
    """Fold order items back into a cart, summing quantities on matching lines.

    Runs inside the caller's transaction.
    """
    for item in items:
        key = selection_key(item.product_id, item.variant_selections)
        line = cart.find_line(key)
        if line:
            line.quantity += item.quantity
            continue
        cart.items.append(
            CartItem(
                product_id=item.product_id,
                product_snapshot=dict(item.product_snapshot),
                variant_selections=list(item.variant_selections or []),
                quantity=item.quantity,
                unit_price=item.unit_price,
                subtotal=item.unit_price * item.quantity,
            )
        )
    cart.recalculate_totals()


# ============================================================================
# CART VALIDATION
# ============================================================================


def _line_issue(line: CartItem, product) -> Optional[dict]:
    base = {"line_id": line.id, "product_id": line.product_id}
    if product is None:
        return {**base, "issue": "Product is no longer available", "action": "remove"}

    if product.has_variants:
        validation = validate_selections(product, line.variant_selections)
        if not validation.valid:
            return {**base, "issue": "; ".join(validation.errors), "action": "review"}

    stock = check_stock(product, line.variant_selections, line.quantity)
    if not stock.available:
        return {
            **base,
            "issue": stock.message,
            "action": "reduce_quantity" if stock.available_quantity > 0 else "remove",
            "available_quantity": stock.available_quantity,
        }
    return None


async def validate_items(db: AsyncSession, *, customer_id: str) -> tuple[Optional[Cart], list[dict]]:
    """Flag lines whose product, selections or stock changed since they were added.

    Marks are persisted on the lines; quantities are never changed.
    """
    cart = await get_cart(db, customer_id)
    if cart is None or not cart.items:
        return cart, []

    products = await load_products(db, (line.product_id for line in cart.items))
    issues = []
    async with atomic(db):
        for line in cart.items:
            issue = _line_issue(line, products.get(line.product_id))
            if issue:
                line.is_modified = True
                line.modification_note = issue["issue"]
                issues.append(issue)
            else:
                line.is_modified = False
                line.modification_note = None

    if issues:
        logger.info("Cart %s has %d issue(s)", customer_id, len(issues))
    return await get_cart(db, customer_id), issues


async def check_price_changes(db: AsyncSession, cart: Optional[Cart]) -> list[dict]:
    """Compare each line's snapshot price with today's price. Read-only."""
    if cart is None or not cart.items:
        return []

    products = await load_products(db, (line.product_id for line in cart.items))
    changes = []
    for line in cart.items:
        product = products.get(line.product_id)
        if product is None:
            continue
        current = calculate_price(product, line.variant_selections)
        if current != line.unit_price:
            changes.append(
                {
                    "line_id": line.id,
                    "product_id": line.product_id,
                    "name": line.product_snapshot.get("name"),
                    "old_price": line.unit_price,
                    "new_price": current,
                }
            )
    return changes
