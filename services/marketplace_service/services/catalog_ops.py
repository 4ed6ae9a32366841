"""Catalog operations: variant pricing, selection rules, and stock bookkeeping.

Selections are plain dicts with ``category`` and ``choice`` names, as sent by
clients and as stored on cart lines and order items.
"""

import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

from libs.common.logging import get_logger
from services.marketplace_service.errors import (
    ConflictError,
    InsufficientStock,
    NotAuthorized,
    NotFound,
    ValidationFailed,
)
from services.marketplace_service.models import (
    Product,
    Store,
    VariantCategory,
    VariantChoice,
)
from services.marketplace_service.services.transaction import atomic
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

PRODUCT_EDITABLE_FIELDS = (
    "name",
    "description",
    "image_url",
    "category",
    "base_price",
    "estimated_time",
    "shipping_fee",
)


@dataclass
class SelectionValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class StockCheck:
    available: bool
    message: Optional[str] = None
    available_quantity: int = 0


@dataclass
class StockRequest:
    """Quantity of one product (with its selections) to take out of stock."""

    product_id: uuid.UUID
    quantity: int
    selections: list[dict] = field(default_factory=list)


def product_query():
    """Select products with everything pricing and stock rules read."""
    return select(Product).options(
        selectinload(Product.variant_categories).selectinload(VariantCategory.choices),
        selectinload(Product.store),
    )


def stock_requests_from_items(items: Iterable) -> list[StockRequest]:
    """Build stock requests from order items or cart lines."""
    return [
        StockRequest(
            product_id=item.product_id,
            quantity=item.quantity,
            selections=list(item.variant_selections or []),
        )
        for item in items
    ]


# ============================================================================
# SELECTION MATCHING
# ============================================================================


def _selection_pairs(selections: Optional[Iterable[dict]]) -> list[tuple[str, str]]:
    return [(s.get("category"), s.get("choice")) for s in (selections or [])]


def find_category(product: Product, name: str) -> Optional[VariantCategory]:
    return next((c for c in product.variant_categories if c.name == name), None)


def find_choice(category: VariantCategory, name: str) -> Optional[VariantChoice]:
    return next((c for c in category.choices if c.name == name), None)


def match_selections(
    product: Product, selections: Optional[Iterable[dict]]
) -> list[tuple[VariantCategory, VariantChoice]]:
    """Resolve selections to catalog rows, dropping any that do not match."""
    matched = []
    for category_name, choice_name in _selection_pairs(selections):
        category = find_category(product, category_name)
        if category is None:
            continue
        choice = find_choice(category, choice_name)
        if choice is None:
            continue
        matched.append((category, choice))
    return matched


# ============================================================================
# PRICING & VALIDATION
# ============================================================================


def calculate_price(product: Product, selections: Optional[Iterable[dict]]) -> Decimal:
    """Unit price for a product with the given selections.

    Single-pick choices with an absolute price replace the running price (the
    last one wins); adjustments are then added on top. Multi-select add-ons
    add their adjustment, or their absolute price when no adjustment is set.
    """
    matched = match_selections(product, selections)
    price = Decimal(product.base_price)

    for category, choice in matched:
        if not category.allow_multiple and choice.price is not None:
            price = Decimal(choice.price)

    for category, choice in matched:
        if category.allow_multiple:
            if choice.price_adjustment is not None:
                price += Decimal(choice.price_adjustment)
            elif choice.price is not None:
                price += Decimal(choice.price)
        elif choice.price is None and choice.price_adjustment is not None:
            price += Decimal(choice.price_adjustment)

    return price


def snapshot_selections(
    product: Product, selections: Optional[Iterable[dict]]
) -> list[dict]:
    """Record matched selections with the price each contributed at this moment."""
    return [
        {
            "category": category.name,
            "choice": choice.name,
            "choice_id": str(choice.id),
            "price": str(choice.snapshot_price),
            "image": choice.image_url,
        }
        for category, choice in match_selections(product, selections)
    ]


def snapshot_product(product: Product, selections: list[dict]) -> dict:
    """Product facts frozen onto a cart line or order item."""
    image = next((s["image"] for s in selections if s.get("image")), None)
    return {
        "name": product.name,
        "image": image or product.image_url,
        "base_price": str(product.base_price),
    }


def validate_selections(
    product: Product,
    selections: Optional[Iterable[dict]],
    *,
    check_availability: bool = True,
) -> SelectionValidation:
    """Check selections against the product's variant categories. Never raises.

    With ``check_availability=False`` only the structure is checked; stock
    shortfalls are then left to the caller.
    """
    picked: dict[str, list[str]] = defaultdict(list)
    for category_name, choice_name in _selection_pairs(selections):
        picked[category_name].append(choice_name)

    errors: list[str] = []
    known = set()
    for category in product.variant_categories:
        known.add(category.name)
        names = picked.get(category.name, [])
        if not names:
            if category.is_required:
                errors.append(f"Please select a {category.name}")
            continue
        if len(names) > 1 and not category.allow_multiple:
            errors.append(f"Only one {category.name} may be selected")
        for name in names:
            choice = find_choice(category, name)
            if choice is None:
                errors.append(f"Invalid choice for {category.name}")
            elif check_availability and not choice.is_in_stock:
                errors.append(f"{choice.name} is out of stock")

    for category_name in picked:
        if category_name not in known:
            errors.append(f"Invalid choice for {category_name}")

    return SelectionValidation(valid=not errors, errors=errors)


def check_stock(
    product: Product, selections: Optional[Iterable[dict]], quantity: int
) -> StockCheck:
    """Advisory stock check for ``quantity`` units.

    Without selections the flat product stock decides; otherwise every selected
    choice must cover the quantity on its own.
    """
    matched = match_selections(product, selections)
    if not matched:
        if product.stock < quantity:
            return StockCheck(
                available=False,
                message=f"Only {product.stock} items available",
                available_quantity=product.stock,
            )
        return StockCheck(available=True, available_quantity=product.stock)

    available_quantity = min(
        choice.stock if choice.is_available else 0 for _, choice in matched
    )
    for _, choice in matched:
        stock = choice.stock if choice.is_available else 0
        if stock < quantity:
            return StockCheck(
                available=False,
                message=f"Only {stock} units of {choice.name} available",
                available_quantity=available_quantity,
            )
    return StockCheck(available=True, available_quantity=available_quantity)


# ============================================================================
# STOCK DEDUCTION / RESTORATION
# ============================================================================


@dataclass
class _Demand:
    flat: dict = field(default_factory=dict)  # product_id -> [product, qty]
    choices: dict = field(default_factory=dict)  # choice_id -> [product, choice, qty]
    sold: dict = field(default_factory=dict)  # product_id -> [product, qty]


def _aggregate(
    products: dict[uuid.UUID, Product],
    requests: Iterable[StockRequest],
    *,
    strict: bool,
) -> _Demand:
    demand = _Demand()
    for request in requests:
        product = products.get(request.product_id)
        if product is None:
            if strict:
                raise ConflictError(
                    "A product in this order is no longer available",
                    context={
                        "reason": "product_missing",
                        "product_id": str(request.product_id),
                    },
                )
            logger.warning(
                "Skipping stock change for missing product %s", request.product_id
            )
            continue

        if strict and product.has_variants:
            validation = validate_selections(
                product, request.selections, check_availability=False
            )
            if not validation.valid:
                raise ConflictError(
                    f"{product.name}: {validation.errors[0]}",
                    context={
                        "reason": "invalid_selection",
                        "product_id": str(product.id),
                        "errors": validation.errors,
                    },
                )

        matched = match_selections(product, request.selections)
        if matched:
            for _, choice in matched:
                entry = demand.choices.setdefault(choice.id, [product, choice, 0])
                entry[2] += request.quantity
        else:
            entry = demand.flat.setdefault(product.id, [product, 0])
            entry[1] += request.quantity

        sold = demand.sold.setdefault(product.id, [product, 0])
        sold[1] += request.quantity
    return demand


def _verify(demand: _Demand) -> None:
    for product, quantity in demand.flat.values():
        if product.stock < quantity:
            raise InsufficientStock(
                f"Insufficient stock for {product.name}: only {product.stock} available",
                available=product.stock,
                requested=quantity,
                product_id=str(product.id),
            )
    for product, choice, quantity in demand.choices.values():
        stock = choice.stock if choice.is_available else 0
        if stock < quantity:
            raise InsufficientStock(
                f"Insufficient stock for {product.name} ({choice.name}): "
                f"only {stock} available",
                available=stock,
                requested=quantity,
                product_id=str(product.id),
                choice=choice.name,
            )


def _apply(demand: _Demand, sign: int) -> None:
    for product, quantity in demand.flat.values():
        product.stock += sign * quantity
    for _, choice, quantity in demand.choices.values():
        previous = choice.stock
        choice.stock += sign * quantity
        if choice.stock == 0:
            choice.is_available = False
        elif previous == 0 and sign > 0:
            choice.is_available = True
    for product, quantity in demand.sold.values():
        product.total_sold = max(0, (product.total_sold or 0) + sign * quantity)
        product.refresh_availability()


def deduct_stock(
    product: Product, selections: Optional[Iterable[dict]], quantity: int
) -> None:
    """Take ``quantity`` units of one product out of stock, or raise."""
    demand = _aggregate(
        {product.id: product},
        [StockRequest(product.id, quantity, list(selections or []))],
        strict=False,
    )
    _verify(demand)
    _apply(demand, -1)


async def load_products(
    db: AsyncSession, product_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, Product]:
    ids = set(product_ids)
    if not ids:
        return {}
    result = await db.execute(
        product_query()
        .where(Product.id.in_(ids))
        .execution_options(populate_existing=True)
    )
    return {product.id: product for product in result.scalars().all()}


async def lock_products(
    db: AsyncSession, product_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, Product]:
    """Lock product rows and re-read their stock inside the current transaction."""
    ids = sorted(set(product_ids), key=str)
    if not ids:
        return {}
    result = await db.execute(
        product_query()
        .where(Product.id.in_(ids))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return {product.id: product for product in result.scalars().all()}


async def deduct_stock_bulk(
    db: AsyncSession, requests: list[StockRequest]
) -> dict[uuid.UUID, Product]:
    """Deduct stock for a whole batch: every request succeeds or none does.

    Must run inside the caller's transaction; nothing is committed here.
    """
    products = await lock_products(db, (r.product_id for r in requests))
    demand = _aggregate(products, requests, strict=True)
    _verify(demand)
    _apply(demand, -1)
    await db.flush()

    logger.info(
        "Deducted stock for %d item(s) across %d product(s)",
        len(requests),
        len(products),
    )
    return products


async def restore_stock_bulk(
    db: AsyncSession, requests: list[StockRequest]
) -> dict[uuid.UUID, Product]:
    """Put previously deducted stock back. Missing products are skipped."""
    products = await lock_products(db, (r.product_id for r in requests))
    demand = _aggregate(products, requests, strict=False)
    _apply(demand, 1)
    await db.flush()

    logger.info("Restored stock for %d item(s)", len(requests))
    return products


# ============================================================================
# SELLER CATALOG
# ============================================================================


async def get_product(db: AsyncSession, product_id: uuid.UUID) -> Product:
    result = await db.execute(
        product_query()
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    product = result.scalar_one_or_none()
    if not product:
        raise NotFound("Product not found")
    return product


async def get_store_for_owner(db: AsyncSession, owner_id: str) -> Store:
    result = await db.execute(select(Store).where(Store.owner_id == owner_id))
    store = result.scalar_one_or_none()
    if not store:
        raise NotFound("Store not found")
    return store


async def create_store(
    db: AsyncSession,
    *,
    owner_id: str,
    name: str,
    description: Optional[str] = None,
    image_url: Optional[str] = None,
) -> Store:
    existing = await db.execute(select(Store.id).where(Store.owner_id == owner_id))
    if existing.scalar_one_or_none():
        raise ConflictError("You already have a store")

    store = Store(
        owner_id=owner_id, name=name, description=description, image_url=image_url
    )
    async with atomic(db):
        db.add(store)

    logger.info("Created store %s for seller %s", store.id, owner_id)
    return store


async def _get_owned_product(
    db: AsyncSession, *, owner_id: str, product_id: uuid.UUID
) -> Product:
    product = await get_product(db, product_id)
    if product.store.owner_id != owner_id:
        raise NotAuthorized("You can only manage your own products")
    return product


def _build_categories(variant_categories: Optional[list[dict]]) -> list[VariantCategory]:
    categories = []
    for position, data in enumerate(variant_categories or []):
        choices = [
            VariantChoice(
                name=choice["name"],
                image_url=choice.get("image_url"),
                sku=choice.get("sku"),
                price=choice.get("price"),
                price_adjustment=choice.get("price_adjustment"),
                stock=choice.get("stock", 0),
                is_available=choice.get("is_available", True),
                position=choice_position,
            )
            for choice_position, choice in enumerate(data.get("choices") or [])
        ]
        names = [c.name for c in choices]
        if len(names) != len(set(names)):
            raise ValidationFailed(f"Duplicate choice names in {data['name']}")
        categories.append(
            VariantCategory(
                name=data["name"],
                is_required=data.get("is_required", True),
                allow_multiple=data.get("allow_multiple", False),
                position=position,
                choices=choices,
            )
        )
    names = [c.name for c in categories]
    if len(names) != len(set(names)):
        raise ValidationFailed("Variant category names must be unique")
    return categories


async def create_product(
    db: AsyncSession,
    *,
    owner_id: str,
    fields: dict,
    variant_categories: Optional[list[dict]] = None,
) -> Product:
    store = await get_store_for_owner(db, owner_id)
    product = Product(
        store_id=store.id,
        stock=fields.get("stock", 0),
        **{k: v for k, v in fields.items() if k in PRODUCT_EDITABLE_FIELDS},
    )
    product.variant_categories = _build_categories(variant_categories)
    product.refresh_availability()

    async with atomic(db):
        db.add(product)

    logger.info("Seller %s created product %s (%s)", owner_id, product.id, product.name)
    return await get_product(db, product.id)


async def update_product(
    db: AsyncSession,
    *,
    owner_id: str,
    product_id: uuid.UUID,
    changes: dict,
) -> Product:
    product = await _get_owned_product(db, owner_id=owner_id, product_id=product_id)
    async with atomic(db):
        for key, value in changes.items():
            if key in PRODUCT_EDITABLE_FIELDS:
                setattr(product, key, value)
        product.refresh_availability()

    return await get_product(db, product_id)


async def replace_variants(
    db: AsyncSession,
    *,
    owner_id: str,
    product_id: uuid.UUID,
    variant_categories: list[dict],
) -> Product:
    """Swap the product's whole variant structure for a new one."""
    product = await _get_owned_product(db, owner_id=owner_id, product_id=product_id)
    new_categories = _build_categories(variant_categories)
    async with atomic(db):
        product.variant_categories.clear()
        await db.flush()
        product.variant_categories.extend(new_categories)
        product.refresh_availability()

    logger.info(
        "Replaced variants on product %s (%d categories)",
        product_id,
        len(new_categories),
    )
    return await get_product(db, product_id)


async def restock_product(
    db: AsyncSession,
    *,
    owner_id: str,
    product_id: uuid.UUID,
    quantity: int,
) -> Product:
    """Add units to the product's flat stock."""
    if quantity <= 0:
        raise ValidationFailed("Restock quantity must be positive")
    product = await _get_owned_product(db, owner_id=owner_id, product_id=product_id)
    async with atomic(db):
        product.stock += quantity
        product.refresh_availability()

    logger.info("Restocked product %s by %d (now %d)", product_id, quantity, product.stock)
    return await get_product(db, product_id)


async def restock_choice(
    db: AsyncSession,
    *,
    owner_id: str,
    product_id: uuid.UUID,
    choice_id: uuid.UUID,
    quantity: int,
) -> Product:
    """Add units to one variant choice and make it selectable again."""
    if quantity <= 0:
        raise ValidationFailed("Restock quantity must be positive")
    product = await _get_owned_product(db, owner_id=owner_id, product_id=product_id)
    choice = next(
        (
            c
            for category in product.variant_categories
            for c in category.choices
            if c.id == choice_id
        ),
        None,
    )
    if choice is None:
        raise NotFound("Variant choice not found")

    async with atomic(db):
        choice.stock += quantity
        choice.is_available = True
        product.refresh_availability()

    logger.info(
        "Restocked choice %s on product %s by %d", choice.name, product_id, quantity
    )
    return await get_product(db, product_id)
