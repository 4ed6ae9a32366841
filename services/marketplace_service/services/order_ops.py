"""Order operations: checkout split per store, acceptance, lifecycle, cancellation.

Orders placed from a cart do not touch stock until the seller accepts them;
acceptance locks the products and deducts every item or none. Direct orders
deduct at creation and carry ``stock_deducted`` so acceptance skips it and
cancellation or rejection puts it back.
"""

import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import ensure_aware, utc_now
from libs.common.logging import get_logger
from libs.common.service_client import send_notification_safely
from services.marketplace_service.errors import (
    ConflictError,
    NotAuthorized,
    NotFound,
    ValidationFailed,
)
from services.marketplace_service.models import (
    CASH_PAYMENT_METHODS,
    PAYMENT_METHODS_BY_ORDER_TYPE,
    CanceledBy,
    Order,
    OrderItem,
    OrderSource,
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentStatus,
    Product,
    Store,
)
from services.marketplace_service.services.cart_ops import (
    get_cart,
    get_or_create_cart,
    merge_items_into_cart,
)
from services.marketplace_service.services.catalog_ops import (
    StockRequest,
    calculate_price,
    deduct_stock_bulk,
    load_products,
    restore_stock_bulk,
    snapshot_product,
    snapshot_selections,
    stock_requests_from_items,
)
from services.marketplace_service.services.transaction import atomic
from services.marketplace_service.services.transitions import ensure_transition
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

CONTACT_NUMBER_PATTERN = re.compile(r"^[0-9+\-\s()]+$")
DELIVERY_DETAIL_FIELDS = ("receiver_name", "contact_number", "building", "room_number")
PICKUP_DETAIL_FIELDS = ("contact_number", "pickup_time")


@dataclass
class _OrderLine:
    product: Product
    product_snapshot: dict
    variant_selections: list
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


# ============================================================================
# LOOKUP
# ============================================================================


def order_query():
    return select(Order).options(
        selectinload(Order.items),
        selectinload(Order.status_history),
        selectinload(Order.payment_proof),
    )


async def get_order(
    db: AsyncSession, order_id: uuid.UUID, *, lock: bool = False
) -> Order:
    query = (
        order_query()
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    if lock:
        query = query.with_for_update()
    result = await db.execute(query)
    order = result.scalar_one_or_none()
    if not order:
        raise NotFound("Order not found")
    return order


async def get_seller_order(
    db: AsyncSession, order_id: uuid.UUID, *, seller_id: str
) -> Order:
    order = await get_order(db, order_id)
    if order.seller_id != seller_id:
        raise NotAuthorized("You can only manage orders placed with your store")
    return order


async def get_order_details(
    db: AsyncSession, *, order_id: uuid.UUID, user_id: str
) -> Order:
    """Order with items, history and proof; visible to its customer and seller."""
    order = await get_order(db, order_id)
    if user_id not in (order.customer_id, order.seller_id):
        raise NotAuthorized("You do not have access to this order")
    return order


# ============================================================================
# PLACEMENT RULES
# ============================================================================


def resolve_payment_method(
    order_type: OrderType, payment_method: Optional[PaymentMethod]
) -> PaymentMethod:
    """Validate the method for the order type; default to the type's cash method."""
    allowed = PAYMENT_METHODS_BY_ORDER_TYPE[order_type]
    if payment_method is None:
        return allowed[0]
    method = PaymentMethod(payment_method)
    if method not in allowed:
        raise ValidationFailed(
            f"Payment method {method.value} is not available for {order_type.value} orders"
        )
    return method


def _parse_pickup_time(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    try:
        return ensure_aware(datetime.fromisoformat(str(value)))
    except ValueError:
        raise ValidationFailed("Pickup time is not a valid date and time")


def check_detail_format(order_type: OrderType, details: dict) -> None:
    """Reject malformed details before any write is attempted."""
    errors = []
    contact = details.get("contact_number")
    if contact and not CONTACT_NUMBER_PATTERN.match(str(contact)):
        errors.append("Contact number contains invalid characters")
    if order_type == OrderType.PICKUP:
        pickup_time = _parse_pickup_time(details.get("pickup_time"))
        if pickup_time is not None and pickup_time <= utc_now():
            errors.append("Pickup time must be in the future")
    if errors:
        raise ValidationFailed(errors[0], errors=errors)


def ensure_details_complete(order_type: OrderType, details: dict) -> None:
    required = (
        DELIVERY_DETAIL_FIELDS
        if order_type == OrderType.DELIVERY
        else PICKUP_DETAIL_FIELDS
    )
    missing = [
        name for name in required if not str(details.get(name) or "").strip()
    ]
    if missing:
        raise ConflictError(
            f"{order_type.value.capitalize()} details are incomplete",
            context={"reason": "incomplete_details", "missing": missing},
        )


def _stored_details(order_type: OrderType, details: dict) -> dict:
    if order_type == OrderType.DELIVERY:
        return {
            name: details.get(name)
            for name in DELIVERY_DETAIL_FIELDS + ("additional_instructions",)
        }
    pickup_time = _parse_pickup_time(details.get("pickup_time"))
    return {
        "contact_number": details.get("contact_number"),
        "pickup_time": pickup_time.astimezone(timezone.utc).isoformat()
        if pickup_time
        else None,
    }


def _build_store_order(
    *,
    customer_id: str,
    store: Store,
    lines: list[_OrderLine],
    order_type: OrderType,
    payment_method: PaymentMethod,
    details: dict,
    notes: Optional[str],
    source: OrderSource = OrderSource.CART,
) -> Order:
    """Build one pending order for a store's share of the checkout."""
    settings = get_settings()
    subtotal = sum((line.subtotal for line in lines), Decimal("0"))
    shipping_fee = Decimal("0")
    estimated_delivery_time = None
    if order_type == OrderType.DELIVERY:
        shipping_fee = sum(
            (Decimal(line.product.shipping_fee or 0) for line in lines), Decimal("0")
        )
        estimated_delivery_time = (
            max(line.product.estimated_time or 0 for line in lines)
            + settings.DELIVERY_ETA_BUFFER_MINUTES
        )

    stored = _stored_details(order_type, details)
    order = Order(
        order_number=Order.generate_order_number(settings.ORDER_NUMBER_PREFIX),
        customer_id=customer_id,
        seller_id=store.owner_id,
        store_id=store.id,
        subtotal=subtotal,
        shipping_fee=shipping_fee,
        total_amount=subtotal + shipping_fee,
        order_type=order_type,
        payment_method=payment_method,
        payment_status=PaymentStatus.PENDING,
        source=source,
        stock_deducted=False,
        delivery_details=stored if order_type == OrderType.DELIVERY else None,
        pickup_details=stored if order_type == OrderType.PICKUP else None,
        estimated_delivery_time=estimated_delivery_time,
        notes=notes,
        items=[
            OrderItem(
                product_id=line.product.id,
                product_snapshot=dict(line.product_snapshot),
                variant_selections=list(line.variant_selections or []),
                quantity=line.quantity,
                unit_price=line.unit_price,
                subtotal=line.subtotal,
                position=position,
            )
            for position, line in enumerate(lines)
        ],
        status_history=[],
    )
    order.record_status(OrderStatus.PENDING, changed_by=customer_id, note="Order placed")
    return order


def _group_by_store(lines: Iterable[_OrderLine]) -> list[tuple[Store, list[_OrderLine]]]:
    groups: dict[uuid.UUID, tuple[Store, list[_OrderLine]]] = {}
    for line in lines:
        store = line.product.store
        groups.setdefault(store.id, (store, []))[1].append(line)
    return list(groups.values())


async def _notify(user_id: str, order: Order, title: str, body: str) -> None:
    await send_notification_safely(
        user_id,
        title=title,
        body=body,
        data={
            "order_id": str(order.id),
            "order_number": order.order_number,
            "status": OrderStatus(order.status).value,
        },
    )


# ============================================================================
# ORDER CREATION
# ============================================================================


async def create_order_from_cart(
    db: AsyncSession,
    *,
    customer_id: str,
    order_type: OrderType,
    selected_product_ids: Iterable,
    payment_method: Optional[PaymentMethod] = None,
    details: Optional[dict] = None,
    notes: Optional[str] = None,
) -> list[Order]:
    """Turn the selected cart lines into one pending order per store.

    Everything happens in one transaction: either every store's order is
    created and the consumed lines leave the cart, or nothing changes.
    """
    order_type = OrderType(order_type)
    method = resolve_payment_method(order_type, payment_method)
    details = dict(details or {})
    check_detail_format(order_type, details)

    selected = {uuid.UUID(str(product_id)) for product_id in selected_product_ids}
    if not selected:
        raise ValidationFailed("Select at least one product to order")

    cart = await get_cart(db, customer_id)
    lines = [item for item in (cart.items if cart else []) if item.product_id in selected]
    if not lines:
        raise ValidationFailed("None of the selected products are in your cart")

    products = await load_products(db, {line.product_id for line in lines})
    created: list[Order] = []

    async with atomic(db):
        order_lines = []
        for line in lines:
            product = products.get(line.product_id)
            if product is None:
                raise ConflictError(
                    f"{line.product_snapshot.get('name', 'A product')} is no longer available",
                    context={
                        "reason": "product_missing",
                        "product_id": str(line.product_id),
                    },
                )
            order_lines.append(
                _OrderLine(
                    product=product,
                    product_snapshot=line.product_snapshot,
                    variant_selections=line.variant_selections,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    subtotal=line.subtotal,
                )
            )

        for store, group in _group_by_store(order_lines):
            ensure_details_complete(order_type, details)
            order = _build_store_order(
                customer_id=customer_id,
                store=store,
                lines=group,
                order_type=order_type,
                payment_method=method,
                details=details,
                notes=notes,
            )
            db.add(order)
            created.append(order)

        for line in lines:
            cart.items.remove(line)
        if cart.items:
            cart.recalculate_totals()
        else:
            await db.delete(cart)

    logger.info(
        "Customer %s placed %d order(s) from cart: %s",
        customer_id,
        len(created),
        ", ".join(order.order_number for order in created),
    )
    for order in created:
        await _notify(
            order.seller_id,
            order,
            "New order",
            f"Order {order.order_number} is waiting for your confirmation.",
        )
    return [await get_order(db, order.id) for order in created]


async def create_direct_order(
    db: AsyncSession,
    *,
    customer_id: str,
    order_type: OrderType,
    items: list[dict],
    payment_method: Optional[PaymentMethod] = None,
    details: Optional[dict] = None,
    notes: Optional[str] = None,
) -> list[Order]:
    """Order products without a cart. Stock is deducted immediately."""
    order_type = OrderType(order_type)
    method = resolve_payment_method(order_type, payment_method)
    details = dict(details or {})
    check_detail_format(order_type, details)

    if not items:
        raise ValidationFailed("At least one item is required")
    requests = []
    for item in items:
        quantity = int(item.get("quantity", 1))
        if quantity < 1:
            raise ValidationFailed("Quantity must be at least 1")
        requests.append(
            StockRequest(
                product_id=uuid.UUID(str(item["product_id"])),
                quantity=quantity,
                selections=list(item.get("variant_selections") or []),
            )
        )

    created: list[Order] = []
    async with atomic(db):
        products = await deduct_stock_bulk(db, requests)

        order_lines = []
        for request in requests:
            product = products[request.product_id]
            snapshots = snapshot_selections(product, request.selections)
            unit_price = calculate_price(product, request.selections)
            order_lines.append(
                _OrderLine(
                    product=product,
                    product_snapshot=snapshot_product(product, snapshots),
                    variant_selections=snapshots,
                    quantity=request.quantity,
                    unit_price=unit_price,
                    subtotal=unit_price * request.quantity,
                )
            )

        for store, group in _group_by_store(order_lines):
            ensure_details_complete(order_type, details)
            order = _build_store_order(
                customer_id=customer_id,
                store=store,
                lines=group,
                order_type=order_type,
                payment_method=method,
                details=details,
                notes=notes,
                source=OrderSource.DIRECT,
            )
            order.stock_deducted = True
            db.add(order)
            created.append(order)

    logger.info(
        "Customer %s placed %d direct order(s)", customer_id, len(created)
    )
    for order in created:
        await _notify(
            order.seller_id,
            order,
            "New order",
            f"Order {order.order_number} is waiting for your confirmation.",
        )
    return [await get_order(db, order.id) for order in created]


# ============================================================================
# SELLER DECISIONS
# ============================================================================


async def accept_order(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    seller_id: str,
    estimated_preparation_time: Optional[int] = None,
    note: Optional[str] = None,
) -> Order:
    """Accept a pending order, deducting its stock unless already deducted.

    Product rows are locked for the deduction; if any item lacks stock the
    whole acceptance is aborted and the order stays pending.
    """
    if estimated_preparation_time is not None and estimated_preparation_time < 1:
        raise ValidationFailed("Estimated preparation time must be at least 1 minute")
    await get_seller_order(db, order_id, seller_id=seller_id)

    async with atomic(db):
        order = await get_order(db, order_id, lock=True)
        ensure_transition(order.status, OrderStatus.ACCEPTED)

        if not order.stock_deducted:
            await deduct_stock_bulk(db, stock_requests_from_items(order.items))
            order.stock_deducted = True

        now = utc_now()
        order.accepted_at = now
        if estimated_preparation_time is not None:
            order.estimated_preparation_time = estimated_preparation_time
            order.estimated_completion_time = now + timedelta(
                minutes=estimated_preparation_time
            )
        if note:
            order.seller_notes = note
        order.record_status(OrderStatus.ACCEPTED, changed_by=seller_id, note=note)

    logger.info("Seller %s accepted order %s", seller_id, order.order_number)
    await _notify(
        order.customer_id,
        order,
        "Order accepted",
        f"Your order {order.order_number} has been accepted.",
    )
    return await get_order(db, order_id)


async def reject_order(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    seller_id: str,
    reason: Optional[str] = None,
) -> Order:
    await get_seller_order(db, order_id, seller_id=seller_id)

    async with atomic(db):
        order = await get_order(db, order_id, lock=True)
        ensure_transition(order.status, OrderStatus.REJECTED)

        if order.stock_deducted:
            await restore_stock_bulk(db, stock_requests_from_items(order.items))
            order.stock_deducted = False

        order.cancellation_reason = reason
        order.canceled_by = CanceledBy.SELLER
        order.record_status(OrderStatus.REJECTED, changed_by=seller_id, note=reason)

    logger.info("Seller %s rejected order %s: %s", seller_id, order.order_number, reason)
    await _notify(
        order.customer_id,
        order,
        "Order rejected",
        f"Your order {order.order_number} was rejected by the store.",
    )
    return await get_order(db, order_id)


async def update_order_status(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    seller_id: str,
    status: OrderStatus,
    note: Optional[str] = None,
    estimated_time: Optional[int] = None,
) -> Order:
    """Move an order along its lifecycle on behalf of the seller.

    ``estimated_time`` is the preparation time when entering ``preparing`` and
    the delivery time when entering ``out_for_delivery``. Accepting requires it
    as the preparation time; otherwise it is ignored.
    """
    status = OrderStatus(status)
    if status == OrderStatus.ACCEPTED:
        if estimated_time is None:
            raise ValidationFailed(
                "Estimated preparation time is required to accept an order"
            )
        return await accept_order(
            db,
            order_id=order_id,
            seller_id=seller_id,
            estimated_preparation_time=estimated_time,
            note=note,
        )
    if status == OrderStatus.REJECTED:
        return await reject_order(db, order_id=order_id, seller_id=seller_id, reason=note)
    if status == OrderStatus.CANCELED:
        raise NotAuthorized("Only the customer can cancel an order")

    await get_seller_order(db, order_id, seller_id=seller_id)

    async with atomic(db):
        order = await get_order(db, order_id, lock=True)
        previous = order.status
        ensure_transition(previous, status)

        now = utc_now()
        if estimated_time is not None:
            if status == OrderStatus.PREPARING:
                order.estimated_preparation_time = estimated_time
                order.estimated_completion_time = now + timedelta(minutes=estimated_time)
            elif status == OrderStatus.OUT_FOR_DELIVERY:
                order.estimated_delivery_time = estimated_time

        if status == OrderStatus.DELIVERED:
            order.delivered_at = now
            if (
                order.payment_method in CASH_PAYMENT_METHODS
                and order.payment_status != PaymentStatus.PAID
            ):
                order.payment_status = PaymentStatus.PAID
                order.paid_at = now

        order.record_status(status, changed_by=seller_id, note=note)

    logger.info(
        "Order %s status %s -> %s by %s",
        order.order_number,
        OrderStatus(previous).value,
        status.value,
        seller_id,
    )
    await _notify(
        order.customer_id,
        order,
        "Order update",
        f"Your order {order.order_number} is now {status.value.replace('_', ' ')}.",
    )
    return await get_order(db, order_id)


# ============================================================================
# CUSTOMER CANCELLATION
# ============================================================================


async def cancel_order(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    customer_id: str,
    reason: Optional[str] = None,
) -> Order:
    """Cancel a pending order and put its items back in the customer's cart."""
    order = await get_order(db, order_id)
    if order.customer_id != customer_id:
        raise NotAuthorized("You can only cancel your own orders")

    async with atomic(db):
        order = await get_order(db, order_id, lock=True)
        ensure_transition(order.status, OrderStatus.CANCELED)

        if order.stock_deducted:
            await restore_stock_bulk(db, stock_requests_from_items(order.items))
            order.stock_deducted = False

        order.canceled_at = utc_now()
        order.cancellation_reason = reason
        order.canceled_by = CanceledBy.CUSTOMER
        order.record_status(OrderStatus.CANCELED, changed_by=customer_id, note=reason)

        cart = await get_or_create_cart(db, customer_id)
        merge_items_into_cart(cart, order.items)

    logger.info("Customer %s canceled order %s", customer_id, order.order_number)
    await _notify(
        order.seller_id,
        order,
        "Order canceled",
        f"Order {order.order_number} was canceled by the customer.",
    )
    return await get_order(db, order_id)


# ============================================================================
# LISTING
# ============================================================================


def _page_bounds(page: int, page_size: Optional[int]) -> tuple[int, int]:
    settings = get_settings()
    if page < 1:
        raise ValidationFailed("Page must be at least 1")
    page_size = page_size or settings.DEFAULT_PAGE_SIZE
    if page_size < 1:
        raise ValidationFailed("Page size must be at least 1")
    return page, min(page_size, settings.MAX_PAGE_SIZE)


def _as_utc(value: datetime) -> datetime:
    return ensure_aware(value).astimezone(timezone.utc)


async def _paginate(
    db: AsyncSession, filters: list, page: int, page_size: Optional[int]
) -> tuple[list[Order], int, int, int]:
    page, page_size = _page_bounds(page, page_size)
    total = (
        await db.execute(select(func.count()).select_from(Order).where(*filters))
    ).scalar_one()
    result = await db.execute(
        order_query()
        .where(*filters)
        .order_by(Order.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total, page, page_size


async def list_customer_orders(
    db: AsyncSession,
    *,
    customer_id: str,
    status: Optional[OrderStatus] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> tuple[list[Order], int, int, int]:
    """Return ``(orders, total, page, page_size)``, newest first."""
    filters = [Order.customer_id == customer_id]
    if status is not None:
        filters.append(Order.status == OrderStatus(status))
    return await _paginate(db, filters, page, page_size)


async def list_seller_orders(
    db: AsyncSession,
    *,
    seller_id: str,
    status: Optional[OrderStatus] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> tuple[list[Order], int, int, int]:
    filters = [Order.seller_id == seller_id]
    if status is not None:
        filters.append(Order.status == OrderStatus(status))
    if date_from is not None:
        filters.append(Order.created_at >= _as_utc(date_from))
    if date_to is not None:
        filters.append(Order.created_at <= _as_utc(date_to))
    return await _paginate(db, filters, page, page_size)
