"""Marketplace cart router: one cart per customer."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import require_customer
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.marketplace_service.routers._helpers import envelope
from services.marketplace_service.schemas import (
    CartItemAdd,
    CartItemQuantityUpdate,
    CartMutationResponse,
    CartResponse,
    CartSummary,
    CartValidationResponse,
    Envelope,
)
from services.marketplace_service.services import cart_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/cart", tags=["cart"])


def _cart_response(cart, customer_id: str) -> CartResponse:
    if cart is None:
        return CartResponse(customer_id=customer_id)
    return CartResponse.model_validate(cart)


@router.get("", response_model=Envelope[CartResponse])
async def view_cart(
    current_user: AuthUser = Depends(require_customer),
    db: AsyncSession = Depends(get_async_db),
):
    """Get the customer's cart. A missing cart reads as an empty one."""
    cart = await cart_ops.get_cart(db, current_user.user_id)
    return envelope(_cart_response(cart, current_user.user_id))


@router.post(
    "/items",
    response_model=Envelope[CartMutationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_to_cart(
    payload: CartItemAdd,
    current_user: AuthUser = Depends(require_customer),
    db: AsyncSession = Depends(get_async_db),
):
    cart, action = await cart_ops.add_item(
        db,
        customer_id=current_user.user_id,
        product_id=payload.product_id,
        quantity=payload.quantity,
        selections=[s.model_dump() for s in payload.variant_selections],
    )
    message = "Item added to cart" if action == "added" else "Cart item quantity updated"
    return envelope(
        CartMutationResponse(
            action=action, cart=_cart_response(cart, current_user.user_id)
        ),
        message,
    )


@router.patch("/items/{line_id}", response_model=Envelope[CartMutationResponse])
async def update_cart_item(
    line_id: uuid.UUID,
    payload: CartItemQuantityUpdate,
    current_user: AuthUser = Depends(require_customer),
    db: AsyncSession = Depends(get_async_db),
):
    """Change a line's quantity; zero or less removes it."""
    cart, action = await cart_ops.update_item_quantity(
        db,
        customer_id=current_user.user_id,
        line_id=line_id,
        quantity=payload.quantity,
    )
    return envelope(
        CartMutationResponse(
            action=action, cart=_cart_response(cart, current_user.user_id)
        ),
        "Cart updated",
    )


@router.delete("/items/{line_id}", response_model=Envelope[CartMutationResponse])
async def remove_cart_item(
    line_id: uuid.UUID,
    current_user: AuthUser = Depends(require_customer),
    db: AsyncSession = Depends(get_async_db),
):
    cart, action = await cart_ops.remove_item(
        db, customer_id=current_user.user_id, line_id=line_id
    )
    return envelope(
        CartMutationResponse(
            action=action, cart=_cart_response(cart, current_user.user_id)
        ),
        "Item removed from cart",
    )


@router.delete("", response_model=Envelope[CartResponse])
async def clear_cart(
    current_user: AuthUser = Depends(require_customer),
    db: AsyncSession = Depends(get_async_db),
):
    cart = await cart_ops.clear_cart(db, customer_id=current_user.user_id)
    return envelope(_cart_response(cart, current_user.user_id), "Cart cleared")


@router.get("/summary", response_model=Envelope[CartSummary])
async def cart_summary(
    current_user: AuthUser = Depends(require_customer),
    db: AsyncSession = Depends(get_async_db),
):
    summary = await cart_ops.cart_summary(db, customer_id=current_user.user_id)
    return envelope(CartSummary(**summary))


@router.post("/validate", response_model=Envelope[CartValidationResponse])
async def validate_cart(
    current_user: AuthUser = Depends(require_customer),
    db: AsyncSession = Depends(get_async_db),
):
    """Flag stale lines and report price drift before checkout."""
    cart, issues = await cart_ops.validate_items(db, customer_id=current_user.user_id)
    price_changes = await cart_ops.check_price_changes(db, cart)
    valid = not issues and not price_changes
    return envelope(
        CartValidationResponse(
            valid=valid,
            issues=issues,
            price_changes=price_changes,
            cart=_cart_response(cart, current_user.user_id),
        ),
        "Cart is ready for checkout" if valid else "Some items in your cart need attention",
    )
