"""Marketplace customer order router: checkout, order history, cancellation, payment proof."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import get_current_user, require_customer
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.marketplace_service.models import OrderStatus
from services.marketplace_service.routers._helpers import (
    envelope,
    order_page,
    placement_details,
)
from services.marketplace_service.schemas import (
    CancelOrderRequest,
    CheckoutRequest,
    CheckoutResponse,
    DirectOrderRequest,
    Envelope,
    OrderListResponse,
    OrderResponse,
    PaymentProofUpload,
)
from services.marketplace_service.services import order_ops, payment_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/orders", tags=["orders"])


def _checkout_response(orders) -> CheckoutResponse:
    return CheckoutResponse(orders=[OrderResponse.model_validate(o) for o in orders])


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post(
    "/from-cart",
    response_model=Envelope[CheckoutResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_orders_from_cart(
    payload: CheckoutRequest,
    current_user: AuthUser = Depends(require_customer),
    db: AsyncSession = Depends(get_async_db),
):
    """Place one order per store for the selected cart products."""
    orders = await order_ops.create_order_from_cart(
        db,
        customer_id=current_user.user_id,
        order_type=payload.order_type,
        selected_product_ids=payload.selected_product_ids,
        payment_method=payload.payment_method,
        details=placement_details(payload),
        notes=payload.notes,
    )
    return envelope(
        _checkout_response(orders), f"{len(orders)} order(s) placed successfully"
    )


@router.post(
    "/direct",
    response_model=Envelope[CheckoutResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_direct_order(
    payload: DirectOrderRequest,
    current_user: AuthUser = Depends(require_customer),
    db: AsyncSession = Depends(get_async_db),
):
    orders = await order_ops.create_direct_order(
        db,
        customer_id=current_user.user_id,
        order_type=payload.order_type,
        items=[item.model_dump() for item in payload.items],
        payment_method=payload.payment_method,
        details=placement_details(payload),
        notes=payload.notes,
    )
    return envelope(
        _checkout_response(orders), f"{len(orders)} order(s) placed successfully"
    )


# ============================================================================
# ORDERS
# ============================================================================


@router.get("/mine", response_model=Envelope[OrderListResponse])
async def list_my_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    current_user: AuthUser = Depends(require_customer),
    db: AsyncSession = Depends(get_async_db),
):
    orders, total, page, page_size = await order_ops.list_customer_orders(
        db,
        customer_id=current_user.user_id,
        status=order_status,
        page=page,
        page_size=page_size,
    )
    return envelope(order_page(orders, total, page, page_size))


@router.get("/{order_id}", response_model=Envelope[OrderResponse])
async def get_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Order details for its customer or its seller."""
    order = await order_ops.get_order_details(
        db, order_id=order_id, user_id=current_user.user_id
    )
    return envelope(OrderResponse.model_validate(order))


@router.post("/{order_id}/cancel", response_model=Envelope[OrderResponse])
async def cancel_order(
    order_id: uuid.UUID,
    payload: CancelOrderRequest,
    current_user: AuthUser = Depends(require_customer),
    db: AsyncSession = Depends(get_async_db),
):
    """Cancel a pending order; its items go back into the cart."""
    order = await order_ops.cancel_order(
        db,
        order_id=order_id,
        customer_id=current_user.user_id,
        reason=payload.reason,
    )
    return envelope(
        OrderResponse.model_validate(order),
        "Order canceled and items returned to your cart",
    )


@router.post("/{order_id}/payment-proof", response_model=Envelope[OrderResponse])
async def upload_payment_proof(
    order_id: uuid.UUID,
    payload: PaymentProofUpload,
    current_user: AuthUser = Depends(require_customer),
    db: AsyncSession = Depends(get_async_db),
):
    order = await payment_ops.upload_payment_proof(
        db,
        order_id=order_id,
        customer_id=current_user.user_id,
        reference=payload.reference,
        proof_image_url=payload.proof_image_url,
    )
    return envelope(
        OrderResponse.model_validate(order), "Payment proof submitted for review"
    )
