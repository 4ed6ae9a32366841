"""Marketplace seller order router: order queue, decisions, lifecycle, payment review."""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_seller
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.marketplace_service.models import OrderStatus
from services.marketplace_service.routers._helpers import envelope, order_page
from services.marketplace_service.schemas import (
    AcceptOrderRequest,
    Envelope,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    PaymentProofReject,
    RejectOrderRequest,
)
from services.marketplace_service.services import order_ops, payment_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/seller/orders", tags=["seller"])


@router.get("", response_model=Envelope[OrderListResponse])
async def list_store_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    current_user: AuthUser = Depends(require_seller),
    db: AsyncSession = Depends(get_async_db),
):
    """List orders placed with the seller's store, newest first."""
    orders, total, page, page_size = await order_ops.list_seller_orders(
        db,
        seller_id=current_user.user_id,
        status=order_status,
        date_from=date_from,
        date_to=date_to,
        page=page,
        page_size=page_size,
    )
    return envelope(order_page(orders, total, page, page_size))


@router.post("/{order_id}/accept", response_model=Envelope[OrderResponse])
async def accept_order(
    order_id: uuid.UUID,
    payload: AcceptOrderRequest,
    current_user: AuthUser = Depends(require_seller),
    db: AsyncSession = Depends(get_async_db),
):
    order = await order_ops.accept_order(
        db,
        order_id=order_id,
        seller_id=current_user.user_id,
        estimated_preparation_time=payload.estimated_preparation_time,
        note=payload.note,
    )
    return envelope(OrderResponse.model_validate(order), "Order accepted")


@router.post("/{order_id}/reject", response_model=Envelope[OrderResponse])
async def reject_order(
    order_id: uuid.UUID,
    payload: RejectOrderRequest,
    current_user: AuthUser = Depends(require_seller),
    db: AsyncSession = Depends(get_async_db),
):
    order = await order_ops.reject_order(
        db,
        order_id=order_id,
        seller_id=current_user.user_id,
        reason=payload.reason,
    )
    return envelope(OrderResponse.model_validate(order), "Order rejected")


@router.patch("/{order_id}/status", response_model=Envelope[OrderResponse])
async def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    current_user: AuthUser = Depends(require_seller),
    db: AsyncSession = Depends(get_async_db),
):
    order = await order_ops.update_order_status(
        db,
        order_id=order_id,
        seller_id=current_user.user_id,
        status=payload.status,
        note=payload.note,
        estimated_time=payload.estimated_time,
    )
    return envelope(
        OrderResponse.model_validate(order),
        f"Order status updated to {payload.status.value}",
    )


# ============================================================================
# PAYMENT REVIEW
# ============================================================================


@router.post(
    "/{order_id}/payment-proof/approve", response_model=Envelope[OrderResponse]
)
async def approve_payment_proof(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_seller),
    db: AsyncSession = Depends(get_async_db),
):
    order = await payment_ops.approve_payment_proof(
        db, order_id=order_id, seller_id=current_user.user_id
    )
    return envelope(OrderResponse.model_validate(order), "Payment approved")


@router.post(
    "/{order_id}/payment-proof/reject", response_model=Envelope[OrderResponse]
)
async def reject_payment_proof(
    order_id: uuid.UUID,
    payload: PaymentProofReject,
    current_user: AuthUser = Depends(require_seller),
    db: AsyncSession = Depends(get_async_db),
):
    order = await payment_ops.reject_payment_proof(
        db,
        order_id=order_id,
        seller_id=current_user.user_id,
        reason=payload.reason,
    )
    return envelope(OrderResponse.model_validate(order), "Payment proof rejected")
