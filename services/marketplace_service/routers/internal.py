"""Internal service-to-service endpoints (service-role JWT only)."""

import uuid

from fastapi import APIRouter, Depends
from libs.auth.dependencies import require_service_role
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.marketplace_service.routers._helpers import envelope
from services.marketplace_service.schemas import (
    Envelope,
    OrderResponse,
    PaymentConfirmation,
)
from services.marketplace_service.services import payment_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/internal", tags=["internal"])


@router.post("/orders/{order_id}/paid", response_model=Envelope[OrderResponse])
async def confirm_order_payment(
    order_id: uuid.UUID,
    payload: PaymentConfirmation,
    _service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Payment gateway confirmation; safe to replay."""
    order = await payment_ops.mark_order_paid(
        db, order_id=order_id, reference=payload.reference
    )
    return envelope(OrderResponse.model_validate(order), "Payment recorded")
