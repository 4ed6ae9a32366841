"""Payment reconciliation: manual transfer proofs and gateway confirmations."""

import uuid
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from libs.common.service_client import send_notification_safely
from services.marketplace_service.errors import (
    ConflictError,
    NotAuthorized,
    ValidationFailed,
)
from services.marketplace_service.models import (
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentProof,
    PaymentProofStatus,
    PaymentStatus,
)
from services.marketplace_service.services.order_ops import (
    get_order,
    get_seller_order,
)
from services.marketplace_service.services.transaction import atomic
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

CLOSED_STATUSES = frozenset({OrderStatus.CANCELED, OrderStatus.REJECTED})


def _ensure_manual_payment(order: Order) -> None:
    if order.payment_method != PaymentMethod.GCASH_MANUAL:
        raise ValidationFailed("This order does not use manual GCash payment")


def _pending_proof(order: Order) -> PaymentProof:
    proof = order.payment_proof
    if proof is None:
        raise ConflictError(
            "No payment proof has been uploaded for this order",
            context={"reason": "proof_missing"},
        )
    if proof.status != PaymentProofStatus.PENDING_VERIFICATION:
        raise ConflictError(
            f"Payment proof is already {proof.status.value}",
            context={"reason": "proof_reviewed", "current": proof.status.value},
        )
    return proof


async def upload_payment_proof(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    customer_id: str,
    reference: str,
    proof_image_url: str,
) -> Order:
    """Attach (or replace) the customer's transfer proof.

    A proof may be replaced while it awaits review or after it was rejected;
    an approved proof is final.
    """
    reference = (reference or "").strip()
    if not reference:
        raise ValidationFailed("Payment reference is required")
    if not proof_image_url:
        raise ValidationFailed("Proof image is required")

    order = await get_order(db, order_id)
    if order.customer_id != customer_id:
        raise NotAuthorized("You can only pay for your own orders")
    _ensure_manual_payment(order)

    async with atomic(db):
        order = await get_order(db, order_id, lock=True)
        if order.status in CLOSED_STATUSES:
            raise ConflictError(
                f"Cannot upload payment proof for a {order.status.value} order",
                context={"reason": "order_closed", "current": order.status.value},
            )
        if order.payment_status == PaymentStatus.PAID:
            raise ConflictError(
                "This order is already paid", context={"reason": "already_paid"}
            )

        proof = order.payment_proof
        if proof is None:
            order.payment_proof = PaymentProof(
                reference=reference, proof_image_url=proof_image_url
            )
        else:
            if proof.status == PaymentProofStatus.APPROVED:
                raise ConflictError(
                    "Payment proof has already been approved",
                    context={"reason": "proof_reviewed", "current": proof.status.value},
                )
            proof.reference = reference
            proof.proof_image_url = proof_image_url
            proof.status = PaymentProofStatus.PENDING_VERIFICATION
            proof.uploaded_at = utc_now()
            proof.reviewed_at = None
            proof.reviewed_by = None
            proof.rejection_reason = None
        order.payment_status = PaymentStatus.PENDING

    logger.info("Payment proof %s uploaded for order %s", reference, order.order_number)
    await send_notification_safely(
        order.seller_id,
        title="Payment proof received",
        body=f"Order {order.order_number} has a payment proof to review.",
        data={"order_id": str(order.id), "order_number": order.order_number},
    )
    return await get_order(db, order_id)


async def approve_payment_proof(
    db: AsyncSession, *, order_id: uuid.UUID, seller_id: str
) -> Order:
    order = await get_seller_order(db, order_id, seller_id=seller_id)
    _ensure_manual_payment(order)

    async with atomic(db):
        order = await get_order(db, order_id, lock=True)
        proof = _pending_proof(order)
        now = utc_now()
        proof.status = PaymentProofStatus.APPROVED
        proof.reviewed_at = now
        proof.reviewed_by = seller_id
        order.payment_status = PaymentStatus.PAID
        order.paid_at = now
        order.payment_reference = proof.reference

    logger.info("Seller %s approved payment for order %s", seller_id, order.order_number)
    await send_notification_safely(
        order.customer_id,
        title="Payment confirmed",
        body=f"Your payment for order {order.order_number} was confirmed.",
        data={"order_id": str(order.id), "order_number": order.order_number},
    )
    return await get_order(db, order_id)


async def reject_payment_proof(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    seller_id: str,
    reason: str,
) -> Order:
    if not (reason or "").strip():
        raise ValidationFailed("A reason is required to reject a payment proof")
    order = await get_seller_order(db, order_id, seller_id=seller_id)
    _ensure_manual_payment(order)

    async with atomic(db):
        order = await get_order(db, order_id, lock=True)
        proof = _pending_proof(order)
        proof.status = PaymentProofStatus.REJECTED
        proof.reviewed_at = utc_now()
        proof.reviewed_by = seller_id
        proof.rejection_reason = reason
        order.payment_status = PaymentStatus.FAILED

    logger.info(
        "Seller %s rejected payment proof for order %s: %s",
        seller_id,
        order.order_number,
        reason,
    )
    await send_notification_safely(
        order.customer_id,
        title="Payment proof rejected",
        body=f"Your payment proof for order {order.order_number} was rejected: {reason}",
        data={"order_id": str(order.id), "order_number": order.order_number},
    )
    return await get_order(db, order_id)


async def mark_order_paid(
    db: AsyncSession, *, order_id: uuid.UUID, reference: Optional[str] = None
) -> Order:
    """Record a gateway payment confirmation. Replays are no-ops."""
    order = await get_order(db, order_id)
    if order.payment_method != PaymentMethod.GCASH:
        raise ValidationFailed("This order is not paid through the online gateway")
    if order.payment_status == PaymentStatus.PAID:
        logger.info("Order %s already paid, ignoring callback", order.order_number)
        return order

    async with atomic(db):
        order = await get_order(db, order_id, lock=True)
        if order.payment_status != PaymentStatus.PAID:
            if order.status in CLOSED_STATUSES:
                raise ConflictError(
                    f"Cannot confirm payment for a {order.status.value} order",
                    context={"reason": "order_closed", "current": order.status.value},
                )
            order.payment_status = PaymentStatus.PAID
            order.paid_at = utc_now()
            if reference:
                order.payment_reference = reference

    logger.info("Order %s marked paid (ref=%s)", order.order_number, reference)
    return await get_order(db, order_id)
