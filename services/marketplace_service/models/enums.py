"""Enum definitions for marketplace models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class OrderType(str, enum.Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    PREPARING = "preparing"
    READY = "ready"
    READY_FOR_PICKUP = "ready_for_pickup"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELED = "canceled"


class OrderSource(str, enum.Enum):
    CART = "cart"
    DIRECT = "direct"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class PaymentMethod(str, enum.Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    CASH_ON_PICKUP = "cash_on_pickup"
    GCASH = "gcash"
    GCASH_MANUAL = "gcash_manual"


class PaymentProofStatus(str, enum.Enum):
    PENDING_VERIFICATION = "pending_verification"
    APPROVED = "approved"
    REJECTED = "rejected"


class CanceledBy(str, enum.Enum):
    CUSTOMER = "customer"
    SELLER = "seller"


# Payment methods accepted per order type; the first entry is the default.
PAYMENT_METHODS_BY_ORDER_TYPE = {
    OrderType.PICKUP: (
        PaymentMethod.CASH_ON_PICKUP,
        PaymentMethod.GCASH,
        PaymentMethod.GCASH_MANUAL,
    ),
    OrderType.DELIVERY: (
        PaymentMethod.CASH_ON_DELIVERY,
        PaymentMethod.GCASH,
        PaymentMethod.GCASH_MANUAL,
    ),
}

CASH_PAYMENT_METHODS = frozenset(
    {PaymentMethod.CASH_ON_DELIVERY, PaymentMethod.CASH_ON_PICKUP}
)
