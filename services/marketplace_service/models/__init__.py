"""Marketplace Service models package."""

from services.marketplace_service.models.catalog import (
    Product,
    Store,
    VariantCategory,
    VariantChoice,
)
from services.marketplace_service.models.commerce import (
    Cart,
    CartItem,
    Order,
    OrderItem,
    OrderStatusHistory,
    PaymentProof,
    selection_key,
)
from services.marketplace_service.models.enums import (
    CASH_PAYMENT_METHODS,
    PAYMENT_METHODS_BY_ORDER_TYPE,
    CanceledBy,
    OrderSource,
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentProofStatus,
    PaymentStatus,
)

__all__ = [
    "CASH_PAYMENT_METHODS",
    "PAYMENT_METHODS_BY_ORDER_TYPE",
    "CanceledBy",
    "Cart",
    "CartItem",
    "Order",
    "OrderItem",
    "OrderSource",
    "OrderStatus",
    "OrderStatusHistory",
    "OrderType",
    "PaymentMethod",
    "PaymentProof",
    "PaymentProofStatus",
    "PaymentStatus",
    "Product",
    "Store",
    "VariantCategory",
    "VariantChoice",
    "selection_key",
]
