"""Marketplace service routers package."""

from services.marketplace_service.routers.cart import router as cart_router
from services.marketplace_service.routers.catalog import router as catalog_router
from services.marketplace_service.routers.internal import router as internal_router
from services.marketplace_service.routers.orders import router as orders_router
from services.marketplace_service.routers.seller_orders import (
    router as seller_orders_router,
)

__all__ = [
    "cart_router",
    "catalog_router",
    "internal_router",
    "orders_router",
    "seller_orders_router",
]
