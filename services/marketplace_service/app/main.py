"""FastAPI application for the Marketplace Service."""

from fastapi import FastAPI
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.marketplace_service.routers import (
    cart_router,
    catalog_router,
    internal_router,
    orders_router,
    seller_orders_router,
)


def create_app() -> FastAPI:
    """Create and configure the Marketplace Service FastAPI app."""
    app = FastAPI(
        title="Marketplace Service",
        version="0.1.0",
        description="Multi-seller food ordering - catalog, cart, orders, payment reconciliation.",
    )

    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "marketplace"}

    # Customer routes
    app.include_router(catalog_router)
    app.include_router(cart_router)
    app.include_router(orders_router)

    # Seller routes
    app.include_router(seller_orders_router)

    # Service-to-service
    app.include_router(internal_router)

    return app


app = create_app()
