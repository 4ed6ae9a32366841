"""Shared helpers for marketplace routers."""

from typing import Any, Optional

from services.marketplace_service.models import Order, OrderType
from services.marketplace_service.schemas import OrderListResponse, OrderResponse


def envelope(data: Any = None, message: Optional[str] = None) -> dict:
    """Wrap a successful result in the standard response envelope."""
    return {"success": True, "message": message, "data": data, "error": None}


def placement_details(request) -> dict:
    """Pick the details block that matches the requested order type."""
    if request.order_type == OrderType.DELIVERY:
        details = request.delivery_details
    else:
        details = request.pickup_details
    return details.model_dump() if details else {}


def order_page(orders: list[Order], total: int, page: int, page_size: int) -> OrderListResponse:
    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        page=page,
        page_size=page_size,
    )
