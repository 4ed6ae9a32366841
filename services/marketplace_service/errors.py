"""Error types raised by marketplace operations.

Every error is an ``HTTPException`` so routers can let it propagate; the app's
exception handlers render it into the standard response envelope using
``category`` and ``context``.
"""

from typing import Any, Optional

from fastapi import HTTPException, status


class MarketplaceError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    category = "error"

    def __init__(
        self,
        message: str,
        *,
        context: Optional[dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(status_code=status_code or self.status_code, detail=message)
        self.message = message
        self.context = context or {}

    def to_error(self) -> dict[str, Any]:
        return {"category": self.category, **self.context}


class ValidationFailed(MarketplaceError):
    """Input rejected before any write was attempted."""

    status_code = status.HTTP_400_BAD_REQUEST
    category = "validation"

    def __init__(self, message: str, *, errors: Optional[list[str]] = None, **kwargs):
        errors = list(errors or [message])
        context = {"errors": errors, **(kwargs.pop("context", None) or {})}
        super().__init__(message, context=context, **kwargs)
        self.errors = errors


class NotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    category = "not_found"


class NotAuthorized(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    category = "authorization"


class ConflictError(MarketplaceError):
    """Business-state conflict: insufficient stock, illegal transition, etc."""

    status_code = status.HTTP_409_CONFLICT
    category = "conflict"


class InsufficientStock(ConflictError):
    def __init__(
        self,
        message: str,
        *,
        available: int,
        requested: int,
        product_id: Optional[str] = None,
        choice: Optional[str] = None,
    ):
        context: dict[str, Any] = {
            "reason": "insufficient_stock",
            "available": available,
            "requested": requested,
        }
        if product_id is not None:
            context["product_id"] = product_id
        if choice is not None:
            context["choice"] = choice
        super().__init__(message, context=context)
        self.available = available
        self.requested = requested


class InvalidTransition(ConflictError):
    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot change order status from {current} to {requested}",
            context={
                "reason": "invalid_transition",
                "current": current,
                "requested": requested,
            },
        )
        self.current = current
        self.requested = requested


class TransactionFailed(MarketplaceError):
    """The database aborted the unit of work; safe for the caller to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    category = "transient"

    def __init__(self, message: str = "Transaction failed, please retry", **kwargs):
        context = {"retryable": True, **(kwargs.pop("context", None) or {})}
        super().__init__(message, context=context, **kwargs)
