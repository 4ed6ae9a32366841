"""Order status lifecycle."""

from services.marketplace_service.errors import InvalidTransition
from services.marketplace_service.models import OrderStatus

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.ACCEPTED, OrderStatus.REJECTED, OrderStatus.CANCELED}
    ),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.PREPARING}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY}),
    OrderStatus.READY: frozenset(
        {OrderStatus.READY_FOR_PICKUP, OrderStatus.OUT_FOR_DELIVERY}
    ),
    OrderStatus.READY_FOR_PICKUP: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.CANCELED: frozenset(),
    OrderStatus.DELIVERED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: OrderStatus, requested: OrderStatus) -> None:
    """Raise ``InvalidTransition`` unless ``current -> requested`` is allowed."""
    if not can_transition(current, requested):
        raise InvalidTransition(
            OrderStatus(current).value, OrderStatus(requested).value
        )
