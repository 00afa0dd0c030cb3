# storefront/domain/order_status.py
from enum import Enum
from typing import Dict, FrozenSet

from storefront.domain.errors import InvalidStatusTransitionError, ValidationError


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# forward edges only, CANCELLED from every non-terminal state
ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value.upper())
    except (ValueError, AttributeError):
        raise ValidationError(f"Unknown order status: {value!r}", code="UNKNOWN_STATUS")


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def transition(current: OrderStatus | str, target: OrderStatus | str) -> OrderStatus:
    """Validate a status change and return the new status.

    Re-applying the current status is a no-op and returns it unchanged.
    """
    current = parse_status(current) if isinstance(current, str) else current
    target = parse_status(target) if isinstance(target, str) else target

    if current == target:
        return current
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(current.value, target.value)
    return target
