# Overview: Order status state machine; pure state mutation, no inventory effects.

"""
Order Status State Machine

    pending ----> processing ----> shipped ----> delivered
       |              |               |              |
       +--> cancelled <+              +--> returned <+

RULES:
1. Only transitions listed in TRANSITIONS are legal; anything else raises
   InvalidTransition and leaves the order untouched.
2. cancelled and returned are terminal.
3. Entering shipped / delivered / cancelled stamps the matching timestamp.
4. This module never touches inventory. Restocking on cancel/return is the
   order service's job, so the table can be tested on its own.
"""

from __future__ import annotations

from ..errors import InvalidTransition, ValidationFailed
from ..extensions import db
from ..models import ORDER_STATUSES, Order
from ..time_utils import utcnow

TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"processing", "cancelled"}),
    "processing": frozenset({"shipped", "cancelled"}),
    "shipped": frozenset({"delivered", "returned"}),
    "delivered": frozenset({"returned"}),
    "cancelled": frozenset(),
    "returned": frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)
CANCELLABLE_STATUSES = frozenset({"pending", "processing"})

STATUS_TIMESTAMPS = {
    "shipped": "shipped_at",
    "delivered": "delivered_at",
    "cancelled": "cancelled_at",
}


def validate_status(status: str) -> None:
    if status not in ORDER_STATUSES:
        raise ValidationFailed(
            f"Invalid status '{status}'. Must be one of: {', '.join(ORDER_STATUSES)}"
        )


def can_transition(from_status: str, to_status: str) -> bool:
    validate_status(from_status)
    validate_status(to_status)
    return to_status in TRANSITIONS[from_status]


def can_cancel(order: Order) -> bool:
    return order.status in CANCELLABLE_STATUSES


def apply_transition(order: Order, new_status: str) -> Order:
    """
    Move order to new_status, stamping the matching timestamp, and flush.

    Raises InvalidTransition without modifying the order when the move is
    not in the table.
    """
    if not can_transition(order.status, new_status):
        raise InvalidTransition(order.status, new_status)

    order.status = new_status
    stamp = STATUS_TIMESTAMPS.get(new_status)
    if stamp:
        setattr(order, stamp, utcnow())

    db.session.flush()
    return order
