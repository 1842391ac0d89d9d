# Overview: Error taxonomy shared by the order and inventory services.

"""
Error kinds surfaced by the order/inventory core.

- ValidationFailed: malformed input, rejected before any transaction opens.
- BusinessRuleError subclasses: rule violations raised inside or around a
  transaction. The transaction is rolled back; callers map each kind to a
  distinct response and must not retry automatically.
- InconsistentTotals: an order failed its own totals check. Internal
  fault; the transaction is rolled back.
- PersistenceFailure: store/transport failure after rollback. Nothing
  partial was committed, so the whole operation is safe to retry.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Shortfall:
    """Requested vs. available stock for one order line target."""
    product_id: int
    variant_id: int | None
    requested: int
    available: int

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "requested": self.requested,
            "available": self.available,
        }


class ValidationFailed(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class BusinessRuleError(Exception):
    """Base for named business-rule violations."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class EntityNotFound(BusinessRuleError):
    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} not found", {"entity": entity, "id": entity_id})
        self.entity = entity
        self.entity_id = entity_id


class OrderNotFound(EntityNotFound):
    def __init__(self, order_id):
        super().__init__("Order", order_id)


class InvalidTransition(BusinessRuleError):
    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            f"Cannot transition from {from_status} to {to_status}",
            {"from_status": from_status, "to_status": to_status},
        )
        self.from_status = from_status
        self.to_status = to_status


class InsufficientStock(BusinessRuleError):
    def __init__(self, shortfalls: list):
        product_ids = ", ".join(str(s.product_id) for s in shortfalls)
        super().__init__(
            f"Insufficient stock for products: {product_ids}",
            {"items": [s.to_dict() for s in shortfalls]},
        )
        self.shortfalls = list(shortfalls)


class CannotCancel(BusinessRuleError):
    def __init__(self, current_status: str):
        super().__init__(
            f"Cannot cancel order with status: {current_status}",
            {"status": current_status},
        )
        self.current_status = current_status


class ActorNotPermitted(BusinessRuleError):
    def __init__(self, role: str, target_status: str):
        super().__init__(
            f"Role {role} may not move an order to {target_status}",
            {"role": role, "status": target_status},
        )
        self.role = role
        self.target_status = target_status


class PersistenceFailure(Exception):
    """Raised when the store rejects or loses a transaction."""


class InconsistentTotals(Exception):
    """An order's stored totals disagree with its components or lines."""

    def __init__(self, order_number: str | None, message: str, details: dict | None = None):
        super().__init__(message)
        self.order_number = order_number
        self.message = message
        self.details = details or {}
