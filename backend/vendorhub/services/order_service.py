# Overview: Order orchestrator; the only code that combines order mutation with ledger postings.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import (
    ActorNotPermitted,
    CannotCancel,
    InsufficientStock,
    OrderNotFound,
    ValidationFailed,
)
from ..extensions import db
from ..models import PAYMENT_STATUSES, Order, OrderItem, Product, ProductVariant, User
from ..time_utils import utcnow
from ..validation import validate_order_items, validate_order_request
from . import order_state, side_effects
from .availability import StockAvailabilityChecker
from .concurrency import begin_write, lock_for_update, run_in_transaction
from .document_service import generate_order_number
from .inventory_ledger import InventoryLedger
from .pricing import PricingPolicy, compute_totals, ensure_totals_consistent
"""
Order Orchestrator Rules

- Every mutation runs in exactly one transaction (run_in_transaction): the
  order row, its items, the ledger entries and the cached stock balances
  commit together or not at all.
- Stock is re-checked after the ledger targets are locked, inside the same
  transaction that deducts it. A check made before the transaction is
  advisory only.
- Cancel and return restore exactly what the order moved, read back from
  the order's own ledger entries.
- Notifications and invoice generation are deferred and dispatched after
  COMMIT; a rolled back operation enqueues nothing.
"""

# Which target statuses each actor role may drive through update_status.
# Customers only ever cancel, via cancel_order.
ROLE_TRANSITIONS: dict[str, frozenset[str]] = {
    "admin": frozenset(order_state.TRANSITIONS),
    "system": frozenset(order_state.TRANSITIONS),
    "vendor": frozenset({"processing", "shipped"}),
    "customer": frozenset(),
}

RESTOCK_STATUSES = frozenset({"cancelled", "returned"})


@dataclass
class _ResolvedLine:
    product: Product
    variant: ProductVariant | None
    quantity: int

    @property
    def unit_price_cents(self) -> int:
        if self.variant is not None:
            return self.variant.current_price_cents()
        return self.product.current_price_cents()

    @property
    def subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity


class OrderService:
    """
    Order lifecycle operations.

    Collaborators are passed in explicitly (see vendorhub.wiring); the
    actor is an explicit argument on every call.
    """

    def __init__(
        self,
        ledger: InventoryLedger,
        availability: StockAvailabilityChecker,
        dispatcher=None,
        pricing: PricingPolicy | None = None,
    ):
        self._ledger = ledger
        self._availability = availability
        self._dispatcher = dispatcher
        self._pricing = pricing or PricingPolicy()

    # ------------------------------------------------------------------ reads

    def get_order(self, order_id: int) -> Order | None:
        return db.session.get(Order, order_id)

    def check_availability(self, items) -> list:
        """Advisory stock check; see StockAvailabilityChecker."""
        return self._availability.check_availability(validate_order_items(items))

    # ----------------------------------------------------------------- create

    def create_order(
        self,
        customer_id,
        items,
        shipping_info: dict | None = None,
        payment_method: str | None = None,
        notes: str | None = None,
        *,
        tax_cents=None,
        shipping_cost_cents=None,
        discount_cents=None,
        actor_id: int | None = None,
    ) -> Order:
        """
        Create a pending order, deduct its stock, and queue the follow-up work.

        Raises ValidationFailed for malformed input or unknown products,
        InsufficientStock when any line cannot be covered (nothing persists).
        """
        request = validate_order_request(
            customer_id=customer_id,
            items=items,
            shipping_info=shipping_info,
            payment_method=payment_method,
            notes=notes,
            tax_cents=tax_cents,
            shipping_cost_cents=shipping_cost_cents,
            discount_cents=discount_cents,
        )
        actor = actor_id if actor_id is not None else request["customer_id"]

        def _op():
            begin_write()

            customer = db.session.get(User, request["customer_id"])
            if customer is None or not customer.is_active:
                raise ValidationFailed(
                    f"Customer {request['customer_id']} not found",
                    {"customer_id": request["customer_id"]},
                )

            lines = [self._resolve_line(item) for item in request["items"]]

            tracked = [
                (line.product.id, line.variant.id if line.variant else None)
                for line in lines
                if line.product.track_inventory
            ]
            self._ledger.lock_targets(tracked)

            shortfalls = self._availability.check_availability(request["items"])
            if shortfalls:
                raise InsufficientStock(shortfalls)

            subtotal = sum(line.subtotal_cents for line in lines)
            totals = compute_totals(
                subtotal,
                self._pricing,
                tax_cents=request["tax_cents"],
                shipping_cost_cents=request["shipping_cost_cents"],
                discount_cents=request["discount_cents"],
            )

            order = Order(
                order_number=generate_order_number(),
                customer_id=customer.id,
                status="pending",
                payment_status="pending",
                payment_method=request["payment_method"],
                subtotal_cents=totals.subtotal_cents,
                tax_cents=totals.tax_cents,
                shipping_cost_cents=totals.shipping_cost_cents,
                discount_cents=totals.discount_cents,
                total_cents=totals.total_cents,
                notes=request["notes"],
                **request["shipping"],
            )
            db.session.add(order)
            db.session.flush()

            for line in lines:
                order.items.append(
                    OrderItem(
                        product_id=line.product.id,
                        variant_id=line.variant.id if line.variant else None,
                        vendor_id=line.product.vendor_id,
                        product_name=line.product.name,
                        product_sku=line.variant.sku if line.variant else line.product.sku,
                        variant_name=line.variant.name if line.variant else None,
                        quantity=line.quantity,
                        unit_price_cents=line.unit_price_cents,
                        subtotal_cents=line.subtotal_cents,
                    )
                )
            db.session.flush()

            for line in lines:
                if not line.product.track_inventory:
                    continue
                self._ledger.post(
                    product_id=line.product.id,
                    variant_id=line.variant.id if line.variant else None,
                    transaction_type="sale",
                    quantity=-line.quantity,
                    actor_id=actor,
                    order_id=order.id,
                    reference=order.order_number,
                    notes="Inventory deducted for order",
                )

            ensure_totals_consistent(order)

            side_effects.defer("send_order_notification", order_id=order.id, event="created")
            side_effects.defer("generate_invoice", order_id=order.id)
            return order

        order = run_in_transaction(_op, dispatcher=self._dispatcher)
        current_app.logger.info(
            "Order created %s customer=%s items=%s total_cents=%s",
            order.order_number, order.customer_id, len(order.items), order.total_cents,
        )
        return order

    def _resolve_line(self, item: dict) -> _ResolvedLine:
        product = db.session.get(Product, item["product_id"])
        if product is None or not product.is_active:
            raise ValidationFailed(
                f"Product {item['product_id']} not found",
                {"product_id": item["product_id"]},
            )

        variant = None
        if item["variant_id"] is not None:
            variant = db.session.get(ProductVariant, item["variant_id"])
            if variant is None or variant.product_id != product.id or not variant.is_active:
                raise ValidationFailed(
                    f"Variant {item['variant_id']} not found for product {product.id}",
                    {"product_id": product.id, "variant_id": item["variant_id"]},
                )

        return _ResolvedLine(product=product, variant=variant, quantity=item["quantity"])

    # ----------------------------------------------------------------- status

    def update_status(
        self,
        order_id: int,
        new_status: str,
        actor_role: str,
        *,
        actor_id: int | None = None,
        notes: str | None = None,
    ) -> Order:
        """
        Drive an order through the state machine on behalf of actor_role.

        Raises OrderNotFound, ActorNotPermitted (role matrix) or
        InvalidTransition (transition table). Entering cancelled/returned
        restores the order's stock in the same transaction.
        """
        order_state.validate_status(new_status)
        if actor_role not in ROLE_TRANSITIONS:
            raise ValidationFailed(f"Unknown actor role '{actor_role}'")

        def _op():
            begin_write()
            order = self._load_order(order_id, lock=True)

            if new_status not in ROLE_TRANSITIONS[actor_role]:
                raise ActorNotPermitted(actor_role, new_status)

            old_status = order.status
            self._transition(order, new_status, actor_id=actor_id, notes=notes)

            if new_status == "shipped":
                side_effects.defer("generate_invoice", order_id=order.id)
            side_effects.defer(
                "send_order_notification",
                order_id=order.id,
                event="status_updated",
                old_status=old_status,
            )
            return order, old_status

        order, old_status = run_in_transaction(_op, dispatcher=self._dispatcher)
        current_app.logger.info(
            "Order %s status %s -> %s by %s", order.order_number, old_status, new_status, actor_role,
        )
        return order

    def cancel_order(
        self,
        order_id: int,
        reason: str | None = None,
        *,
        actor_id: int | None = None,
        actor_role: str = "system",
    ) -> Order:
        """
        Cancel a pending/processing order and restore its stock.

        A customer may cancel only their own order. Raises OrderNotFound,
        CannotCancel or ActorNotPermitted.
        """
        if actor_role not in ROLE_TRANSITIONS:
            raise ValidationFailed(f"Unknown actor role '{actor_role}'")

        def _op():
            begin_write()
            order = self._load_order(order_id, lock=True)

            if actor_role == "customer" and order.customer_id != actor_id:
                raise ActorNotPermitted(actor_role, "cancelled")
            if actor_role == "vendor":
                raise ActorNotPermitted(actor_role, "cancelled")
            if not order_state.can_cancel(order):
                raise CannotCancel(order.status)

            old_status = order.status
            self._transition(order, "cancelled", actor_id=actor_id, notes=reason)
            side_effects.defer(
                "send_order_notification",
                order_id=order.id,
                event="cancelled",
                old_status=old_status,
            )
            return order

        order = run_in_transaction(_op, dispatcher=self._dispatcher)
        current_app.logger.info("Order %s cancelled by %s", order.order_number, actor_role)
        return order

    def _transition(self, order: Order, new_status: str, *, actor_id, notes) -> None:
        order_state.apply_transition(order, new_status)
        if notes:
            order.notes = notes

        if new_status in RESTOCK_STATUSES:
            self._restock(order, actor_id)

        if new_status == "cancelled" and order.invoice is not None and order.invoice.status != "paid":
            order.invoice.status = "cancelled"

        db.session.flush()
        ensure_totals_consistent(order)

    def _restock(self, order: Order, actor_id) -> None:
        """Post a 'return' entry reversing every net deduction this order made."""
        note = "Inventory restored - order cancelled" if order.status == "cancelled" else "Inventory restored - order returned"
        for (product_id, variant_id), net in self._ledger.order_net_quantities(order.id).items():
            if net >= 0:
                continue
            self._ledger.post(
                product_id=product_id,
                variant_id=variant_id,
                transaction_type="return",
                quantity=-net,
                actor_id=actor_id,
                order_id=order.id,
                reference=order.order_number,
                notes=note,
            )

    # ---------------------------------------------------------------- payment

    def update_payment_status(
        self,
        order_id: int,
        payment_status: str,
        transaction_id: str | None = None,
    ) -> Order:
        """
        Record a payment outcome. Never touches inventory.

        Moving to 'paid' stamps paid_at and, unless the order is cancelled,
        queues invoice generation; an existing invoice follows the order to 'paid'.
        """
        if payment_status not in PAYMENT_STATUSES:
            raise ValidationFailed(
                f"Invalid payment_status '{payment_status}'. Must be one of: {', '.join(PAYMENT_STATUSES)}"
            )

        def _op():
            begin_write()
            order = self._load_order(order_id, lock=True)
            order.payment_status = payment_status
            if transaction_id:
                order.transaction_id = transaction_id

            if payment_status == "paid":
                order.paid_at = utcnow()
                if order.invoice is not None and order.invoice.status != "cancelled":
                    order.invoice.status = "paid"
                if order.status != "cancelled":
                    side_effects.defer("generate_invoice", order_id=order.id)

            db.session.flush()
            ensure_totals_consistent(order)
            side_effects.defer("send_order_notification", order_id=order.id, event="payment_updated")
            return order

        order = run_in_transaction(_op, dispatcher=self._dispatcher)
        current_app.logger.info("Order %s payment_status=%s", order.order_number, payment_status)
        return order

    # ---------------------------------------------------------------- helpers

    def _load_order(self, order_id: int, *, lock: bool = False) -> Order:
        query = db.session.query(Order).filter_by(id=order_id)
        if lock:
            query = lock_for_update(query)
        order = query.first()
        if order is None:
            raise OrderNotFound(order_id)
        return order
