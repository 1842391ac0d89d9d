# Overview: Service-layer operations for the inventory ledger; the only writer of stock balances.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..errors import EntityNotFound, InsufficientStock, Shortfall, ValidationFailed
from ..extensions import db
from ..models import ENTRY_TYPES, InventoryEntry, Product, ProductVariant
from . import side_effects
from .concurrency import begin_write, lock_for_update, run_in_transaction
"""
Inventory Ledger Invariants (authoritative)

- Every stock change is an InventoryEntry row; rows are append-only.
- A ledger target is either a bare product (variant_id NULL) or exactly one
  variant of that product, never both.
- Product.stock_quantity / ProductVariant.stock_quantity is a denormalized
  cache of SUM(quantity) over the target's entries. post() is the only code
  path that writes it, in the same transaction as the entry it caches.
- balance_after is computed from the locked target row, so entries for one
  target are serialized in commit order.
- A posting may never drive a balance below zero.
- A low-stock alert (product-level targets only) fires on the posting that
  takes the balance from above the threshold to at or below it, and is
  deferred until COMMIT.
"""


class InventoryLedger:
    """Append-only stock ledger with a denormalized balance per target."""

    def __init__(self, dispatcher=None):
        self._dispatcher = dispatcher

    # ------------------------------------------------------------------ reads

    def _load_target(self, product_id: int, variant_id: int | None = None, *, lock: bool = False):
        query = db.session.query(Product).filter_by(id=product_id)
        if lock:
            query = lock_for_update(query)
        product = query.first()
        if product is None:
            raise EntityNotFound("Product", product_id)

        if variant_id is None:
            return product, None

        vquery = db.session.query(ProductVariant).filter_by(id=variant_id)
        if lock:
            vquery = lock_for_update(vquery)
        variant = vquery.first()
        if variant is None or variant.product_id != product.id:
            raise EntityNotFound("ProductVariant", variant_id)
        return product, variant

    def lock_targets(self, targets) -> None:
        """
        Lock the rows of several (product_id, variant_id) targets.

        Rows are locked in id order so two orders touching the same products
        cannot deadlock on each other.
        """
        for product_id, variant_id in sorted(set(targets), key=lambda t: (t[0], t[1] or 0)):
            self._load_target(product_id, variant_id, lock=True)

    def current_balance(self, product_id: int, variant_id: int | None = None) -> int:
        """
        Current stock of a target, read from the denormalized cache.

        Unknown products/variants have a balance of 0.
        """
        if variant_id is not None:
            variant = db.session.query(ProductVariant).filter_by(id=variant_id, product_id=product_id).first()
            return variant.stock_quantity if variant else 0

        product = db.session.query(Product).filter_by(id=product_id).first()
        return product.stock_quantity if product else 0

    def is_untracked(self, product_id: int) -> bool:
        """True for an existing product whose stock is not managed."""
        product = db.session.query(Product).filter_by(id=product_id).first()
        return product is not None and not product.track_inventory

    def ledger_sum(self, product_id: int, variant_id: int | None = None) -> int:
        q = db.session.query(func.coalesce(func.sum(InventoryEntry.quantity), 0)).filter(
            InventoryEntry.product_id == product_id,
        )
        if variant_id is None:
            q = q.filter(InventoryEntry.variant_id.is_(None))
        else:
            q = q.filter(InventoryEntry.variant_id == variant_id)
        return int(q.scalar() or 0)

    def reconcile(self, product_id: int, variant_id: int | None = None) -> dict:
        """Compare the cached balance with the ledger sum for one target."""
        product, variant = self._load_target(product_id, variant_id)
        cached = variant.stock_quantity if variant is not None else product.stock_quantity
        total = self.ledger_sum(product_id, variant_id)
        return {
            "product_id": product_id,
            "variant_id": variant_id,
            "stock_quantity": cached,
            "ledger_sum": total,
            "consistent": cached == total,
        }

    def history(self, product_id: int, variant_id: int | None = None, limit: int = 50) -> list[InventoryEntry]:
        self._load_target(product_id, variant_id)
        q = db.session.query(InventoryEntry).filter_by(product_id=product_id)
        if variant_id is not None:
            q = q.filter_by(variant_id=variant_id)
        return q.order_by(InventoryEntry.id.desc()).limit(limit).all()

    def order_net_quantities(self, order_id: int) -> dict[tuple[int, int | None], int]:
        """Net signed quantity this order has moved, per target."""
        rows = (
            db.session.query(
                InventoryEntry.product_id,
                InventoryEntry.variant_id,
                func.sum(InventoryEntry.quantity),
            )
            .filter(InventoryEntry.order_id == order_id)
            .group_by(InventoryEntry.product_id, InventoryEntry.variant_id)
            .order_by(InventoryEntry.product_id, InventoryEntry.variant_id)
            .all()
        )
        return {(product_id, variant_id): int(total or 0) for product_id, variant_id, total in rows}

    # ----------------------------------------------------------------- writes

    def post(
        self,
        *,
        product_id: int,
        transaction_type: str,
        quantity: int,
        actor_id: int | None,
        variant_id: int | None = None,
        order_id: int | None = None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> InventoryEntry:
        """
        Append one entry and move the target's cached balance to balance_after.

        Does NOT commit: the caller owns the transaction, so the entry, the
        balance update, and whatever caused them commit or roll back together.
        """
        if transaction_type not in ENTRY_TYPES:
            raise ValidationFailed(f"Invalid transaction_type '{transaction_type}'")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity == 0:
            raise ValidationFailed("quantity must be a non-zero integer")

        product, variant = self._load_target(product_id, variant_id, lock=True)
        target = variant if variant is not None else product

        balance_before = target.stock_quantity
        balance_after = balance_before + quantity
        if balance_after < 0:
            raise InsufficientStock([
                Shortfall(
                    product_id=product_id,
                    variant_id=variant_id,
                    requested=-quantity,
                    available=target.stock_quantity,
                )
            ])

        entry = InventoryEntry(
            product_id=product_id,
            variant_id=variant_id,
            transaction_type=transaction_type,
            quantity=quantity,
            balance_after=balance_after,
            order_id=order_id,
            reference=reference,
            notes=notes,
            user_id=actor_id,
        )
        db.session.add(entry)
        target.stock_quantity = balance_after
        db.session.flush()

        current_app.logger.debug(
            "Ledger %s product=%s variant=%s qty=%+d balance=%s order=%s",
            transaction_type, product_id, variant_id, quantity, balance_after, order_id,
        )

        # Alert once, on the posting that takes the balance to or below the threshold
        if variant is None and quantity < 0 and product.is_low_stock() and balance_before > product.low_stock_threshold:
            side_effects.defer("low_stock_alert", product_id=product_id)

        return entry

    def receive(
        self,
        *,
        product_id: int,
        quantity: int,
        actor_id: int | None,
        variant_id: int | None = None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> InventoryEntry:
        """Record stock arriving from a supplier ('purchase')."""
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationFailed("quantity must be > 0 for a purchase")

        def _op():
            begin_write()
            return self.post(
                product_id=product_id,
                variant_id=variant_id,
                transaction_type="purchase",
                quantity=quantity,
                actor_id=actor_id,
                reference=reference,
                notes=notes,
            )

        entry = run_in_transaction(_op, dispatcher=self._dispatcher)
        current_app.logger.info(
            "Stock received product=%s variant=%s qty=%s balance=%s",
            product_id, variant_id, quantity, entry.balance_after,
        )
        return entry

    def adjust(
        self,
        *,
        product_id: int,
        quantity: int,
        actor_id: int | None,
        variant_id: int | None = None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> InventoryEntry:
        """
        Post a correcting 'adjustment' entry.

        Existing entries are never edited; a miscount is fixed by a new
        entry with the signed difference.
        """
        def _op():
            begin_write()
            return self.post(
                product_id=product_id,
                variant_id=variant_id,
                transaction_type="adjustment",
                quantity=quantity,
                actor_id=actor_id,
                reference=reference,
                notes=notes,
            )

        entry = run_in_transaction(_op, dispatcher=self._dispatcher)
        current_app.logger.info(
            "Stock adjusted product=%s variant=%s qty=%+d balance=%s",
            product_id, variant_id, quantity, entry.balance_after,
        )
        return entry
