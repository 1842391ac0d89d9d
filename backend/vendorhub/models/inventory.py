from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..time_utils import to_utc_z

ENTRY_TYPES = ("purchase", "sale", "adjustment", "return")


class InventoryEntry(db.Model):
    """
    Append-only inventory ledger row.

    quantity is signed (negative = deduction). balance_after is the running
    balance of the target (bare product, or one variant) once this entry is
    applied. Rows are never updated or deleted; corrections are new
    'adjustment' entries.
    """
    __tablename__ = "inventory_entries"
    __table_args__ = (
        db.CheckConstraint(
            "transaction_type IN ('purchase', 'sale', 'adjustment', 'return')",
            name="ck_inventory_entries_type",
        ),
        db.CheckConstraint("quantity <> 0", name="ck_inventory_entries_nonzero"),
        db.Index("ix_inventory_entries_target", "product_id", "variant_id", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    balance_after = db.Column(db.Integer, nullable=False)

    # Causal link to the order that moved stock (sale / return entries)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    reference = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    # Actor; None for system-initiated postings
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "transaction_type": self.transaction_type,
            "quantity": self.quantity,
            "balance_after": self.balance_after,
            "order_id": self.order_id,
            "reference": self.reference,
            "notes": self.notes,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(InventoryEntry, "before_update")
def _reject_entry_update(mapper, connection, target):
    raise RuntimeError("inventory entries are append-only")


@event.listens_for(InventoryEntry, "before_delete")
def _reject_entry_delete(mapper, connection, target):
    raise RuntimeError("inventory entries are append-only")
