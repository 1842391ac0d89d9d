from __future__ import annotations

from datetime import date

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z, utctoday


class Invoice(db.Model):
    """
    One invoice per order.

    order_id is unique, so a second generation attempt for the same order
    cannot create a second row even if two workers race.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('draft', 'pending', 'paid', 'overdue', 'cancelled')",
            name="ck_invoices_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, unique=True)
    invoice_number = db.Column(db.String(32), nullable=False, unique=True)

    invoice_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)

    # Set once the rendered artifact has been stored
    pdf_path = db.Column(db.String(512), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("invoice", uselist=False, lazy=True))

    def is_overdue(self, today: date | None = None) -> bool:
        today = today or utctoday()
        return self.due_date is not None and today > self.due_date and self.status != "paid"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "invoice_number": self.invoice_number,
            "invoice_date": to_iso_date(self.invoice_date),
            "due_date": to_iso_date(self.due_date),
            "amount_cents": self.amount_cents,
            "status": self.status,
            "pdf_path": self.pdf_path,
            "is_overdue": self.is_overdue(),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """
    Atomic document number sequences, keyed by (document_type, period).

    WHY: Invoice numbers are sequential per year; allocating them from a
    counter row avoids COUNT(*)+1 races between concurrent workers.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", "period", name="uq_doc_sequences_type_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    period = db.Column(db.Integer, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
