# Overview: Invoice generation consumer; creates one invoice per order and stores its rendered document.

from __future__ import annotations

import logging
import os
import time
from datetime import timedelta

from flask import current_app, render_template
from sqlalchemy.exc import IntegrityError

from ..errors import PersistenceFailure
from ..extensions import db
from ..models import Invoice, Order
from ..time_utils import utctoday
from .concurrency import begin_write, run_in_transaction
from .document_service import next_invoice_number
"""
Invoice Generation Rules

- At most one invoice per order (invoices.order_id is unique). A second
  request for an order that already has a stored invoice is a logged no-op.
- amount_cents snapshots order.total_cents; status is 'paid' when the order
  is paid, otherwise 'draft'.
- Rendering and storage are retried a bounded number of times. Permanent
  failure goes to the operator channel and never touches the order.
"""

operator_log = logging.getLogger("vendorhub.operator")


class InvoiceRenderer:
    """Renders an invoice to an HTML document via the app's Jinja environment."""

    template_name = "invoices/invoice.html"

    def render(self, invoice: Invoice, order: Order) -> bytes:
        html = render_template(self.template_name, invoice=invoice, order=order)
        return html.encode("utf-8")


class InvoiceStorage:
    """Filesystem blob storage for rendered invoices."""

    def __init__(self, root: str):
        self.root = root

    def store(self, name: str, data: bytes) -> str:
        os.makedirs(self.root, exist_ok=True)
        path = os.path.join(self.root, name)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "wb") as fh:
            fh.write(data)
        os.replace(tmp_path, path)
        return path


class InvoiceGenerator:
    def __init__(
        self,
        renderer: InvoiceRenderer,
        storage: InvoiceStorage,
        *,
        due_days: int = 30,
        attempts: int = 3,
        backoff_base: float = 0.5,
    ):
        self._renderer = renderer
        self._storage = storage
        self._due_days = due_days
        self._attempts = max(1, attempts)
        self._backoff_base = backoff_base

    def generate(self, order_id: int) -> Invoice | None:
        """
        Ensure order_id has an invoice with a stored document.

        Returns the invoice, or None when the order does not exist.
        """
        order = db.session.get(Order, order_id)
        if order is None:
            current_app.logger.warning("Invoice requested for missing order %s", order_id)
            return None

        invoice, created = self._ensure_invoice(order_id)
        if not created and invoice.pdf_path:
            current_app.logger.info(
                "Invoice already exists for order %s (%s)", order_id, invoice.invoice_number,
            )
            return invoice

        self._render_and_store(invoice.id, order_id)
        return db.session.get(Invoice, invoice.id)

    def _existing(self, order_id: int) -> Invoice | None:
        return db.session.query(Invoice).filter_by(order_id=order_id).first()

    def _ensure_invoice(self, order_id: int) -> tuple[Invoice, bool]:
        def _op():
            begin_write()
            existing = self._existing(order_id)
            if existing is not None:
                return existing, False

            order = db.session.get(Order, order_id)
            today = utctoday()
            invoice = Invoice(
                order_id=order.id,
                invoice_number=next_invoice_number(today.year),
                invoice_date=today,
                due_date=today + timedelta(days=self._due_days),
                amount_cents=order.total_cents,
                status="paid" if order.payment_status == "paid" else "draft",
            )
            db.session.add(invoice)
            db.session.flush()
            return invoice, True

        try:
            invoice, created = run_in_transaction(_op)
        except PersistenceFailure as exc:
            # Another worker inserted the invoice between our check and insert
            if not isinstance(exc.__cause__, IntegrityError):
                raise
            existing = self._existing(order_id)
            if existing is None:
                raise
            return existing, False

        if created:
            current_app.logger.info(
                "Invoice %s created for order %s amount_cents=%s",
                invoice.invoice_number, order_id, invoice.amount_cents,
            )
        return invoice, created

    def _render_and_store(self, invoice_id: int, order_id: int) -> None:
        last_error = None
        for attempt in range(1, self._attempts + 1):
            invoice = db.session.get(Invoice, invoice_id)
            order = db.session.get(Order, order_id)
            try:
                document = self._renderer.render(invoice, order)
                path = self._storage.store(f"{invoice.invoice_number}.html", document)
            except Exception as exc:
                last_error = exc
                current_app.logger.warning(
                    "Invoice %s render attempt %s/%s failed: %s",
                    invoice.invoice_number, attempt, self._attempts, exc,
                )
                if attempt < self._attempts:
                    time.sleep(self._backoff_base * (2 ** (attempt - 1)))
                continue

            def _record():
                row = db.session.get(Invoice, invoice_id)
                row.pdf_path = path

            run_in_transaction(_record)
            current_app.logger.info("Invoice %s stored at %s", invoice.invoice_number, path)
            return

        operator_log.error(
            "Invoice generation failed permanently for order %s invoice %s after %s attempts: %s",
            order_id, invoice_id, self._attempts, last_error,
        )
