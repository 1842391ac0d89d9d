# Overview: Service-layer operations for document numbering (orders, invoices).

from __future__ import annotations

import secrets

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from ..time_utils import utcnow


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_document_number(
    *,
    document_type: str,
    prefix: str,
    period: int,
    pad: int = 6,
) -> str:
    """
    Allocate the next sequential number for (document_type, period).

    Runs inside the caller's transaction: the UPDATE takes the row lock, so
    concurrent allocators serialize on the sequence row and each number is
    handed out once. A missing row is created on first use; if another
    transaction creates it first, the insert is rolled back to a savepoint
    and the UPDATE is retried.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _allocated(document_type, period)
    else:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, period=period, next_number=2))
            next_num = 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _allocated(document_type, period)

    return f"{prefix}-{period}-{next_num:0{pad}d}"


def _allocated(document_type: str, period: int) -> int:
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, period=period)
        .scalar()
    )
    return current - 1


def next_invoice_number(year: int | None = None) -> str:
    """INV-<year>-<zero-padded sequence>, sequential within the year."""
    year = year or utcnow().year
    return next_document_number(document_type="INVOICE", prefix="INV", period=year)


def generate_order_number(now=None) -> str:
    """ORD-<YYYYMMDD>-<8 hex chars>; uniqueness is enforced by the orders table."""
    now = now or utcnow()
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(4).upper()}"
