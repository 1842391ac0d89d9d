# Overview: Read-side order queries (listings, vendor visibility, sales figures).

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from ..errors import ValidationFailed
from ..extensions import db
from ..models import ORDER_STATUSES, PAYMENT_STATUSES, Order, OrderItem
from ..time_utils import parse_iso_datetime, utcnow

# Statuses that count as realised sales
REVENUE_STATUSES = ("processing", "shipped", "delivered")

SORTABLE_COLUMNS = {
    "created_at": Order.created_at,
    "total_cents": Order.total_cents,
    "order_number": Order.order_number,
}

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def _parse_bound(value, *, end: bool) -> datetime | None:
    """
    Parse a from/to filter. A bare date as upper bound covers the whole day.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationFailed(f"Invalid date '{value}'")
    if end and len(str(value).strip()) == 10:
        parsed = parsed + timedelta(days=1)
    return parsed


def _apply_date_range(query, from_date, to_date):
    start = _parse_bound(from_date, end=False)
    end = _parse_bound(to_date, end=True)
    if start is not None:
        query = query.filter(Order.created_at >= start)
    if end is not None:
        query = query.filter(Order.created_at < end)
    return query


def _vendor_clause(vendor_id: int):
    return Order.items.any(OrderItem.vendor_id == vendor_id)


def _clamp_limit(limit) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        raise ValidationFailed("limit must be an integer")
    return max(1, min(limit, MAX_LIMIT))


def _filtered(query, filters: dict):
    status = filters.get("status")
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationFailed(f"Invalid status '{status}'")
        query = query.filter(Order.status == status)

    payment_status = filters.get("payment_status")
    if payment_status:
        if payment_status not in PAYMENT_STATUSES:
            raise ValidationFailed(f"Invalid payment_status '{payment_status}'")
        query = query.filter(Order.payment_status == payment_status)

    query = _apply_date_range(query, filters.get("from_date"), filters.get("to_date"))

    sort_by = filters.get("sort_by") or "created_at"
    if sort_by not in SORTABLE_COLUMNS:
        raise ValidationFailed(f"sort_by must be one of: {', '.join(SORTABLE_COLUMNS)}")
    column = SORTABLE_COLUMNS[sort_by]
    sort_order = (filters.get("sort_order") or "desc").lower()
    if sort_order not in ("asc", "desc"):
        raise ValidationFailed("sort_order must be asc or desc")

    ordering = column.asc() if sort_order == "asc" else column.desc()
    return query.order_by(ordering, Order.id.desc() if sort_order == "desc" else Order.id.asc())


def list_orders(filters: dict | None = None, limit=None) -> list[Order]:
    filters = filters or {}
    query = db.session.query(Order)
    if filters.get("customer_id") is not None:
        query = query.filter(Order.customer_id == int(filters["customer_id"]))
    if filters.get("vendor_id") is not None:
        query = query.filter(_vendor_clause(int(filters["vendor_id"])))
    return _filtered(query, filters).limit(_clamp_limit(limit)).all()


def customer_orders(customer_id: int, filters: dict | None = None, limit=None) -> list[Order]:
    return list_orders({**(filters or {}), "customer_id": customer_id}, limit)


def vendor_orders(vendor_id: int, filters: dict | None = None, limit=None) -> list[Order]:
    """Orders with at least one line sold by vendor_id."""
    return list_orders({**(filters or {}), "vendor_id": vendor_id}, limit)


def pending_orders(limit: int = 50) -> list[Order]:
    return (
        db.session.query(Order)
        .filter(Order.status == "pending")
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(_clamp_limit(limit))
        .all()
    )


def recent_orders(days: int = 7, limit: int = 10) -> list[Order]:
    since = utcnow() - timedelta(days=days)
    return (
        db.session.query(Order)
        .filter(Order.created_at >= since)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(_clamp_limit(limit))
        .all()
    )


def is_owned_by_vendor(order_id: int, vendor_id: int) -> bool:
    """True if the order contains at least one item sold by vendor_id."""
    return (
        db.session.query(OrderItem.id)
        .filter(OrderItem.order_id == order_id, OrderItem.vendor_id == vendor_id)
        .first()
        is not None
    )


def calculate_sales(start=None, end=None, vendor_id: int | None = None) -> int:
    """Sum of order totals (cents) over realised orders in the date range."""
    query = db.session.query(func.coalesce(func.sum(Order.total_cents), 0)).filter(
        Order.status.in_(REVENUE_STATUSES)
    )
    query = _apply_date_range(query, start, end)
    if vendor_id is not None:
        query = query.filter(_vendor_clause(vendor_id))
    return int(query.scalar() or 0)


def statistics(vendor_id: int | None = None) -> dict:
    base = db.session.query(Order)
    if vendor_id is not None:
        base = base.filter(_vendor_clause(vendor_id))

    counts = dict(
        base.with_entities(Order.status, func.count(Order.id)).group_by(Order.status).all()
    )
    revenue_q = base.filter(Order.status.in_(REVENUE_STATUSES))
    total_revenue = revenue_q.with_entities(func.coalesce(func.sum(Order.total_cents), 0)).scalar() or 0
    realised = revenue_q.with_entities(func.count(Order.id)).scalar() or 0

    return {
        "total_orders": sum(counts.values()),
        "by_status": {status: counts.get(status, 0) for status in ORDER_STATUSES},
        "total_revenue_cents": int(total_revenue),
        "average_order_value_cents": int(total_revenue) // realised if realised else 0,
    }
