# Overview: Order and low-stock notifications; resolves recipients and records each delivery in the log.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Order, OrderItem, Product, User

ORDER_EVENTS = ("created", "status_updated", "cancelled", "payment_updated")


def _admins() -> list[User]:
    return (
        db.session.query(User)
        .filter(User.role == "admin", User.is_active.is_(True))
        .order_by(User.id)
        .all()
    )


def _unique(users) -> list[User]:
    seen = set()
    result = []
    for user in users:
        if user is None or user.id in seen:
            continue
        seen.add(user.id)
        result.append(user)
    return result


def order_recipients(order: Order, event: str) -> list[User]:
    """
    The customer always; on 'created' also every admin and each vendor
    with items in the order.
    """
    recipients = [order.customer]
    if event == "created":
        recipients.extend(_admins())
        vendor_ids = {
            vendor_id
            for (vendor_id,) in db.session.query(OrderItem.vendor_id).filter_by(order_id=order.id).distinct()
        }
        if vendor_ids:
            recipients.extend(
                db.session.query(User).filter(User.id.in_(vendor_ids)).order_by(User.id).all()
            )
    return _unique(recipients)


def send_order_notification(order_id: int, event: str, old_status: str | None = None) -> list[str]:
    """Notify everyone concerned by an order event. Returns recipient emails."""
    if event not in ORDER_EVENTS:
        raise ValueError(f"Unknown order event '{event}'")

    order = db.session.get(Order, order_id)
    if order is None:
        current_app.logger.warning("Notification %s for missing order %s", event, order_id)
        return []

    sent = []
    for recipient in order_recipients(order, event):
        current_app.logger.info(
            "Order notification event=%s order=%s status=%s old_status=%s recipient=%s",
            event, order.order_number, order.status, old_status, recipient.email,
        )
        sent.append(recipient.email)
    return sent


def low_stock_alert(product_id: int) -> list[str]:
    """Alert the product's vendor and all admins. Returns recipient emails."""
    product = db.session.get(Product, product_id)
    if product is None:
        current_app.logger.warning("Low-stock alert for missing product %s", product_id)
        return []

    sent = []
    for recipient in _unique([product.vendor, *_admins()]):
        current_app.logger.warning(
            "Low stock alert product=%s sku=%s stock=%s threshold=%s recipient=%s",
            product.id, product.sku, product.stock_quantity, product.low_stock_threshold, recipient.email,
        )
        sent.append(recipient.email)
    return sent
