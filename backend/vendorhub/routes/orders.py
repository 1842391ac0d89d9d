# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/vendorhub/routes/orders.py
"""
Order API routes.

SECURITY: All routes require an actor (X-Actor-Id / X-Actor-Role).
- Customers place, see and cancel only their own orders
- Vendors see and progress only orders containing their products
- Admin / system see everything

Service errors are mapped to responses by the app's error handlers.
"""
from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, require_role
from ..errors import OrderNotFound, ValidationFailed
from ..services import order_queries
from ..wiring import get_services


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

LIST_FILTERS = ("status", "payment_status", "from_date", "to_date", "sort_by", "sort_order")


def _visible_order(order_id: int):
    """Load an order the current actor may see, or raise OrderNotFound."""
    order = get_services().orders.get_order(order_id)
    if order is None:
        raise OrderNotFound(order_id)
    if g.actor_role == "customer" and order.customer_id != g.actor_id:
        raise OrderNotFound(order_id)
    if g.actor_role == "vendor" and not order_queries.is_owned_by_vendor(order_id, g.actor_id):
        raise OrderNotFound(order_id)
    return order


def _order_payload(order) -> dict:
    data = order.to_dict()
    data["invoice"] = order.invoice.to_dict() if order.invoice is not None else None
    return data


@orders_bp.post("")
@require_actor
@require_role("customer", "admin", "system")
def create_order_route():
    """
    Place an order.

    Customers always order for themselves; admin/system must pass customer_id.
    """
    data = request.get_json(silent=True) or {}

    if g.actor_role == "customer":
        customer_id = g.actor_id
    else:
        customer_id = data.get("customer_id")

    order = get_services().orders.create_order(
        customer_id,
        data.get("items"),
        shipping_info=data.get("shipping"),
        payment_method=data.get("payment_method"),
        notes=data.get("notes"),
        tax_cents=data.get("tax_cents"),
        shipping_cost_cents=data.get("shipping_cost_cents"),
        discount_cents=data.get("discount_cents"),
        actor_id=g.actor_id,
    )
    return jsonify({"order": order.to_dict()}), 201


@orders_bp.get("")
@require_actor
def list_orders_route():
    """
    List orders visible to the actor.

    Query params: status, payment_status, from_date, to_date, sort_by,
    sort_order, limit; admin/system may also filter by customer_id.
    """
    filters = {k: request.args.get(k) for k in LIST_FILTERS if request.args.get(k)}
    limit = request.args.get("limit")

    if g.actor_role == "customer":
        orders = order_queries.customer_orders(g.actor_id, filters, limit)
    elif g.actor_role == "vendor":
        orders = order_queries.vendor_orders(g.actor_id, filters, limit)
    else:
        customer_id = request.args.get("customer_id")
        if customer_id:
            if not customer_id.isdigit():
                raise ValidationFailed("customer_id must be an integer")
            filters["customer_id"] = int(customer_id)
        orders = order_queries.list_orders(filters, limit)

    return jsonify({"orders": [o.to_dict(include_items=False) for o in orders]}), 200


@orders_bp.get("/<int:order_id>")
@require_actor
def get_order_route(order_id: int):
    """Get one order with its items and invoice."""
    order = _visible_order(order_id)
    return jsonify({"order": _order_payload(order)}), 200


@orders_bp.post("/<int:order_id>/status")
@require_actor
@require_role("admin", "vendor", "system")
def update_status_route(order_id: int):
    """
    Move an order to a new status.

    Vendors may only move their own orders into processing or shipped.
    """
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not status:
        return jsonify({"error": "status required"}), 400

    _visible_order(order_id)
    order = get_services().orders.update_status(
        order_id,
        status,
        g.actor_role,
        actor_id=g.actor_id,
        notes=data.get("notes"),
    )
    return jsonify({"order": order.to_dict()}), 200


@orders_bp.post("/<int:order_id>/payment")
@require_actor
@require_role("admin", "system")
def update_payment_route(order_id: int):
    """Record a payment outcome reported by the payment provider."""
    data = request.get_json(silent=True) or {}
    payment_status = data.get("payment_status")
    if not payment_status:
        return jsonify({"error": "payment_status required"}), 400

    order = get_services().orders.update_payment_status(
        order_id,
        payment_status,
        transaction_id=data.get("transaction_id"),
    )
    return jsonify({"order": order.to_dict()}), 200


@orders_bp.post("/<int:order_id>/cancel")
@require_actor
@require_role("customer", "admin", "system")
def cancel_order_route(order_id: int):
    """Cancel a pending or processing order and restore its stock."""
    data = request.get_json(silent=True) or {}
    _visible_order(order_id)
    order = get_services().orders.cancel_order(
        order_id,
        data.get("reason"),
        actor_id=g.actor_id,
        actor_role=g.actor_role,
    )
    return jsonify({"order": order.to_dict()}), 200


@orders_bp.post("/availability")
@require_actor
def availability_route():
    """
    Advisory stock check for a prospective order.

    The result can be stale by the time the order is placed.
    """
    data = request.get_json(silent=True) or {}
    shortfalls = get_services().orders.check_availability(data.get("items"))
    return jsonify({
        "available": not shortfalls,
        "shortfalls": [s.to_dict() for s in shortfalls],
    }), 200
