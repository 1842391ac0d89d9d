# backend/vendorhub/routes/inventory.py
"""
Inventory ledger routes.

SECURITY: All routes require an actor.
- Vendors act only on their own products
- Admin / system act on any product
- Customers have no access
"""
from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, require_role
from ..errors import EntityNotFound, ValidationFailed
from ..extensions import db
from ..models import Product
from ..validation import validate_inventory_movement
from ..wiring import get_services


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _authorized_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise EntityNotFound("Product", product_id)
    if g.actor_role == "vendor" and product.vendor_id != g.actor_id:
        raise EntityNotFound("Product", product_id)
    return product


def _variant_arg():
    raw = request.args.get("variant_id")
    if raw is None or raw == "":
        return None
    if not raw.isdigit():
        raise ValidationFailed("variant_id must be an integer")
    return int(raw)


@inventory_bp.post("/receive")
@require_actor
@require_role("admin", "vendor", "system")
def receive_inventory_route():
    """Receive stock from a supplier (positive 'purchase' entry)."""
    patch = validate_inventory_movement(request.get_json(silent=True), allow_negative=False)
    _authorized_product(patch["product_id"])

    entry = get_services().ledger.receive(actor_id=g.actor_id, **patch)
    return jsonify({"entry": entry.to_dict()}), 201


@inventory_bp.post("/adjust")
@require_actor
@require_role("admin", "vendor", "system")
def adjust_inventory_route():
    """Post a signed correcting 'adjustment' entry."""
    patch = validate_inventory_movement(request.get_json(silent=True), allow_negative=True)
    _authorized_product(patch["product_id"])

    entry = get_services().ledger.adjust(actor_id=g.actor_id, **patch)
    return jsonify({"entry": entry.to_dict()}), 201


@inventory_bp.get("/<int:product_id>/history")
@require_actor
@require_role("admin", "vendor", "system")
def inventory_history_route(product_id: int):
    """Ledger entries for a product (or one variant), newest first."""
    _authorized_product(product_id)
    limit = request.args.get("limit", "50")
    if not limit.isdigit():
        raise ValidationFailed("limit must be an integer")

    entries = get_services().ledger.history(product_id, _variant_arg(), limit=min(int(limit), 500))
    return jsonify({"entries": [e.to_dict() for e in entries]}), 200


@inventory_bp.get("/<int:product_id>/reconcile")
@require_actor
@require_role("admin", "vendor", "system")
def reconcile_route(product_id: int):
    """Compare the cached stock balance with the ledger sum."""
    _authorized_product(product_id)
    return jsonify(get_services().ledger.reconcile(product_id, _variant_arg())), 200
