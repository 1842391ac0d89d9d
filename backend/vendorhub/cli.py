# Overview: Flask CLI command groups for bootstrap, stock maintenance, and invoices.

# backend/vendorhub/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db [--admin-email admin@vendorhub.local]
#   Create all tables and (idempotently) a default admin user.
#
# Inventory ledger:
# - python -m flask inventory receive --product-id 1 --quantity 50 [--variant-id 2] [--reference PO-17]
#   Post a 'purchase' entry.
# - python -m flask inventory adjust --product-id 1 --quantity -3 [--notes "damaged"]
#   Post a signed 'adjustment' entry.
# - python -m flask inventory reconcile [--product-id 1]
#   Check stock_quantity against the ledger sum (all products if omitted).
#
# Invoices:
# - python -m flask invoices generate --order-id 12
#   Generate (or confirm) the invoice for an order, synchronously.

import click
from flask.cli import with_appcontext

from .errors import BusinessRuleError, PersistenceFailure, ValidationFailed
from .extensions import db
from .models import Product, User
from .wiring import get_services


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@click.option('--admin-email', default='admin@vendorhub.local', help='Email of the default admin')
@click.option('--admin-name', default='Administrator', help='Name of the default admin')
@with_appcontext
def init_db(admin_email, admin_name):
    """Create tables and a default admin account."""
    click.echo("START Initializing database...")
    db.create_all()
    click.echo("PASS Tables created")

    existing = db.session.query(User).filter_by(email=admin_email).first()
    if existing:
        click.echo(f"WARN  User '{admin_email}' already exists, skipping...")
        return

    db.session.add(User(name=admin_name, email=admin_email, role="admin", is_active=True))
    db.session.commit()
    click.echo(f"PASS Created admin user: {admin_email}")


@click.group('inventory')
def inventory_group():
    """Inventory ledger commands."""


def _post_movement(kind, product_id, variant_id, quantity, reference, notes):
    ledger = get_services().ledger
    post = ledger.receive if kind == "receive" else ledger.adjust
    try:
        entry = post(
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
            actor_id=None,
            reference=reference,
            notes=notes,
        )
    except (ValidationFailed, BusinessRuleError, PersistenceFailure) as e:
        raise click.ClickException(str(e))
    click.echo(
        f"PASS Entry {entry.id}: product={product_id} variant={variant_id} "
        f"qty={entry.quantity:+d} balance_after={entry.balance_after}"
    )


@inventory_group.command('receive')
@click.option('--product-id', type=int, required=True)
@click.option('--variant-id', type=int, default=None)
@click.option('--quantity', type=int, required=True)
@click.option('--reference', default=None, help='Purchase order or delivery reference')
@click.option('--notes', default=None)
@with_appcontext
def receive_cmd(product_id, variant_id, quantity, reference, notes):
    """Post a 'purchase' entry."""
    _post_movement("receive", product_id, variant_id, quantity, reference, notes)


@inventory_group.command('adjust')
@click.option('--product-id', type=int, required=True)
@click.option('--variant-id', type=int, default=None)
@click.option('--quantity', type=int, required=True, help='Signed correction')
@click.option('--reference', default=None)
@click.option('--notes', default=None)
@with_appcontext
def adjust_cmd(product_id, variant_id, quantity, reference, notes):
    """Post a signed 'adjustment' entry."""
    _post_movement("adjust", product_id, variant_id, quantity, reference, notes)


@inventory_group.command('reconcile')
@click.option('--product-id', type=int, default=None, help='Limit to one product')
@with_appcontext
def reconcile_cmd(product_id):
    """Verify stock_quantity == SUM(ledger) for every product and variant."""
    ledger = get_services().ledger

    query = db.session.query(Product).order_by(Product.id)
    if product_id is not None:
        query = query.filter(Product.id == product_id)

    mismatches = 0
    for product in query.all():
        targets = [None] + [v.id for v in product.variants]
        for variant_id in targets:
            result = ledger.reconcile(product.id, variant_id)
            if result["consistent"]:
                continue
            mismatches += 1
            click.echo(
                f"FAIL product={product.id} variant={variant_id} "
                f"stock_quantity={result['stock_quantity']} ledger_sum={result['ledger_sum']}"
            )

    if mismatches:
        raise click.ClickException(f"{mismatches} inconsistent balance(s)")
    click.echo("PASS All balances match the ledger")


@click.group('invoices')
def invoices_group():
    """Invoice commands."""


@invoices_group.command('generate')
@click.option('--order-id', type=int, required=True)
@with_appcontext
def generate_invoice_cmd(order_id):
    """Generate the invoice for an order now, bypassing the job queue."""
    invoice = get_services().invoices.generate(order_id)
    if invoice is None:
        raise click.ClickException(f"Order {order_id} not found")
    click.echo(
        f"PASS Invoice {invoice.invoice_number} status={invoice.status} "
        f"amount_cents={invoice.amount_cents} path={invoice.pdf_path}"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(invoices_group)
