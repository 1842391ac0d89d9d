# Overview: Pytest coverage for the flask CLI command groups.

from vendorhub.models import Invoice, User


def test_init_db_creates_admin_once(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init-db", "--admin-email", "root@vendorhub.test"])
    second = runner.invoke(args=["system", "init-db", "--admin-email", "root@vendorhub.test"])

    assert first.exit_code == 0
    assert "Created admin user" in first.output
    assert "already exists" in second.output
    assert db_session.query(User).filter_by(email="root@vendorhub.test").count() == 1


def test_receive_adjust_and_reconcile(app, db_session, services, make_product):
    product = make_product(stock=0)
    runner = app.test_cli_runner()

    received = runner.invoke(args=["inventory", "receive", "--product-id", str(product.id), "--quantity", "9"])
    adjusted = runner.invoke(args=["inventory", "adjust", "--product-id", str(product.id), "--quantity", "-4"])
    reconciled = runner.invoke(args=["inventory", "reconcile"])

    assert received.exit_code == 0
    assert "balance_after=9" in received.output
    assert adjusted.exit_code == 0
    assert "balance_after=5" in adjusted.output
    assert reconciled.exit_code == 0
    assert "All balances match" in reconciled.output


def test_adjust_below_zero_fails(app, db_session, make_product):
    product = make_product(stock=1)
    result = app.test_cli_runner().invoke(
        args=["inventory", "adjust", "--product-id", str(product.id), "--quantity", "-2"]
    )
    assert result.exit_code != 0
    assert "Insufficient stock" in result.output


def test_reconcile_reports_drift(app, db_session, make_product):
    product = make_product(stock=3)
    # Simulate a write that bypassed the ledger
    product.stock_quantity = 99
    db_session.commit()

    result = app.test_cli_runner().invoke(args=["inventory", "reconcile", "--product-id", str(product.id)])

    assert result.exit_code != 0
    assert "stock_quantity=99 ledger_sum=3" in result.output


def test_generate_invoice(app, db_session, services, customer, make_product):
    product = make_product(stock=3)
    order = services.orders.create_order(customer.id, [{"product_id": product.id, "quantity": 1}])

    result = app.test_cli_runner().invoke(args=["invoices", "generate", "--order-id", str(order.id)])

    assert result.exit_code == 0
    assert "INV-" in result.output
    assert db_session.query(Invoice).filter_by(order_id=order.id).count() == 1


def test_generate_invoice_unknown_order(app, db_session):
    result = app.test_cli_runner().invoke(args=["invoices", "generate", "--order-id", "424242"])
    assert result.exit_code != 0
