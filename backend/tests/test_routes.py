# Overview: Pytest coverage for the HTTP layer (actor headers, visibility, error mapping).

"""
API Route Tests

Checks that routes enforce actor visibility and that each service error
kind maps to its own status code.
"""

from sqlalchemy.exc import OperationalError

from vendorhub.errors import InconsistentTotals
from vendorhub.extensions import db
from vendorhub.models import Order


class TestOrderRoutes:

    def test_requires_actor_headers(self, client, db_session):
        assert client.get("/api/orders").status_code == 401
        assert client.get("/api/orders", headers={"X-Actor-Role": "customer"}).status_code == 401
        assert client.get("/api/orders", headers={"X-Actor-Role": "pirate", "X-Actor-Id": "1"}).status_code == 401

    def test_customer_places_order(self, client, db_session, customer, make_product, headers):
        product = make_product(stock=5, price_cents=1000)

        resp = client.post(
            "/api/orders",
            json={
                "items": [{"product_id": product.id, "quantity": 2}],
                "shipping": {"shipping_name": "Ann"},
                "payment_method": "paypal",
                # ignored for customers: they always order for themselves
                "customer_id": 999,
            },
            headers=headers(customer),
        )

        assert resp.status_code == 201
        body = resp.get_json()["order"]
        assert body["customer_id"] == customer.id
        assert body["status"] == "pending"
        assert body["total_cents"] == 2200
        assert body["shipping"]["shipping_name"] == "Ann"
        assert len(body["items"]) == 1

    def test_insufficient_stock_is_409_with_shortfalls(self, client, db_session, customer, make_product, headers):
        product = make_product(stock=1)

        resp = client.post(
            "/api/orders",
            json={"items": [{"product_id": product.id, "quantity": 2}]},
            headers=headers(customer),
        )

        assert resp.status_code == 409
        assert resp.get_json()["details"]["items"] == [
            {"product_id": product.id, "variant_id": None, "requested": 2, "available": 1},
        ]
        assert db_session.query(Order).count() == 0

    def test_validation_error_is_400(self, client, db_session, customer, headers):
        resp = client.post("/api/orders", json={"items": []}, headers=headers(customer))
        assert resp.status_code == 400

    def test_inconsistent_totals_is_labelled_500(self, client, db_session, customer, make_product, headers,
                                                 monkeypatch):
        product = make_product(stock=5)

        def drifted(order):
            raise InconsistentTotals(order.order_number, "drift", {"total_cents": 1, "expected_cents": 2})

        monkeypatch.setattr("vendorhub.services.order_service.ensure_totals_consistent", drifted)

        resp = client.post(
            "/api/orders",
            json={"items": [{"product_id": product.id, "quantity": 1}]},
            headers=headers(customer),
        )

        assert resp.status_code == 500
        assert resp.get_json()["error"] == "Order totals are inconsistent"
        assert db_session.query(Order).count() == 0

    def test_commit_failure_is_503(self, client, db_session, customer, make_product, headers, monkeypatch):
        product = make_product(stock=5)

        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr("vendorhub.services.concurrency.time.sleep", lambda seconds: None)
        monkeypatch.setattr(db.session, "commit", failing_commit)

        resp = client.post(
            "/api/orders",
            json={"items": [{"product_id": product.id, "quantity": 1}]},
            headers=headers(customer),
        )

        monkeypatch.undo()
        assert resp.status_code == 503
        assert db_session.query(Order).count() == 0

    def test_vendor_cannot_place_orders(self, client, db_session, vendor, headers):
        resp = client.post("/api/orders", json={"items": []}, headers=headers(vendor))
        assert resp.status_code == 403

    def test_visibility(self, client, db_session, services, customer, other_customer, vendor, other_vendor,
                        admin, make_product, headers):
        product = make_product(stock=5, owner=vendor)
        order = services.orders.create_order(customer.id, [{"product_id": product.id, "quantity": 1}])
        url = f"/api/orders/{order.id}"

        assert client.get(url, headers=headers(customer)).status_code == 200
        assert client.get(url, headers=headers(vendor)).status_code == 200
        assert client.get(url, headers=headers(admin)).status_code == 200
        assert client.get(url, headers=headers(other_customer)).status_code == 404
        assert client.get(url, headers=headers(other_vendor)).status_code == 404
        assert client.get("/api/orders/424242", headers=headers(admin)).status_code == 404

        listed = client.get("/api/orders", headers=headers(other_customer)).get_json()["orders"]
        assert listed == []
        listed = client.get("/api/orders", headers=headers(vendor)).get_json()["orders"]
        assert [o["id"] for o in listed] == [order.id]

    def test_status_update_role_matrix(self, client, db_session, services, customer, vendor, make_product, headers):
        product = make_product(stock=5, owner=vendor)
        order = services.orders.create_order(customer.id, [{"product_id": product.id, "quantity": 1}])
        url = f"/api/orders/{order.id}/status"

        assert client.post(url, json={"status": "processing"}, headers=headers(vendor)).status_code == 200
        assert client.post(url, json={"status": "delivered"}, headers=headers(vendor)).status_code == 403
        assert client.post(url, json={"status": "pending"}, headers=headers(vendor)).status_code == 403
        assert client.post(url, json={"status": "processing"}, headers=headers(customer)).status_code == 403
        assert client.post(url, json={}, headers=headers(vendor)).status_code == 400

    def test_invalid_transition_is_409(self, client, db_session, services, customer, admin, make_product, headers):
        product = make_product(stock=5)
        order = services.orders.create_order(customer.id, [{"product_id": product.id, "quantity": 1}])

        resp = client.post(f"/api/orders/{order.id}/status", json={"status": "delivered"}, headers=headers(admin))

        assert resp.status_code == 409
        assert resp.get_json()["details"] == {"from_status": "pending", "to_status": "delivered"}

    def test_customer_cancels_own_order(self, client, db_session, services, customer, make_product, headers):
        product = make_product(stock=5)
        order = services.orders.create_order(customer.id, [{"product_id": product.id, "quantity": 2}])

        resp = client.post(f"/api/orders/{order.id}/cancel", json={"reason": "oops"}, headers=headers(customer))

        assert resp.status_code == 200
        assert resp.get_json()["order"]["status"] == "cancelled"
        db_session.expire_all()
        assert services.ledger.current_balance(product.id) == 5

        again = client.post(f"/api/orders/{order.id}/cancel", headers=headers(customer))
        assert again.status_code == 409

    def test_payment_requires_admin(self, client, db_session, services, customer, admin, make_product, headers):
        product = make_product(stock=5)
        order = services.orders.create_order(customer.id, [{"product_id": product.id, "quantity": 1}])
        url = f"/api/orders/{order.id}/payment"

        assert client.post(url, json={"payment_status": "paid"}, headers=headers(customer)).status_code == 403

        resp = client.post(url, json={"payment_status": "paid", "transaction_id": "t-1"}, headers=headers(admin))
        assert resp.status_code == 200
        assert resp.get_json()["order"]["payment_status"] == "paid"
        assert resp.get_json()["order"]["transaction_id"] == "t-1"

    def test_system_actor_without_id(self, client, db_session, services, customer, make_product):
        product = make_product(stock=5)
        order = services.orders.create_order(customer.id, [{"product_id": product.id, "quantity": 1}])

        resp = client.post(
            f"/api/orders/{order.id}/status",
            json={"status": "processing"},
            headers={"X-Actor-Role": "system"},
        )
        assert resp.status_code == 200

    def test_availability(self, client, db_session, customer, make_product, headers):
        product = make_product(stock=2)

        ok = client.post(
            "/api/orders/availability",
            json={"items": [{"product_id": product.id, "quantity": 2}]},
            headers=headers(customer),
        ).get_json()
        short = client.post(
            "/api/orders/availability",
            json={"items": [{"product_id": product.id, "quantity": 3}]},
            headers=headers(customer),
        ).get_json()

        assert ok == {"available": True, "shortfalls": []}
        assert short["available"] is False
        assert short["shortfalls"][0]["available"] == 2


class TestInventoryRoutes:

    def test_vendor_receives_own_product(self, client, db_session, vendor, make_product, headers, services):
        product = make_product(stock=0, owner=vendor)

        resp = client.post(
            "/api/inventory/receive",
            json={"product_id": product.id, "quantity": 8, "reference": "PO-9"},
            headers=headers(vendor),
        )

        assert resp.status_code == 201
        assert resp.get_json()["entry"]["balance_after"] == 8
        db_session.expire_all()
        assert services.ledger.current_balance(product.id) == 8

    def test_vendor_cannot_touch_other_vendors_product(self, client, db_session, vendor, other_vendor,
                                                       make_product, headers):
        product = make_product(stock=3, owner=other_vendor)

        resp = client.post(
            "/api/inventory/adjust",
            json={"product_id": product.id, "quantity": -1},
            headers=headers(vendor),
        )
        assert resp.status_code == 404

    def test_customer_has_no_inventory_access(self, client, db_session, customer, make_product, headers):
        product = make_product(stock=3)
        assert client.get(f"/api/inventory/{product.id}/history", headers=headers(customer)).status_code == 403

    def test_receive_validation(self, client, db_session, admin, make_product, headers):
        product = make_product(stock=3)

        negative = client.post(
            "/api/inventory/receive", json={"product_id": product.id, "quantity": -2}, headers=headers(admin),
        )
        unknown_field = client.post(
            "/api/inventory/receive",
            json={"product_id": product.id, "quantity": 2, "balance_after": 99},
            headers=headers(admin),
        )
        missing = client.post("/api/inventory/receive", json={"quantity": 2}, headers=headers(admin))

        assert negative.status_code == 400
        assert unknown_field.status_code == 400
        assert missing.status_code == 400

    def test_adjust_below_zero_is_409(self, client, db_session, admin, make_product, headers):
        product = make_product(stock=3)

        resp = client.post(
            "/api/inventory/adjust", json={"product_id": product.id, "quantity": -4}, headers=headers(admin),
        )
        assert resp.status_code == 409

    def test_history_and_reconcile(self, client, db_session, admin, make_product, headers):
        product = make_product(stock=3)
        client.post("/api/inventory/adjust", json={"product_id": product.id, "quantity": -1}, headers=headers(admin))

        history = client.get(f"/api/inventory/{product.id}/history", headers=headers(admin)).get_json()["entries"]
        assert [e["transaction_type"] for e in history] == ["adjustment", "purchase"]

        result = client.get(f"/api/inventory/{product.id}/reconcile", headers=headers(admin)).get_json()
        assert result == {
            "product_id": product.id,
            "variant_id": None,
            "stock_quantity": 2,
            "ledger_sum": 2,
            "consistent": True,
        }
