# Overview: Pytest coverage for advisory stock availability checks.

from vendorhub.services.availability import aggregate_quantities


class TestAvailability:

    def test_all_available_returns_empty_list(self, db_session, services, make_product):
        product = make_product(stock=5)
        assert services.availability.check_availability([{"product_id": product.id, "quantity": 5}]) == []

    def test_shortfall_reports_requested_and_available(self, db_session, services, make_product):
        ok = make_product(stock=5)
        short = make_product(stock=2)

        shortfalls = services.availability.check_availability([
            {"product_id": ok.id, "quantity": 1},
            {"product_id": short.id, "quantity": 3},
        ])

        assert [s.to_dict() for s in shortfalls] == [
            {"product_id": short.id, "variant_id": None, "requested": 3, "available": 2},
        ]

    def test_duplicate_lines_are_checked_together(self, db_session, services, make_product):
        product = make_product(stock=5)

        shortfalls = services.availability.check_availability([
            {"product_id": product.id, "quantity": 3},
            {"product_id": product.id, "quantity": 3},
        ])

        assert len(shortfalls) == 1
        assert shortfalls[0].requested == 6

    def test_variant_uses_variant_balance(self, db_session, services, make_product, make_variant):
        product = make_product(stock=100)
        variant = make_variant(product, stock=1)

        shortfalls = services.availability.check_availability([
            {"product_id": product.id, "variant_id": variant.id, "quantity": 2},
        ])

        assert shortfalls[0].variant_id == variant.id
        assert shortfalls[0].available == 1

    def test_untracked_products_are_never_short(self, db_session, services, make_product):
        product = make_product(stock=0, track_inventory=False)
        assert services.availability.check_availability([{"product_id": product.id, "quantity": 50}]) == []

    def test_unknown_product_is_short_with_zero_available(self, db_session, services):
        shortfalls = services.availability.check_availability([{"product_id": 424242, "quantity": 1}])
        assert shortfalls[0].available == 0

    def test_check_does_not_change_stock(self, db_session, services, make_product):
        product = make_product(stock=3)
        services.availability.check_availability([{"product_id": product.id, "quantity": 10}])
        assert services.ledger.current_balance(product.id) == 3


def test_aggregate_quantities_accepts_both_variant_keys():
    totals = aggregate_quantities([
        {"product_id": 1, "variant_id": 2, "quantity": 1},
        {"product_id": 1, "product_variant_id": 2, "quantity": 4},
        {"product_id": 1, "quantity": 2},
    ])
    assert totals == {(1, 2): 5, (1, None): 2}
