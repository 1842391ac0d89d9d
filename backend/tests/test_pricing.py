# Overview: Pytest coverage for order totals and the pricing policy.

import pytest

from vendorhub.errors import InconsistentTotals, ValidationFailed
from vendorhub.models import Order, OrderItem
from vendorhub.services.pricing import (
    PricingPolicy,
    compute_totals,
    ensure_totals_consistent,
    order_total,
)


def test_total_with_all_components():
    # subtotal=350, tax=35, shipping=15, discount=10
    assert order_total(350, 35, 15, 10) == 390


def test_compute_totals_uses_overrides():
    totals = compute_totals(350, PricingPolicy(), tax_cents=35, shipping_cost_cents=15, discount_cents=10)
    assert totals.total_cents == 390


def test_default_policy_is_ten_percent_tax_no_shipping():
    totals = compute_totals(2000, PricingPolicy())
    assert totals.tax_cents == 200
    assert totals.shipping_cost_cents == 0
    assert totals.discount_cents == 0
    assert totals.total_cents == 2200


@pytest.mark.parametrize("subtotal,expected_tax", [(5, 1), (4, 0), (15, 2), (999, 100)])
def test_tax_rounds_half_up(subtotal, expected_tax):
    assert PricingPolicy(tax_rate_bps=1000).tax_for(subtotal) == expected_tax


def test_policy_from_config():
    policy = PricingPolicy.from_config({"DEFAULT_TAX_RATE_BPS": 825, "DEFAULT_SHIPPING_CENTS": 499})
    totals = compute_totals(10000, policy)
    assert totals.tax_cents == 825
    assert totals.shipping_cost_cents == 499


def test_discount_larger_than_order_is_rejected():
    with pytest.raises(ValidationFailed):
        compute_totals(100, PricingPolicy(), tax_cents=0, shipping_cost_cents=0, discount_cents=101)


def test_ensure_totals_consistent_detects_drift():
    order = Order(
        order_number="ORD-TEST",
        subtotal_cents=350,
        tax_cents=35,
        shipping_cost_cents=15,
        discount_cents=10,
        total_cents=390,
    )
    ensure_totals_consistent(order)

    order.total_cents = 391
    with pytest.raises(InconsistentTotals) as excinfo:
        ensure_totals_consistent(order)
    assert excinfo.value.order_number == "ORD-TEST"


def test_ensure_totals_consistent_checks_line_sum():
    order = Order(
        order_number="ORD-TEST",
        subtotal_cents=300,
        tax_cents=0,
        shipping_cost_cents=0,
        discount_cents=0,
        total_cents=300,
    )
    order.items.append(OrderItem(quantity=1, unit_price_cents=200, subtotal_cents=200))

    with pytest.raises(InconsistentTotals) as excinfo:
        ensure_totals_consistent(order)
    assert excinfo.value.details == {"subtotal_cents": 300, "line_sum_cents": 200}
