# Overview: Pricing policy and order total arithmetic (integer cents).

from __future__ import annotations

from dataclasses import dataclass

from ..errors import InconsistentTotals, ValidationFailed


@dataclass(frozen=True)
class PricingPolicy:
    """
    Default tax and shipping applied when the caller supplies no override.

    tax_rate_bps is basis points (1000 = 10%); tax is rounded half-up to
    the nearest cent.
    """
    tax_rate_bps: int = 1000
    flat_shipping_cents: int = 0

    @classmethod
    def from_config(cls, config) -> "PricingPolicy":
        return cls(
            tax_rate_bps=int(config.get("DEFAULT_TAX_RATE_BPS", 1000)),
            flat_shipping_cents=int(config.get("DEFAULT_SHIPPING_CENTS", 0)),
        )

    def tax_for(self, subtotal_cents: int) -> int:
        return (subtotal_cents * self.tax_rate_bps + 5000) // 10000


@dataclass(frozen=True)
class OrderTotals:
    subtotal_cents: int
    tax_cents: int
    shipping_cost_cents: int
    discount_cents: int

    @property
    def total_cents(self) -> int:
        return order_total(
            self.subtotal_cents,
            self.tax_cents,
            self.shipping_cost_cents,
            self.discount_cents,
        )


def order_total(subtotal_cents: int, tax_cents: int, shipping_cost_cents: int, discount_cents: int) -> int:
    return subtotal_cents + tax_cents + shipping_cost_cents - discount_cents


def compute_totals(
    subtotal_cents: int,
    policy: PricingPolicy,
    *,
    tax_cents: int | None = None,
    shipping_cost_cents: int | None = None,
    discount_cents: int | None = None,
) -> OrderTotals:
    totals = OrderTotals(
        subtotal_cents=subtotal_cents,
        tax_cents=policy.tax_for(subtotal_cents) if tax_cents is None else tax_cents,
        shipping_cost_cents=policy.flat_shipping_cents if shipping_cost_cents is None else shipping_cost_cents,
        discount_cents=discount_cents or 0,
    )
    if totals.total_cents < 0:
        raise ValidationFailed(
            "discount exceeds order amount",
            {"discount_cents": totals.discount_cents, "total_cents": totals.total_cents},
        )
    return totals


def ensure_totals_consistent(order) -> None:
    """Check total = subtotal + tax + shipping - discount, and subtotal = sum of lines."""
    expected = order_total(
        order.subtotal_cents,
        order.tax_cents,
        order.shipping_cost_cents,
        order.discount_cents,
    )
    if order.total_cents != expected:
        raise InconsistentTotals(
            order.order_number,
            f"Order {order.order_number} total {order.total_cents} != expected {expected}",
            {"total_cents": order.total_cents, "expected_cents": expected},
        )

    line_sum = sum(item.subtotal_cents for item in order.items)
    if order.items and line_sum != order.subtotal_cents:
        raise InconsistentTotals(
            order.order_number,
            f"Order {order.order_number} subtotal {order.subtotal_cents} != line sum {line_sum}",
            {"subtotal_cents": order.subtotal_cents, "line_sum_cents": line_sum},
        )
