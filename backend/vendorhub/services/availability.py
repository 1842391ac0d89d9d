# Overview: Read-only stock availability checks for requested order lines.

from __future__ import annotations

from ..errors import Shortfall


def _item_target(item: dict) -> tuple[int, int | None]:
    variant_id = item.get("variant_id", item.get("product_variant_id"))
    return item["product_id"], variant_id


def aggregate_quantities(items: list[dict]) -> dict[tuple[int, int | None], int]:
    """
    Total requested quantity per (product_id, variant_id), in first-seen order.

    Two lines for the same target must be checked against the balance
    together, not one at a time.
    """
    totals: dict[tuple[int, int | None], int] = {}
    for item in items:
        target = _item_target(item)
        totals[target] = totals.get(target, 0) + int(item["quantity"])
    return totals


class StockAvailabilityChecker:
    """
    Advisory availability check against current ledger balances.

    This is a plain read with no locking of its own. The order service runs
    it again inside the order transaction, after the targets are locked;
    a result obtained outside that transaction can be stale by the time an
    order is placed.
    """

    def __init__(self, ledger):
        self._ledger = ledger

    def check_availability(self, items: list[dict]) -> list[Shortfall]:
        shortfalls = []
        for (product_id, variant_id), requested in aggregate_quantities(items).items():
            if self._ledger.is_untracked(product_id):
                continue
            available = self._ledger.current_balance(product_id, variant_id)
            if available < requested:
                shortfalls.append(
                    Shortfall(
                        product_id=product_id,
                        variant_id=variant_id,
                        requested=requested,
                        available=available,
                    )
                )
        return shortfalls
