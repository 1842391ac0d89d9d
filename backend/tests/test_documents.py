# Overview: Pytest coverage for order and invoice numbering.

import re
from datetime import datetime

from vendorhub.models import DocumentSequence
from vendorhub.services.concurrency import run_in_transaction
from vendorhub.services.document_service import generate_order_number, next_invoice_number


def test_order_number_format():
    number = generate_order_number(datetime(2026, 1, 2, 15, 30))
    assert re.fullmatch(r"ORD-20260102-[0-9A-F]{8}", number)


def test_order_numbers_differ():
    now = datetime(2026, 1, 2)
    assert len({generate_order_number(now) for _ in range(50)}) == 50


def test_invoice_numbers_are_sequential_per_year(db_session):
    def _allocate():
        return [
            next_invoice_number(2026),
            next_invoice_number(2026),
            next_invoice_number(2027),
            next_invoice_number(2026),
        ]

    numbers = run_in_transaction(_allocate)

    assert numbers == ["INV-2026-000001", "INV-2026-000002", "INV-2027-000001", "INV-2026-000003"]
    seq = db_session.query(DocumentSequence).filter_by(document_type="INVOICE", period=2026).one()
    assert seq.next_number == 4


def test_rolled_back_allocation_is_not_consumed(db_session):
    def _allocate_and_fail():
        next_invoice_number(2030)
        raise RuntimeError("abort")

    try:
        run_in_transaction(_allocate_and_fail)
    except RuntimeError:
        pass

    assert run_in_transaction(lambda: next_invoice_number(2030)) == "INV-2030-000001"
