# Overview: Explicit construction of the service graph for one Flask app.

from __future__ import annotations

import os
from dataclasses import dataclass

from flask import Flask, current_app

from .services.availability import StockAvailabilityChecker
from .services.inventory_ledger import InventoryLedger
from .services.invoice_service import InvoiceGenerator, InvoiceRenderer, InvoiceStorage
from .services.order_service import OrderService
from .services.pricing import PricingPolicy

EXTENSION_KEY = "vendorhub.services"


@dataclass
class Services:
    ledger: InventoryLedger
    availability: StockAvailabilityChecker
    orders: OrderService
    invoices: InvoiceGenerator
    dispatcher: object


def build_services(app: Flask, dispatcher=None) -> Services:
    """Wire every collaborator explicitly and register the graph on the app."""
    ledger = InventoryLedger(dispatcher=dispatcher)
    availability = StockAvailabilityChecker(ledger)
    orders = OrderService(
        ledger,
        availability,
        dispatcher=dispatcher,
        pricing=PricingPolicy.from_config(app.config),
    )

    storage_dir = app.config.get("INVOICE_STORAGE_DIR") or os.path.join(app.instance_path, "invoices")
    invoices = InvoiceGenerator(
        InvoiceRenderer(),
        InvoiceStorage(storage_dir),
        due_days=app.config.get("INVOICE_DUE_DAYS", 30),
        attempts=app.config.get("INVOICE_RENDER_ATTEMPTS", 3),
        backoff_base=app.config.get("INVOICE_RETRY_BACKOFF", 0.5),
    )

    services = Services(
        ledger=ledger,
        availability=availability,
        orders=orders,
        invoices=invoices,
        dispatcher=dispatcher,
    )
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
