# Overview: Background job actors (dramatiq) for post-commit side effects.

from __future__ import annotations

import logging
import os
from contextlib import contextmanager

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker
from flask import has_app_context

logger = logging.getLogger(__name__)

if os.getenv("RUN_INLINE_JOBS", "0") == "1":
    # Development and tests: never touch Redis
    dramatiq.set_broker(StubBroker())
else:
    dramatiq.set_broker(RedisBroker(url=os.getenv("REDIS_URL", "redis://localhost:6379/0")))

_worker_app = None


@contextmanager
def _app_context():
    """Reuse the caller's app context, or build the worker's app once."""
    global _worker_app
    if has_app_context():
        yield
        return
    if _worker_app is None:
        from . import create_app
        _worker_app = create_app(dispatcher=DramatiqDispatcher())
    with _worker_app.app_context():
        yield


@dramatiq.actor(max_retries=3)
def generate_invoice(order_id: int) -> None:
    from .wiring import get_services

    with _app_context():
        invoice = get_services().invoices.generate(order_id)
        if invoice is not None:
            logger.info("generate_invoice order=%s invoice=%s", order_id, invoice.invoice_number)


@dramatiq.actor(max_retries=3)
def send_order_notification(order_id: int, event: str, old_status: str | None = None) -> None:
    from .services import notification_service

    with _app_context():
        notification_service.send_order_notification(order_id, event, old_status)


@dramatiq.actor(max_retries=3)
def low_stock_alert(product_id: int) -> None:
    from .services import notification_service

    with _app_context():
        notification_service.low_stock_alert(product_id)


ACTORS = {
    "generate_invoice": generate_invoice,
    "send_order_notification": send_order_notification,
    "low_stock_alert": low_stock_alert,
}


class DramatiqDispatcher:
    """Hands deferred side effects to their dramatiq actors."""

    def dispatch(self, task_name: str, **kwargs) -> None:
        actor = ACTORS.get(task_name)
        if actor is None:
            raise KeyError(f"Unknown task '{task_name}'")
        actor.send(**kwargs)
        logger.debug("Enqueued %s %s", task_name, kwargs)
