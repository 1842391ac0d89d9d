# Overview: Post-commit side-effect queue; defers background tasks until the
# surrounding transaction has committed.

"""
Side effects (invoice generation, notifications, low-stock alerts) are
recorded on the active SQLAlchemy session while a transaction is open and
handed to the task dispatcher only after COMMIT succeeds. A rollback
discards them, so no task is ever enqueued for work that did not persist.
"""

from __future__ import annotations

from typing import Any, Protocol

from flask import current_app

from ..extensions import db

PENDING_KEY = "vendorhub.pending_side_effects"


class TaskDispatcher(Protocol):
    """Fire-and-forget task queue (dramatiq in production)."""

    def dispatch(self, task_name: str, **kwargs: Any) -> None:
        ...


def defer(task_name: str, **kwargs: Any) -> None:
    """Queue a task to be dispatched after the current transaction commits."""
    db.session().info.setdefault(PENDING_KEY, []).append((task_name, kwargs))


def discard() -> None:
    db.session().info.pop(PENDING_KEY, None)


def flush_to(dispatcher: TaskDispatcher | None) -> None:
    """
    Hand deferred tasks to the dispatcher. Call only after COMMIT.

    Enqueue failures are logged, never raised: the transaction has already
    committed and the caller's outcome must reflect that.
    """
    tasks = db.session().info.pop(PENDING_KEY, [])
    if dispatcher is None:
        return
    for task_name, kwargs in tasks:
        try:
            dispatcher.dispatch(task_name, **kwargs)
        except Exception:
            current_app.logger.exception("Failed to enqueue %s %s", task_name, kwargs)
