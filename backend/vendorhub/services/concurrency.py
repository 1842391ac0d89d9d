# Overview: Transaction scope, row locking, and retry policy for order and inventory writes.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import PersistenceFailure
from ..extensions import db
from . import side_effects


def lock_for_update(query):
    """
    Apply row-level locking for critical operations and refresh any copy of
    the row already held in the identity map.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update().populate_existing()


def begin_write() -> None:
    """
    Open the transaction with the write lock held.

    SQLite has no row locks, so the whole database write lock is taken up
    front (BEGIN IMMEDIATE). Concurrent writers queue on it instead of both
    reading the same stock and deducting past zero.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_in_transaction(func, *, dispatcher=None, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute func as one atomic unit: commit on success, roll back on any error.

    - OperationalError (deadlocks, lock timeouts) and StaleDataError
      (optimistic version conflicts) are retried with exponential backoff;
      func re-reads everything it needs on each attempt.
    - Exhausted retries and other SQLAlchemy errors surface as PersistenceFailure.
    - Business-rule and validation errors propagate unchanged, after rollback.
    - Side effects deferred by func are dispatched only after COMMIT.
    """
    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            side_effects.discard()
            if attempt >= attempts - 1:
                raise PersistenceFailure(str(exc)) from exc
            time.sleep(backoff_base * (2 ** attempt))
            continue
        except SQLAlchemyError as exc:
            db.session.rollback()
            side_effects.discard()
            raise PersistenceFailure(str(exc)) from exc
        except Exception:
            db.session.rollback()
            side_effects.discard()
            raise

        side_effects.flush_to(dispatcher)
        return result
