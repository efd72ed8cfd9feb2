# Overview: Concurrency helpers for single-row state transitions and retryable transactions.

from __future__ import annotations

import time

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def claim_once(model, row_id: int, flag_column: str, values: dict) -> bool:
    """
    Conditionally set a NULL column exactly once.

    Issues UPDATE ... WHERE id = :row_id AND <flag_column> IS NULL and
    reports whether this caller won. Two transactions racing on the same
    row cannot both see one affected row, whatever the isolation level.
    """
    column = getattr(model, flag_column)
    stmt = (
        update(model)
        .where(model.id == row_id, column.is_(None))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    return result.rowcount == 1


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, "database is locked") and
    StaleDataError (optimistic locking conflicts). func must be safe to
    re-run from scratch after a rollback.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
