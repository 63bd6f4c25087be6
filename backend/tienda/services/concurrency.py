# Overview: Transaction helpers shared by the service layer: row locks,
# retry on transient lock/stale errors, and insert-if-absent.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, "database is locked") and
    StaleDataError (optimistic locking conflicts). The session is rolled
    back before every retry, so func must start its work from scratch.
    Business errors raised by func propagate immediately.
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
            logger.warning(
                "Retrying %s after %s (attempt %d/%d)",
                getattr(func, "__name__", "operation"),
                type(exc).__name__,
                attempt + 1,
                attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def insert_if_absent(lookup, build):
    """
    Conditional insert keyed by a unique constraint.

    lookup() returns the existing row or None; build() returns a new,
    unsaved instance. The insert runs inside a SAVEPOINT: if a concurrent
    writer wins the race the unique constraint fires, only the savepoint is
    rolled back, and the winner's row is returned.

    Returns (row, created).
    """
    existing = lookup()
    if existing is not None:
        return existing, False

    try:
        with db.session.begin_nested():
            row = build()
            db.session.add(row)
            db.session.flush()
    except IntegrityError:
        existing = lookup()
        if existing is None:
            raise
        return existing, False

    return row, True
