# Overview: Transaction runner for stock mutations; retries optimistic-concurrency conflicts.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)

"""
Stock transaction contract (authoritative)

- Every write to Material.stock happens inside run_in_transaction().
- The callable is re-run from scratch on conflict, so it must read everything
  it decides on inside the attempt and keep no state outside it.
- Any exception rolls the session back; nothing from a failed attempt is
  committed.
- OperationalError (lock timeout, deadlock) and StaleDataError (version_id
  mismatch) are retried with exponential backoff. Domain errors are not.
"""

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


class ConflictRetryExhaustedError(Exception):
    """Store-level retries ran out under contention. Transient; the caller may retry."""

    def __init__(self, attempts: int, last_error: Exception | None = None):
        super().__init__(f"Transaction conflicted {attempts} times; please retry")
        self.attempts = attempts
        self.last_error = last_error
        self.details = {"attempts": attempts}


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() takes the
    database write lock up front there instead.
    """
    return query.with_for_update()


def begin_write() -> None:
    """Take the write lock before the first read so SQLite serializes writers."""
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def _retry_settings(attempts: int | None, backoff_base: float | None) -> tuple[int, float]:
    if attempts is None:
        attempts = current_app.config.get("TRANSACTION_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("TRANSACTION_RETRY_BACKOFF", 0.1)
    return max(1, attempts), backoff_base


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Raises ConflictRetryExhaustedError once
    the attempts are used up.
    """
    attempts, backoff_base = _retry_settings(attempts, backoff_base)
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            last_exc = exc
            logger.warning(
                "Transaction conflict (attempt %s/%s): %s",
                attempt + 1,
                attempts,
                exc.__class__.__name__,
            )
            if attempt < attempts - 1:
                time.sleep(backoff_base * (2 ** attempt))
    raise ConflictRetryExhaustedError(attempts, last_exc) from last_exc


def run_in_transaction(fn, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run fn() as one atomic read-modify-write transaction and commit it.

    fn takes no arguments and works through db.session. Its return value is
    returned after a successful commit. Uncommitted work already pending in
    the session is discarded first.
    """
    def _attempt():
        # Close out the caller's read transaction so BEGIN IMMEDIATE starts clean
        db.session.rollback()
        try:
            begin_write()
            result = fn()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    return run_with_retry(_attempt, attempts=attempts, backoff_base=backoff_base)
