# Overview: Service-layer helpers for locking, retries and write transactions.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import PersistenceError
from ..extensions import db


class ConcurrentUpdateError(Exception):
    """Raised when a concurrent writer created the same row first; retried."""


RETRYABLE_ERRORS = (OperationalError, StaleDataError, ConcurrentUpdateError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() takes the
    database write lock there instead.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Start the write transaction eagerly on SQLite (BEGIN IMMEDIATE) so that
    check-then-write sequences are serialized across connections.
    """
    if db.engine.dialect.name != "sqlite":
        return
    connection = db.session.connection()
    if connection.connection.dbapi_connection.in_transaction:
        return
    connection.exec_driver_sql("BEGIN IMMEDIATE")


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError
    (optimistic locking conflicts) and ConcurrentUpdateError.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_in_transaction(
    func,
    *,
    description: str,
    progress: list | None = None,
    attempts: int | None = None,
    backoff_base: float = 0.1,
):
    """
    Run func() as one write transaction and commit it.

    Any exception rolls the whole transaction back. Conflicts are retried;
    storage failures that survive the retries surface as PersistenceError
    carrying the steps recorded in `progress` before the failure.
    """
    if attempts is None:
        attempts = current_app.config.get("WRITE_RETRY_ATTEMPTS", 3)

    def _op():
        if progress is not None:
            progress.clear()
        begin_write()
        try:
            result = func()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    try:
        return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
    except (SQLAlchemyError, ConcurrentUpdateError) as exc:
        completed = list(progress) if progress is not None else []
        current_app.logger.error(
            "%s failed after steps %s; transaction rolled back", description, completed
        )
        raise PersistenceError(
            f"{description} failed: storage error",
            details={
                "completed_steps": completed,
                "rolled_back": True,
                "cause": type(exc).__name__,
            },
        ) from exc
