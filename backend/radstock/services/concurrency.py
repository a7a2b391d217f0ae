# Overview: Locking and retry helpers shared by every unit of work.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import PersistenceFailure


RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write_transaction()
    covers it by taking the database write lock up front.
    """
    return query.with_for_update()


def begin_write_transaction(session) -> None:
    """
    On SQLite, start the transaction with BEGIN IMMEDIATE so two writers
    cannot both read a quantity and then both decrement it.
    """
    if session.get_bind().dialect.name != "sqlite":
        return
    driver_conn = session.connection().connection.driver_connection
    if not driver_conn.in_transaction:
        session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). `func` must open its own unit of work so
    every attempt starts from a clean transaction. When the attempts run out
    the failure surfaces as PersistenceFailure.
    """
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise PersistenceFailure(
                    "Concurrent update could not be applied",
                    details={"attempts": attempts, "reason": type(exc).__name__},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
