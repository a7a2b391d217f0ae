# Overview: Transaction-scoped unit of work passed explicitly into ledger and sale operations.

"""
A UnitOfWork is one database transaction. Ledger and sale operations receive it
as an argument instead of reaching for an ambient session, so every mutation
made through it commits or rolls back together.

    with UnitOfWork() as uow:
        ledger_service.decrement(uow, ...)
        ledger_service.increment(uow, ...)
    # committed here; any exception above rolled everything back

Error translation on the way out:
- IntegrityError on the sale-number constraint -> DuplicateIdentifier
- other IntegrityError / SQLAlchemyError -> PersistenceFailure
- OperationalError / StaleDataError propagate unchanged so run_with_retry can
  start a fresh attempt
- domain errors (InsufficientStock, ...) propagate unchanged
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from .concurrency import RETRYABLE_ERRORS, begin_write_transaction
from .errors import DuplicateIdentifier, PersistenceFailure
from .identifier_service import is_sale_number_conflict


class UnitOfWork:
    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def __enter__(self) -> "UnitOfWork":
        begin_write_transaction(self.session)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is not None:
            self.session.rollback()
            current_app.logger.warning("Unit of work rolled back: %s", type(exc).__name__)
            self._translate(exc)
            return False

        try:
            self.session.commit()
        except SQLAlchemyError as err:
            self.session.rollback()
            current_app.logger.warning("Commit failed, rolled back: %s", type(err).__name__)
            self._translate(err)
            raise
        return False

    def add(self, obj) -> None:
        self.session.add(obj)

    def flush(self) -> None:
        self.session.flush()

    @staticmethod
    def _translate(exc: BaseException) -> None:
        if isinstance(exc, RETRYABLE_ERRORS):
            return
        if isinstance(exc, IntegrityError):
            if is_sale_number_conflict(exc):
                raise DuplicateIdentifier(
                    "Sale number already in use; retry with a new number"
                ) from exc
            raise PersistenceFailure("Integrity constraint violated") from exc
        if isinstance(exc, SQLAlchemyError):
            raise PersistenceFailure("Database operation failed") from exc
