# Overview: Locking, retry and unit-of-work helpers shared by every write path.

from __future__ import annotations

import logging
import time

from flask import current_app, has_app_context
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import StorageUnavailableError
from . import event_service

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the unit of work takes
    the database write lock up front instead (see begin_immediate).
    """
    return query.with_for_update()


def begin_immediate() -> None:
    """
    On SQLite, open the transaction with BEGIN IMMEDIATE so two writers can
    never both read a stale stock value before either writes.

    No-op on other dialects, or when the connection is already inside a
    transaction.
    """
    if db.engine.dialect.name != "sqlite":
        return
    dbapi_connection = db.session.connection().connection.dbapi_connection
    if getattr(dbapi_connection, "in_transaction", False):
        return
    db.session.execute(text("BEGIN IMMEDIATE"))


def _retry_settings() -> tuple[int, float]:
    if has_app_context():
        return (
            int(current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)),
            float(current_app.config.get("LEDGER_RETRY_BACKOFF", 0.1)),
        )
    return 3, 0.1


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locks, busy database) and StaleDataError
    (optimistic locking conflicts). When retries are exhausted, or on any
    other storage failure, the caller gets StorageUnavailableError; the
    original exception is logged. Domain errors pass through untouched.
    """
    default_attempts, default_backoff = _retry_settings()
    attempts = attempts or default_attempts
    backoff_base = default_backoff if backoff_base is None else backoff_base

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.error("Storage conflict persisted after %d attempts", attempts, exc_info=exc)
                raise StorageUnavailableError() from exc
            logger.info("Retrying after storage conflict (attempt %d/%d): %s", attempt + 1, attempts, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except (DBAPIError, SQLAlchemyError) as exc:
            db.session.rollback()
            logger.exception("Storage failure")
            raise StorageUnavailableError() from exc


class UnitOfWork:
    """
    Single all-or-nothing scope for one engine operation.

    Every component call made on behalf of the operation receives the same
    UnitOfWork. Nothing is committed until the scope exits cleanly; any
    exception rolls back the whole scope. Boundary events queued during the
    scope are held until after commit and discarded on rollback.
    """

    def __init__(self, actor: str | None = None):
        self.session = db.session
        self.actor = actor
        self.committed = False
        self._events: list[tuple[str, dict]] = []

    def __enter__(self) -> "UnitOfWork":
        begin_immediate()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.rollback()
            return False
        try:
            self.session.commit()
        except Exception:
            self.rollback()
            raise
        self.committed = True
        return False

    def flush(self) -> None:
        self.session.flush()

    def rollback(self) -> None:
        self.session.rollback()
        self._events.clear()

    def queue_event(self, event_type: str, payload: dict) -> None:
        self._events.append((event_type, payload))

    def dispatch_events(self) -> None:
        if not self.committed:
            return
        events, self._events = self._events, []
        for event_type, payload in events:
            event_service.publish(event_type, payload)


def run_in_unit_of_work(func, *, actor: str | None = None):
    """
    Run ``func(uow)`` inside a fresh UnitOfWork with retry, then dispatch the
    events it queued. Events are only published once the commit succeeded.
    """
    def _op():
        uow = UnitOfWork(actor=actor)
        with uow:
            result = func(uow)
        return result, uow

    result, uow = run_with_retry(_op)
    uow.dispatch_events()
    return result
