# Overview: Transaction boundary, row locking and retry helpers shared by the services.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from ..errors import InfrastructureError, LockTimeout, StoreUnavailable
from ..extensions import db, immediate_begin


# lock_not_available, deadlock_detected, query_canceled
_PG_LOCK_SQLSTATES = {"55P03", "40P01", "57014"}
_SQLITE_LOCK_MESSAGES = ("database is locked", "database table is locked")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there every transaction
    starts with BEGIN IMMEDIATE instead (see extensions.py).
    """
    return query.with_for_update()


def lock_for_share(query):
    """
    SELECT ... FOR SHARE: blocks writers of the row, not other readers.

    Used on item prices so concurrent purchases of one item proceed together
    while a price change waits for them (and they for it).
    """
    return query.with_for_update(read=True)


def _is_lock_failure(exc: OperationalError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _PG_LOCK_SQLSTATES:
        return True
    message = str(orig).lower()
    return any(m in message for m in _SQLITE_LOCK_MESSAGES)


def translate_db_error(exc: SQLAlchemyError) -> InfrastructureError:
    """Map a SQLAlchemy failure onto the storefront infrastructure errors."""
    if isinstance(exc, OperationalError):
        if _is_lock_failure(exc):
            return LockTimeout("Timed out waiting for a database lock")
        return StoreUnavailable("Database unavailable")
    if isinstance(exc, IntegrityError):
        return InfrastructureError("Database constraint violated")
    return StoreUnavailable("Database error")


def _apply_lock_timeout() -> None:
    """Bound lock waits for the current transaction (PostgreSQL only)."""
    bind = db.session.get_bind()
    if bind.dialect.name != "postgresql":
        return
    lock_ms = int(current_app.config.get("LOCK_TIMEOUT_MS", 5000))
    statement_ms = int(current_app.config.get("STATEMENT_TIMEOUT_MS", 15000))
    db.session.execute(text(f"SET LOCAL lock_timeout = {lock_ms}"))
    db.session.execute(text(f"SET LOCAL statement_timeout = {statement_ms}"))


@contextmanager
def transaction():
    """
    All-or-nothing unit of work on db.session.

    Any transaction already open on the session (typically a read) is
    committed first so the block runs in a fresh transaction. Commits when
    the block exits cleanly. Any exception rolls the whole transaction back;
    database failures surface as InfrastructureError subclasses with the
    original exception chained.
    """
    token = immediate_begin.set(True)
    try:
        if db.session().in_transaction():
            db.session.commit()
        _apply_lock_timeout()
        yield db.session
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise translate_db_error(exc) from exc
    except Exception:
        db.session.rollback()
        raise
    finally:
        immediate_begin.reset(token)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute an operation, retrying retryable infrastructure failures.

    For callers of the core: lock timeouts and an unavailable store are
    retried with exponential backoff. Business and validation errors are
    never retried.
    """
    for attempt in range(attempts):
        try:
            return func()
        except InfrastructureError as exc:
            if not exc.retryable or attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying after %s (attempt %d of %d)", type(exc).__name__, attempt + 1, attempts
            )
            time.sleep(backoff_base * (2 ** attempt))
