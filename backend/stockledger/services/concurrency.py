# Overview: Retry, deadline and lock-budget helpers shared by every ledger write.

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

from flask import current_app, has_app_context
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflict, LedgerError, PersistenceFailure

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 3
DEFAULT_BACKOFF = 0.1


def _setting(key: str, fallback):
    if has_app_context():
        return current_app.config.get(key, fallback)
    return fallback


def apply_lock_timeout(session: Session, seconds: float | None) -> None:
    """
    Bound row-lock waits for the current transaction to the remaining budget.

    Only PostgreSQL understands lock_timeout; SQLite relies on its busy timeout.
    """
    if seconds is None:
        return
    if session.get_bind().dialect.name != "postgresql":
        return
    millis = max(1, int(seconds * 1000))
    session.execute(text(f"SET LOCAL lock_timeout = '{millis}ms'"))


def run_with_retry(
    session: Session,
    func,
    *,
    attempts: int | None = None,
    backoff_base: float | None = None,
    timeout: float | None = None,
):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). `func` receives the remaining time budget
    in seconds (or None) and must leave the session either committed or
    untouched on success.

    The deadline is only checked before an attempt starts. An attempt that has
    begun mutating the ledger always runs to commit or rollback.

    Raises:
        ConcurrencyConflict: attempts exhausted or timeout elapsed
    """
    if attempts is None:
        attempts = _setting("LEDGER_RETRY_ATTEMPTS", DEFAULT_ATTEMPTS)
    if backoff_base is None:
        backoff_base = _setting("LEDGER_RETRY_BACKOFF", DEFAULT_BACKOFF)
    if timeout is None:
        timeout = _setting("LEDGER_LOCK_TIMEOUT", None)

    deadline = None if timeout is None else time.monotonic() + timeout
    last_exc = None

    for attempt in range(attempts):
        remaining = None
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ConcurrencyConflict(
                    "Operation timed out waiting for the inventory store",
                    details={"attempts": attempt, "timeout": timeout},
                ) from last_exc
        try:
            return func(remaining)
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            last_exc = exc
            logger.warning("Ledger write conflict (attempt %s/%s): %s", attempt + 1, attempts, exc)
            if attempt >= attempts - 1:
                break
            time.sleep(backoff_base * (2 ** attempt))

    raise ConcurrencyConflict(
        "Could not serialize the operation against concurrent updates",
        details={"attempts": attempts},
    ) from last_exc


@contextmanager
def unit_of_work(session: Session):
    """
    Commit the enclosed work as one database transaction.

    - LedgerError: rolled back and re-raised untouched
    - OperationalError / StaleDataError: re-raised for run_with_retry
    - any other SQLAlchemyError: rolled back, surfaced as PersistenceFailure
    """
    try:
        yield
        session.commit()
    except LedgerError:
        session.rollback()
        raise
    except (OperationalError, StaleDataError):
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Ledger write failed and was rolled back: %s", exc)
        raise PersistenceFailure("Failed to persist ledger changes; no stock was moved") from exc
    except Exception:
        session.rollback()
        raise
