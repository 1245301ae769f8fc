# Overview: Service-layer helpers for locking, write transactions and retry on lock conflicts.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import Busy
from ..extensions import db

# PostgreSQL SQLSTATEs for lock_not_available, deadlock_detected, serialization_failure
_PG_LOCK_CODES = {"55P03", "40P01", "40001"}


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing() makes the locked read overwrite any copy already in the
    identity map, so decisions are made on the row as it is inside this
    transaction.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write_transaction()
    takes the database write lock there instead.
    """
    return query.with_for_update().populate_existing()


def begin_write_transaction() -> None:
    """
    Start the write transaction for a check-then-act unit of work.

    - SQLite: BEGIN IMMEDIATE takes the single writer lock up front, so the
      stock check and the decrement cannot interleave with another writer.
      Lock waits are bounded by the driver busy timeout (LOCK_TIMEOUT_SECONDS).
    - PostgreSQL: row locks come from lock_for_update(); lock waits are bounded
      with SET LOCAL lock_timeout for the current transaction only.
    """
    dialect = db.engine.dialect.name
    if dialect == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))
    elif dialect == "postgresql":
        timeout_ms = int(float(current_app.config.get("LOCK_TIMEOUT_SECONDS", 5)) * 1000)
        db.session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))


def is_lock_conflict(exc: Exception) -> bool:
    """True when exc is a lock timeout, deadlock or optimistic-version conflict."""
    if isinstance(exc, StaleDataError):
        return True
    if not isinstance(exc, OperationalError):
        return False
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) in _PG_LOCK_CODES:
        return True
    message = str(orig or exc).lower()
    return "database is locked" in message or "database table is locked" in message


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB unit of work with retry on lock conflicts.

    - Lock conflicts roll back and retry with exponential backoff; once attempts
      are exhausted the call raises Busy (retryable).
    - Any other exception rolls back the session and propagates unchanged, so
      no partial write of the unit of work survives.
    """
    config = current_app.config
    if attempts is None:
        attempts = int(config.get("RETRY_ATTEMPTS", 3))
    if backoff_base is None:
        backoff_base = float(config.get("RETRY_BACKOFF_SECONDS", 0.1))

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if not is_lock_conflict(exc):
                raise
            if attempt >= attempts - 1:
                raise Busy(
                    "Resource is busy, retry the request",
                    details={"attempts": attempts},
                ) from exc
            current_app.logger.warning(
                "Lock conflict on attempt %s/%s, retrying: %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise

