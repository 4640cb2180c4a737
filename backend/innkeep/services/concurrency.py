# Overview: Transaction helpers shared by every write path (locking, retry, SQLite write lock).

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import StoreIntegrityError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the write lock is taken
    up front by begin_write().
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Take the database write lock before the first read of a transaction.

    On SQLite this issues BEGIN IMMEDIATE so that check-then-write sequences
    (stock, remaining return quantity, open shift) cannot interleave with
    another writer. Other backends rely on lock_for_update().
    """
    db.session.flush()
    if db.engine.dialect.name != "sqlite":
        return

    raw = db.session.connection().connection.dbapi_connection
    if getattr(raw, "in_transaction", False):
        # A DML statement already opened the transaction (RESERVED lock held)
        return
    db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls the session
    back and propagates; IntegrityError surfaces as StoreIntegrityError.
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
        except IntegrityError as exc:
            db.session.rollback()
            raise StoreIntegrityError(
                "Database integrity violation",
                details={"error": str(exc.orig)},
            ) from exc
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc


def run_in_transaction(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func as one atomic unit: write lock, body, commit.

    Either every write made by func becomes visible or none does.
    """
    def _op():
        begin_write()
        result = func()
        db.session.commit()
        return result

    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
