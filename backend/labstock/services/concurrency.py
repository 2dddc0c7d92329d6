# Overview: Service-layer operations for concurrency; transaction, locking and retry helpers.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ResourceContentionError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing() refreshes any instance already in the identity map
    with the row read under the lock.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the version_id columns on locked models reject stale writes.
    """
    return query.with_for_update().populate_existing()


def run_in_transaction(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute func inside a fresh transaction and commit its result.

    - Any exception rolls the whole session back before propagating.
    - OperationalError (deadlocks, lock timeouts) and StaleDataError
      (optimistic version conflicts) are retried with exponential backoff.
    - Once retries are exhausted the failure surfaces as
      ResourceContentionError so callers can retry later.
    """
    if attempts is None:
        attempts = current_app.config.get("DB_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("DB_RETRY_BACKOFF_SECONDS", 0.1)

    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
            return result
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Giving up after %s attempts on contended transaction: %s", attempts, exc
                )
                raise ResourceContentionError(
                    "The record is busy. Please retry shortly."
                ) from exc
            current_app.logger.warning(
                "Retrying contended transaction (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
