# Overview: Locking and retry around read-modify-write database units.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


# Lock contention (OperationalError) and a lost version check on a claim
# (StaleDataError) are both safe to replay from a clean session.
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on backends that support it.

    SQLite ignores the clause; there claims fall back to their version_id
    check, which turns a lost update into StaleDataError.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 5, backoff_base: float = 0.05):
    """
    Run `func` (a complete read-modify-write unit that commits) and replay it
    after a rollback when it hits a retryable error.

    Backoff doubles per attempt. Domain errors and anything else roll the
    session back and propagate on the first occurrence.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                current_app.logger.warning(
                    "Giving up after %d attempts: %s", attempts, type(exc).__name__
                )
                raise
            current_app.logger.debug(
                "Retrying after %s (attempt %d/%d)", type(exc).__name__, attempt, attempts
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
        except Exception:
            db.session.rollback()
            raise
