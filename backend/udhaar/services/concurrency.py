# Overview: Row locks and bounded retry for checkout steps that race with other terminals.

from __future__ import annotations

import time
from typing import Callable, TypeVar

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

T = TypeVar("T")

# Lock timeouts/deadlocks surface as OperationalError; a version_id mismatch as StaleDataError
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the rows a ledger step is about to change.

    SQLite ignores the lock; there the customer/invoice version_id columns
    turn a lost update into a StaleDataError instead.
    """
    return query.with_for_update()


def run_with_retry(step: Callable[[], T], *, attempts: int | None = None) -> T:
    """
    Run one committed ledger step, retrying it after a concurrent-update conflict.

    The session is rolled back between attempts, so `step` must re-read every
    row it changes. Attempts and back-off come from CONFLICT_RETRY_ATTEMPTS and
    CONFLICT_RETRY_BACKOFF_SECONDS. The last conflict is re-raised.
    """
    if attempts is None:
        attempts = current_app.config.get("CONFLICT_RETRY_ATTEMPTS", 3)
    backoff = current_app.config.get("CONFLICT_RETRY_BACKOFF_SECONDS", 0.05)

    for attempt in range(1, attempts + 1):
        try:
            return step()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            current_app.logger.warning(
                "Concurrent update conflict (attempt %d/%d): %s", attempt, attempts, exc
            )
            if attempt == attempts:
                raise
            time.sleep(backoff * (2 ** (attempt - 1)))
    raise RuntimeError("run_with_retry needs at least one attempt")
