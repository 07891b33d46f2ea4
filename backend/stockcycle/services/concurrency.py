# Overview: Row locking and retry helpers for the order-approval and report-submission paths.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import User


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def lock_distributor(distributor_id: int) -> User | None:
    """
    Serialization point for report submission.

    Every create/edit of a report locks the distributor's User row before it
    reads already-reported stock, so two submissions for the same
    distributor cannot both clamp against the same baseline. The lock is held
    until the surrounding transaction commits or rolls back.
    """
    return lock_for_update(db.session.query(User).filter(User.id == distributor_id)).first()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts on Product.version_id).
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Concurrency conflict, retrying (attempt %s of %s)", attempt + 1, attempts
            )
            time.sleep(backoff_base * (2 ** attempt))
