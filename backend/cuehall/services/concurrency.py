# Overview: Row locking and retry helpers shared by the ledger services.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Lock the rows a settlement or balance change is about to rewrite.

    NOTE: SQLite ignores SELECT ... FOR UPDATE. There the version_id columns
    on tables, sessions, customers and cashback rows turn a lost update into
    a StaleDataError instead.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, label: str | None = None):
    """
    Run one unit of ledger work, retrying on lock and version conflicts.

    `func` is re-run from scratch after a rollback, so it must re-read every
    row it writes (all callers load through require_owned / lock_for_update
    inside `func`). Domain errors are not retried and propagate at once.
    """
    name = label or getattr(func, "__qualname__", "ledger operation")
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts:
                current_app.logger.error("%s failed after %s attempts: %s", name, attempts, exc)
                raise
            current_app.logger.warning("%s hit a concurrent update (attempt %s), retrying", name, attempt)
            time.sleep(backoff_base * (2 ** (attempt - 1)))
