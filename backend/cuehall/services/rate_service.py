# Overview: Service-layer operations for the rate ledger; encapsulates business logic and database work.

"""
Rate Ledger

Changing a table's hourly rate appends a RateHistory row with the prior
rate and then updates the table, in one transaction. Sessions already
opened keep their own pinned rate.
"""

from __future__ import annotations

from ..extensions import db
from ..models import PoolTable, RateHistory
from ..validation import require_amount
from cuehall.time_utils import utcnow
from .concurrency import run_with_retry
from .results import returns_result
from .tenant_service import Actor, require_owned


@returns_result
def update_table_rate(actor: Actor, table_id: int, new_rate) -> dict:
    """
    Set a table's hourly rate.

    Returns:
        The RateHistory entry written (as dict)

    Raises (as Failure):
        NotFoundError: table missing or owned by another account
        ValidationError: new_rate < 0
    """
    new_rate = require_amount("new_rate", new_rate)

    def _op():
        table = require_owned(PoolTable, table_id, actor.account_id, label="Table", for_update=True)

        entry = RateHistory(
            account_id=actor.account_id,
            table_id=table.id,
            old_rate=table.hourly_rate,
            new_rate=new_rate,
            changed_by_operator_id=actor.operator_id,
            changed_at=utcnow(),
        )
        db.session.add(entry)
        table.hourly_rate = new_rate
        db.session.commit()
        return entry.to_dict()

    return run_with_retry(_op)


def get_rate_history(actor: Actor, table_id: int) -> list[RateHistory]:
    require_owned(PoolTable, table_id, actor.account_id, label="Table")
    return db.session.query(RateHistory).filter_by(table_id=table_id).order_by(
        RateHistory.changed_at.desc(), RateHistory.id.desc()
    ).all()
