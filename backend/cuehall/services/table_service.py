# Overview: Service-layer operations for tables; encapsulates business logic and database work.

from __future__ import annotations

from ..errors import PreconditionError
from ..extensions import db
from ..models import PlaySession, PoolTable
from ..models.sessions import SESSION_STATUS_ACTIVE
from ..validation import require_amount, require_bool, require_text
from .concurrency import run_with_retry
from .results import returns_result
from .tenant_service import Actor, require_owned


def _active_session_for(account_id: int, table_id: int) -> PlaySession | None:
    return db.session.query(PlaySession).filter_by(
        account_id=account_id,
        table_id=table_id,
        status=SESSION_STATUS_ACTIVE,
    ).first()


@returns_result
def create_table(actor: Actor, name, hourly_rate) -> dict:
    name = require_text("name", name, max_length=128)
    hourly_rate = require_amount("hourly_rate", hourly_rate)

    table = PoolTable(
        account_id=actor.account_id,
        name=name,
        hourly_rate=hourly_rate,
        is_active=True,
    )
    db.session.add(table)
    db.session.commit()
    return table.to_dict()


def list_tables(actor: Actor) -> list[dict]:
    """Every table of the account with its occupancy."""
    tables = db.session.query(PoolTable).filter_by(
        account_id=actor.account_id
    ).order_by(PoolTable.name, PoolTable.id).all()

    active = {
        s.table_id: s.id
        for s in db.session.query(PlaySession).filter_by(
            account_id=actor.account_id,
            status=SESSION_STATUS_ACTIVE,
        ).all()
    }

    result = []
    for table in tables:
        d = table.to_dict()
        d["is_occupied"] = table.id in active
        d["active_session_id"] = active.get(table.id)
        result.append(d)
    return result


@returns_result
def set_table_active(actor: Actor, table_id: int, is_active) -> dict:
    is_active = require_bool("is_active", is_active)

    def _op():
        table = require_owned(PoolTable, table_id, actor.account_id, label="Table", for_update=True)
        table.is_active = is_active
        db.session.commit()
        return table.to_dict()

    return run_with_retry(_op)


@returns_result
def delete_table(actor: Actor, table_id: int) -> None:
    """
    Delete a table that has no active session.

    Settled sessions keep their history with table_id cleared.
    """
    def _op():
        table = require_owned(PoolTable, table_id, actor.account_id, label="Table", for_update=True)

        active = _active_session_for(actor.account_id, table.id)
        if active:
            raise PreconditionError("Table has an active session. Close it first")

        db.session.query(PlaySession).filter_by(table_id=table.id).update(
            {PlaySession.table_id: None}, synchronize_session=False
        )
        db.session.delete(table)
        db.session.commit()
        return None

    return run_with_retry(_op)
