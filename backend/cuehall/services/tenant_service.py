"""
Multi-Tenant Service: Actor Resolution and Ownership Checks

WHY: Every operation is scoped to one account. The actor is passed
explicitly through every call instead of being read from request globals,
so services run the same under a route, a CLI command or a test.

SECURITY INVARIANTS:
1. An actor is an active operator of an active account
2. Ids from client input are validated against actor.account_id
3. Rows owned by another account are reported exactly like missing rows
4. Cross-account access attempts are logged
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import AuthorizationError, NotFoundError
from ..extensions import db
from ..models import Account, Operator
from .concurrency import lock_for_update


@dataclass(frozen=True)
class Actor:
    account_id: int
    operator_id: int


def make_actor(*, account_id: int, operator_id: int) -> Actor:
    account = db.session.query(Account).filter_by(id=account_id).first()
    if not account or not account.is_active:
        raise AuthorizationError("Account not found or inactive")

    operator = db.session.query(Operator).filter_by(id=operator_id).first()
    if not operator or operator.account_id != account.id:
        raise AuthorizationError("Operator not found for this account")
    if not operator.is_active:
        raise AuthorizationError("Operator is inactive")

    return Actor(account_id=account.id, operator_id=operator.id)


def require_owned(model, entity_id, account_id: int, *, label: str, for_update: bool = False):
    """
    Load `model` by id and make sure it belongs to `account_id`.

    Raises:
        NotFoundError if the row is missing or owned by another account
        (same message either way, so existence is not leaked)
    """
    query = db.session.query(model).filter_by(id=entity_id)
    if for_update:
        query = lock_for_update(query)
    row = query.first()

    if not row:
        raise NotFoundError(f"{label} not found")

    if row.account_id != account_id:
        current_app.logger.warning(
            "Cross-account access denied: %s %s belongs to account %s, not %s",
            label, entity_id, row.account_id, account_id,
        )
        raise NotFoundError(f"{label} not found")

    return row
