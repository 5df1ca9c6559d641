# Overview: Service-layer operations for additional orders; encapsulates business logic and database work.

"""
Order Aggregator

Ancillary items attached to an active session. The session's additional
amount is always derived from its order rows (never cached), so adding or
removing an order is reflected by the very next read.
"""

from __future__ import annotations

from ..errors import NotFoundError, PreconditionError, ValidationError
from ..extensions import db
from ..models import AdditionalOrder, PlaySession
from ..validation import MAX_AMOUNT, require_amount, require_text
from .concurrency import run_with_retry
from .results import returns_result
from .tenant_service import Actor, require_owned


def calculate_additional_amount(session_id: int) -> int:
    """Sum of total_price over every order of the session."""
    total = db.session.query(
        db.func.coalesce(db.func.sum(AdditionalOrder.total_price), 0)
    ).filter(AdditionalOrder.session_id == session_id).scalar()
    return int(total or 0)


def list_orders(actor: Actor, session_id: int) -> list[AdditionalOrder]:
    require_owned(PlaySession, session_id, actor.account_id, label="Session")
    return db.session.query(AdditionalOrder).filter_by(
        session_id=session_id
    ).order_by(AdditionalOrder.created_at, AdditionalOrder.id).all()


@returns_result
def add_additional_order(
    actor: Actor,
    session_id: int,
    item_name: str,
    quantity: int,
    unit_price: int,
) -> int:
    """
    Attach an item to an active session.

    Returns:
        New order id

    Raises (as Failure):
        NotFoundError: session missing or owned by another account
        PreconditionError: session is not active
        ValidationError: quantity <= 0, unit_price < 0, blank item name
    """
    item_name = require_text("item_name", item_name, max_length=128)
    quantity = require_amount("quantity", quantity, minimum=1)
    unit_price = require_amount("unit_price", unit_price, minimum=0)
    total_price = quantity * unit_price
    if total_price > MAX_AMOUNT:
        raise ValidationError("Order total is too large")

    def _op():
        session = require_owned(PlaySession, session_id, actor.account_id, label="Session", for_update=True)
        if not session.is_active:
            raise PreconditionError("Orders can only be added to an active session")

        order = AdditionalOrder(
            account_id=actor.account_id,
            session_id=session.id,
            item_name=item_name,
            quantity=quantity,
            unit_price=unit_price,
            total_price=total_price,
            created_by_operator_id=actor.operator_id,
        )
        db.session.add(order)
        db.session.commit()
        return order.id

    return run_with_retry(_op)


@returns_result
def remove_additional_order(actor: Actor, order_id: int) -> None:
    """Delete an order while its session is still active."""
    def _op():
        order = db.session.query(AdditionalOrder).filter_by(id=order_id).first()
        if not order or order.account_id != actor.account_id:
            raise NotFoundError("Order not found")

        session = require_owned(PlaySession, order.session_id, actor.account_id, label="Session", for_update=True)
        if not session.is_active:
            raise PreconditionError("Orders can only be removed from an active session")

        db.session.delete(order)
        db.session.commit()
        return None

    return run_with_retry(_op)
