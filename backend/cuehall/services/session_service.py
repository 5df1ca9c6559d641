# Overview: Service-layer operations for play sessions; encapsulates business logic and database work.

"""
Session Settlement Orchestrator

WHY: A session is the unit the venue bills. Opening pins the table's rate;
closing meters the time, adds the orders, reconciles the payment across
cash/card, cashback and debt, and credits any new cashback.

DESIGN PRINCIPLES:
- One active session per table at a time (checked, and backed by a
  partial unique index for racing opens)
- hourly_rate_at_start is captured at open and never changes
- Settlement is all-or-nothing: every write happens in one transaction
  that commits once at the end
- Sessions are immutable once completed

LIFECYCLE:
    none -> active -> completed (terminal)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional, Union

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, PreconditionError, ValidationError
from ..extensions import db
from ..models import Customer, Payment, PlaySession, PoolTable
from ..models.payments import PAYMENT_KIND_CARD, PAYMENT_KIND_CASH
from ..models.sessions import SESSION_STATUS_ACTIVE, SESSION_STATUS_COMPLETED
from ..validation import optional_text, require_amount, require_choice
from cuehall.time_utils import to_utc_z, utcnow
from .cashback_service import CashbackPolicy, earn_cashback, get_or_create_settings, spend_cashback
from .concurrency import lock_for_update, run_with_retry
from .metering import read_meter
from .order_service import calculate_additional_amount
from .results import returns_result
from .tenant_service import Actor, require_owned


PAYMENT_TYPE_CASH = PAYMENT_KIND_CASH
PAYMENT_TYPE_CARD = PAYMENT_KIND_CARD
PAYMENT_TYPE_DEBT = "debt"

VALID_PAYMENT_TYPES = [
    PAYMENT_TYPE_CASH,
    PAYMENT_TYPE_CARD,
    PAYMENT_TYPE_DEBT,
]


# =============================================================================
# SESSION SHAPES
# =============================================================================

def _serialize(view) -> dict:
    data = asdict(view)
    for key, value in data.items():
        if isinstance(value, datetime):
            data[key] = to_utc_z(value)
    return data


@dataclass(frozen=True)
class OpenSession:
    """An active session: only the fields known before settlement."""
    id: int
    account_id: int
    table_id: Optional[int]
    customer_id: int
    start_time: datetime
    hourly_rate_at_start: int
    status: str = SESSION_STATUS_ACTIVE

    def to_dict(self) -> dict:
        return _serialize(self)


@dataclass(frozen=True)
class CompletedSession:
    """A settled session with its frozen financial fields."""
    id: int
    account_id: int
    table_id: Optional[int]
    customer_id: int
    start_time: datetime
    hourly_rate_at_start: int
    end_time: datetime
    duration_minutes: int
    game_amount: int
    additional_amount: int
    total_amount: int
    paid_amount: int
    cashback_used: int
    debt_amount: int
    payment_type: Optional[str]
    completed_by: Optional[int]
    notes: Optional[str]
    status: str = SESSION_STATUS_COMPLETED

    def to_dict(self) -> dict:
        return _serialize(self)


SessionView = Union[OpenSession, CompletedSession]


def session_view(session: PlaySession) -> SessionView:
    if session.status == SESSION_STATUS_COMPLETED:
        return CompletedSession(
            id=session.id,
            account_id=session.account_id,
            table_id=session.table_id,
            customer_id=session.customer_id,
            start_time=session.start_time,
            hourly_rate_at_start=session.hourly_rate_at_start,
            end_time=session.end_time,
            duration_minutes=session.duration_minutes,
            game_amount=session.game_amount,
            additional_amount=session.additional_amount,
            total_amount=session.total_amount,
            paid_amount=session.paid_amount,
            cashback_used=session.cashback_used,
            debt_amount=session.debt_amount,
            payment_type=session.payment_type,
            completed_by=session.completed_by_operator_id,
            notes=session.notes,
        )
    return OpenSession(
        id=session.id,
        account_id=session.account_id,
        table_id=session.table_id,
        customer_id=session.customer_id,
        start_time=session.start_time,
        hourly_rate_at_start=session.hourly_rate_at_start,
    )


@dataclass(frozen=True)
class SessionProjection:
    """Running totals of an active session as of `as_of`."""
    session: OpenSession
    as_of: datetime
    duration_minutes: int
    game_amount: int
    additional_amount: int
    total_amount: int
    table_name: Optional[str] = None
    customer_name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "session": self.session.to_dict(),
            "as_of": to_utc_z(self.as_of),
            "duration_minutes": self.duration_minutes,
            "game_amount": self.game_amount,
            "additional_amount": self.additional_amount,
            "total_amount": self.total_amount,
            "table_name": self.table_name,
            "customer_name": self.customer_name,
        }


@dataclass(frozen=True)
class SettlementSummary:
    session_id: int
    total_amount: int
    cashback_used: int
    payable_amount: int
    paid_amount: int
    debt_amount: int
    cashback_earned: int

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# OPEN
# =============================================================================

def _active_session_on(account_id: int, table_id: int) -> PlaySession | None:
    return db.session.query(PlaySession).filter_by(
        account_id=account_id,
        table_id=table_id,
        status=SESSION_STATUS_ACTIVE,
    ).first()


@returns_result
def open_session(actor: Actor, table_id: int, customer_id: int, *, now: datetime | None = None) -> int:
    """
    Start a session on a table for a customer.

    Returns:
        New session id

    Raises (as Failure):
        NotFoundError: table or customer missing / owned by another account
        PreconditionError: table inactive, or already has an active session
        ConflictError: a concurrent open won the race for the table
    """
    def _op():
        table = require_owned(PoolTable, table_id, actor.account_id, label="Table", for_update=True)
        if not table.is_active:
            raise PreconditionError("Cannot open a session on an inactive table")

        customer = require_owned(Customer, customer_id, actor.account_id, label="Customer")

        existing = _active_session_on(actor.account_id, table.id)
        if existing:
            raise PreconditionError(f"Table already has an active session (session {existing.id})")

        session = PlaySession(
            account_id=actor.account_id,
            table_id=table.id,
            customer_id=customer.id,
            status=SESSION_STATUS_ACTIVE,
            start_time=now or utcnow(),
            hourly_rate_at_start=table.hourly_rate,
            opened_by_operator_id=actor.operator_id,
        )
        db.session.add(session)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Table was taken by a concurrent session")

        db.session.commit()
        return session.id

    return run_with_retry(_op, label=f"open_session(table={table_id})")


# =============================================================================
# CLOSE (SETTLEMENT)
# =============================================================================

@returns_result
def close_session(
    actor: Actor,
    session_id: int,
    *,
    paid_amount,
    payment_type: str,
    cashback_amount=0,
    notes: str | None = None,
    now: datetime | None = None,
) -> SettlementSummary:
    """
    Settle an active session.

    Steps (one transaction):
    1. Meter the time and sum the orders into total_amount
    2. Redeem cashback, if requested, within the usage ceiling
    3. Whatever stays unpaid becomes customer debt
    4. Freeze the session as completed
    5. Record the cash/card payment
    6. Credit new cashback from the final amounts

    Invariant: paid_amount + cashback_used + debt_amount == total_amount

    Raises (as Failure):
        NotFoundError: session missing or owned by another account
        PreconditionError: session not active
        ValidationError: negative amounts, paid + cashback > total,
        cashback over balance or usage limit
    """
    paid_amount = require_amount("paid_amount", paid_amount)
    cashback_amount = require_amount("cashback_amount", cashback_amount if cashback_amount is not None else 0)
    payment_type = require_choice("payment_type", payment_type, VALID_PAYMENT_TYPES)
    notes = optional_text("notes", notes, max_length=2000)

    def _op():
        policy = CashbackPolicy.from_settings(get_or_create_settings(actor.account_id))

        session = require_owned(PlaySession, session_id, actor.account_id, label="Session", for_update=True)
        if not session.is_active:
            raise PreconditionError("Session is already completed")

        end_time = now or utcnow()
        reading = read_meter(session.start_time, end_time, session.hourly_rate_at_start)
        additional_amount = calculate_additional_amount(session.id)
        total_amount = reading.game_amount + additional_amount

        if paid_amount + cashback_amount > total_amount:
            raise ValidationError(
                f"Paid amount plus cashback ({paid_amount + cashback_amount}) exceeds session total ({total_amount})"
            )

        customer = lock_for_update(
            db.session.query(Customer).filter_by(id=session.customer_id, account_id=actor.account_id)
        ).first()

        if cashback_amount > 0:
            if not customer:
                raise PreconditionError("Cashback requires a customer on the session")
            spend_cashback(
                session=session,
                customer=customer,
                policy=policy,
                amount=cashback_amount,
                total_amount=total_amount,
                now=end_time,
            )

        payable_amount = total_amount - cashback_amount
        debt_amount = max(0, payable_amount - paid_amount)

        session.end_time = end_time
        session.duration_minutes = reading.duration_minutes
        session.game_amount = reading.game_amount
        session.additional_amount = additional_amount
        session.total_amount = total_amount
        session.paid_amount = paid_amount
        session.cashback_used = cashback_amount
        session.debt_amount = debt_amount
        session.payment_type = payment_type
        session.status = SESSION_STATUS_COMPLETED
        session.completed_by_operator_id = actor.operator_id
        session.notes = notes

        if paid_amount > 0 and payment_type != PAYMENT_TYPE_DEBT:
            db.session.add(
                Payment(
                    account_id=actor.account_id,
                    session_id=session.id,
                    customer_id=session.customer_id,
                    amount=paid_amount,
                    kind=payment_type,
                    tender=payment_type,
                    description=f"Session #{session.id}",
                    created_by_operator_id=actor.operator_id,
                    created_at=end_time,
                )
            )

        if debt_amount > 0 and customer:
            customer.total_debt = (customer.total_debt or 0) + debt_amount

        db.session.flush()

        earned = None
        if customer:
            earned = earn_cashback(session=session, customer=customer, policy=policy, now=end_time)

        db.session.commit()

        summary = SettlementSummary(
            session_id=session.id,
            total_amount=total_amount,
            cashback_used=cashback_amount,
            payable_amount=payable_amount,
            paid_amount=paid_amount,
            debt_amount=debt_amount,
            cashback_earned=earned.amount if earned else 0,
        )
        current_app.logger.info(
            "Session %s settled: total=%s paid=%s cashback=%s debt=%s earned=%s",
            summary.session_id, summary.total_amount, summary.paid_amount,
            summary.cashback_used, summary.debt_amount, summary.cashback_earned,
        )
        return summary

    return run_with_retry(_op, label=f"close_session({session_id})")


# =============================================================================
# QUERIES
# =============================================================================

def get_session(actor: Actor, session_id: int) -> SessionView:
    session = require_owned(PlaySession, session_id, actor.account_id, label="Session")
    return session_view(session)


def _project(session: PlaySession, as_of: datetime) -> SessionProjection:
    reading = read_meter(session.start_time, as_of, session.hourly_rate_at_start)
    additional_amount = calculate_additional_amount(session.id)
    return SessionProjection(
        session=session_view(session),
        as_of=as_of,
        duration_minutes=reading.duration_minutes,
        game_amount=reading.game_amount,
        additional_amount=additional_amount,
        total_amount=reading.game_amount + additional_amount,
        table_name=session.table.name if session.table else None,
        customer_name=session.customer.name if session.customer else None,
    )


def project_session(actor: Actor, session_id: int, *, now: datetime | None = None) -> SessionProjection:
    """
    Live running totals for an active session.

    Re-derived on every call from "now", so two calls a minute apart differ.

    Raises:
        NotFoundError, PreconditionError (session already completed)
    """
    session = require_owned(PlaySession, session_id, actor.account_id, label="Session")
    if not session.is_active:
        raise PreconditionError("Session is already completed")
    return _project(session, now or utcnow())


def get_active_sessions(actor: Actor, *, now: datetime | None = None) -> list[SessionProjection]:
    as_of = now or utcnow()
    sessions = db.session.query(PlaySession).filter_by(
        account_id=actor.account_id,
        status=SESSION_STATUS_ACTIVE,
    ).order_by(PlaySession.start_time, PlaySession.id).all()
    return [_project(s, as_of) for s in sessions]


def get_session_history(actor: Actor, *, limit: int | None = None, offset: int = 0) -> dict:
    """Completed sessions, newest first, one page at a time."""
    if limit is None:
        limit = current_app.config.get("SESSION_HISTORY_PAGE_SIZE", 50)
    limit = max(1, int(limit))
    offset = max(0, int(offset))

    query = db.session.query(PlaySession).filter_by(
        account_id=actor.account_id,
        status=SESSION_STATUS_COMPLETED,
    )
    total = query.count()
    page = query.order_by(PlaySession.end_time.desc(), PlaySession.id.desc()).offset(offset).limit(limit).all()

    return {
        "sessions": [session_view(s) for s in page],
        "total": total,
        "has_more": offset + limit < total,
    }
