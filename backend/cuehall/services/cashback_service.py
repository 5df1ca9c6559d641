# Overview: Service-layer operations for cashback; encapsulates business logic and database work.

"""
Cashback Ledger & Policy Engine

WHY: Loyalty store credit. Customers earn a percentage of what they pay
and may redeem part of it against later sessions.

DESIGN PRINCIPLES:
- Ledger rows (CashbackEntry) are append-only; the only update is the
  earned/active -> expired transition done by the expiry sweep
- Customer.cashback_balance is the authoritative fast path and changes in
  the same transaction as the ledger row that explains it
- Rules live in one CashbackSettings row per account, created with
  defaults on first use
- Expiry is swept explicitly; reads never filter expired-eligible rows, so
  a balance may be stale until the next sweep
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import partial

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import ValidationError
from ..extensions import db
from ..models import CashbackEntry, CashbackSettings, Customer, PlaySession
from ..models.cashback import (
    DIRECTION_EARNED,
    DIRECTION_SPENT,
    ENTRY_STATUS_ACTIVE,
    ENTRY_STATUS_EXPIRED,
    ENTRY_STATUS_USED,
    SOURCE_SESSION_PAYMENT,
)
from ..validation import require_amount, require_bool, require_percent
from cuehall.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .results import returns_result
from .tenant_service import Actor


# Fixed policy, deliberately not part of CashbackSettings
CASHBACK_EXPIRY_DAYS = 90

ZERO_CAP_UNLIMITED = "unlimited"
ZERO_CAP_STRICT = "strict"
ZERO_CAP_FALLBACKS = (ZERO_CAP_UNLIMITED, ZERO_CAP_STRICT)

DEFAULT_SETTINGS = {
    "enabled": True,
    "percentage": 5,
    "min_amount": 1000,
    "apply_on_debt": False,
    "max_usage_percent": 30,
    "apply_on_extras": True,
}


@dataclass(frozen=True)
class CashbackPolicy:
    """Immutable snapshot of an account's rules, used by the calculators."""
    enabled: bool = True
    percentage: int = 5
    min_amount: int = 1000
    apply_on_debt: bool = False
    max_usage_percent: int = 30
    apply_on_extras: bool = True

    @classmethod
    def from_settings(cls, settings: CashbackSettings) -> "CashbackPolicy":
        return cls(
            enabled=bool(settings.enabled),
            percentage=settings.percentage,
            min_amount=settings.min_amount,
            apply_on_debt=bool(settings.apply_on_debt),
            max_usage_percent=settings.max_usage_percent,
            apply_on_extras=bool(settings.apply_on_extras),
        )


# =============================================================================
# SETTINGS
# =============================================================================

def _find_settings(account_id: int) -> CashbackSettings | None:
    return db.session.query(CashbackSettings).filter_by(account_id=account_id).first()


def get_or_create_settings(account_id: int) -> CashbackSettings:
    """
    Return the account's settings row, creating it with defaults if absent.

    Safe under concurrent first access: the unique constraint on account_id
    lets exactly one insert win; the loser rolls back and reads the winner's
    row. Commits when it creates, so call it before any other writes.
    """
    settings = _find_settings(account_id)
    if settings:
        return settings

    settings = CashbackSettings(account_id=account_id, **DEFAULT_SETTINGS)
    db.session.add(settings)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        settings = db.session.query(CashbackSettings).filter_by(account_id=account_id).one()
    return settings


def get_cashback_settings(actor: Actor) -> dict:
    return get_or_create_settings(actor.account_id).to_dict()


def current_zero_cap_fallback() -> str:
    return current_app.config.get("CASHBACK_ZERO_CAP_FALLBACK", ZERO_CAP_UNLIMITED)


@returns_result
def update_cashback_settings(
    actor: Actor,
    *,
    percentage,
    min_amount,
    max_usage_percent,
    apply_on_debt,
    apply_on_extras,
    enabled,
) -> dict:
    """
    Replace the account's cashback rules.

    Raises (as Failure):
        ValidationError: percentage / max_usage_percent outside [0, 100],
        negative min_amount, non-boolean flags
    """
    values = {
        "percentage": require_percent("percentage", percentage),
        "min_amount": require_amount("min_amount", min_amount),
        "max_usage_percent": require_percent("max_usage_percent", max_usage_percent),
        "apply_on_debt": require_bool("apply_on_debt", apply_on_debt),
        "apply_on_extras": require_bool("apply_on_extras", apply_on_extras),
        "enabled": require_bool("enabled", enabled),
    }

    def _op():
        get_or_create_settings(actor.account_id)
        settings = lock_for_update(
            db.session.query(CashbackSettings).filter_by(account_id=actor.account_id)
        ).one()
        for key, value in values.items():
            setattr(settings, key, value)
        settings.updated_by_operator_id = actor.operator_id
        settings.updated_at = utcnow()
        db.session.commit()
        return settings.to_dict()

    return run_with_retry(_op)


# =============================================================================
# POLICY CALCULATIONS (pure)
# =============================================================================

def earn_base_amount(policy: CashbackPolicy, *, paid_amount: int, game_amount: int, total_amount: int) -> int:
    """
    Money the reward is computed on.

    Without apply_on_extras only the game-time share of the payment counts.
    """
    if not policy.apply_on_extras and total_amount > 0:
        return paid_amount * game_amount // total_amount
    return paid_amount


def compute_earn_amount(
    policy: CashbackPolicy,
    *,
    paid_amount: int,
    game_amount: int,
    total_amount: int,
    debt_amount: int,
) -> int:
    """Cashback to credit for a settlement, 0 when nothing is earned."""
    if not policy.enabled:
        return 0
    base = earn_base_amount(policy, paid_amount=paid_amount, game_amount=game_amount, total_amount=total_amount)
    if not policy.apply_on_debt and debt_amount > 0:
        return 0
    amount = base * policy.percentage // 100
    # No partial credit below the threshold
    if amount <= 0 or amount < policy.min_amount:
        return 0
    return amount


def max_spend_allowed(
    policy: CashbackPolicy,
    *,
    total_amount: int,
    balance: int,
    zero_cap_fallback: str = ZERO_CAP_UNLIMITED,
) -> int:
    """
    Ceiling for cashback redeemable against `total_amount`.

    When the percentage cap computes to 0, `zero_cap_fallback` decides:
    "unlimited" falls back to the whole balance, "strict" allows nothing.
    """
    if zero_cap_fallback not in ZERO_CAP_FALLBACKS:
        raise ValidationError(
            f"Invalid CASHBACK_ZERO_CAP_FALLBACK: {zero_cap_fallback}. Must be one of {list(ZERO_CAP_FALLBACKS)}"
        )
    balance = max(0, balance)
    max_by_percent = total_amount * policy.max_usage_percent // 100
    if max_by_percent > 0:
        return min(balance, max_by_percent)
    if zero_cap_fallback == ZERO_CAP_UNLIMITED:
        return balance
    return 0


# =============================================================================
# LEDGER WRITES (caller holds row locks and commits)
# =============================================================================

def spend_cashback(
    *,
    session: PlaySession,
    customer: Customer,
    policy: CashbackPolicy,
    amount: int,
    total_amount: int,
    now: datetime,
) -> CashbackEntry:
    """
    Redeem `amount` of the customer's cashback against a session.

    Raises:
        ValidationError: over the balance or over the usage ceiling
    """
    balance = customer.cashback_balance or 0
    if amount > balance:
        raise ValidationError(f"Insufficient cashback balance: available {balance}")

    allowed = max_spend_allowed(
        policy,
        total_amount=total_amount,
        balance=balance,
        zero_cap_fallback=current_zero_cap_fallback(),
    )
    if amount > allowed:
        raise ValidationError(f"Cashback exceeds usage limit: max {allowed}")

    entry = CashbackEntry(
        account_id=session.account_id,
        customer_id=customer.id,
        session_id=session.id,
        amount=amount,
        direction=DIRECTION_SPENT,
        source=SOURCE_SESSION_PAYMENT,
        description=f"Redeemed on session #{session.id}",
        status=ENTRY_STATUS_USED,
        created_at=now,
    )
    db.session.add(entry)

    customer.cashback_balance = balance - amount
    customer.total_cashback_spent = (customer.total_cashback_spent or 0) + amount
    db.session.flush()
    return entry


def earn_cashback(
    *,
    session: PlaySession,
    customer: Customer,
    policy: CashbackPolicy,
    now: datetime,
) -> CashbackEntry | None:
    """
    Credit the reward for a settled session, if the rules grant one.

    Uses the session's frozen amounts; returns None when nothing is earned.
    """
    amount = compute_earn_amount(
        policy,
        paid_amount=session.paid_amount or 0,
        game_amount=session.game_amount or 0,
        total_amount=session.total_amount or 0,
        debt_amount=session.debt_amount or 0,
    )
    if amount <= 0:
        return None

    base = earn_base_amount(
        policy,
        paid_amount=session.paid_amount or 0,
        game_amount=session.game_amount or 0,
        total_amount=session.total_amount or 0,
    )
    entry = CashbackEntry(
        account_id=session.account_id,
        customer_id=customer.id,
        session_id=session.id,
        amount=amount,
        direction=DIRECTION_EARNED,
        source=SOURCE_SESSION_PAYMENT,
        description=f"{policy.percentage}% cashback on {base}",
        status=ENTRY_STATUS_ACTIVE,
        expires_at=now + timedelta(days=CASHBACK_EXPIRY_DAYS),
        created_at=now,
    )
    db.session.add(entry)

    customer.cashback_balance = (customer.cashback_balance or 0) + amount
    customer.total_cashback_earned = (customer.total_cashback_earned or 0) + amount
    db.session.flush()
    return entry


# =============================================================================
# READS
# =============================================================================

def get_cashback_balance(actor: Actor, customer_id: int | None = None) -> dict:
    """
    Balance and lifetime totals.

    With a customer: that customer's figures. Without: sums over the
    account's customers. Unknown customers read as zeros.
    """
    if customer_id is not None:
        customer = db.session.query(Customer).filter_by(
            id=customer_id, account_id=actor.account_id
        ).first()
        if not customer:
            return {"balance": 0, "total_earned": 0, "total_spent": 0}
        return {
            "balance": customer.cashback_balance or 0,
            "total_earned": customer.total_cashback_earned or 0,
            "total_spent": customer.total_cashback_spent or 0,
        }

    balance, earned, spent = db.session.query(
        db.func.coalesce(db.func.sum(Customer.cashback_balance), 0),
        db.func.coalesce(db.func.sum(Customer.total_cashback_earned), 0),
        db.func.coalesce(db.func.sum(Customer.total_cashback_spent), 0),
    ).filter(Customer.account_id == actor.account_id).one()
    return {"balance": int(balance), "total_earned": int(earned), "total_spent": int(spent)}


def get_cashback_history(actor: Actor, customer_id: int | None = None, limit: int | None = None) -> list[CashbackEntry]:
    if limit is None:
        limit = current_app.config.get("CASHBACK_HISTORY_LIMIT", 50)
    query = db.session.query(CashbackEntry).filter_by(account_id=actor.account_id)
    if customer_id is not None:
        query = query.filter_by(customer_id=customer_id)
    return query.order_by(CashbackEntry.created_at.desc(), CashbackEntry.id.desc()).limit(limit).all()


# =============================================================================
# EXPIRY SWEEP
# =============================================================================

def _expire_entry(entry_id: int, now: datetime) -> bool:
    entry = lock_for_update(db.session.query(CashbackEntry).filter_by(id=entry_id)).first()
    if not entry or entry.status != ENTRY_STATUS_ACTIVE or entry.direction != DIRECTION_EARNED:
        return False
    if entry.expires_at is None or entry.expires_at >= now:
        return False

    entry.status = ENTRY_STATUS_EXPIRED
    entry.expired_at = now

    customer = lock_for_update(db.session.query(Customer).filter_by(id=entry.customer_id)).first()
    if customer:
        customer.cashback_balance = max(0, (customer.cashback_balance or 0) - entry.amount)

    db.session.commit()
    return True


def sweep_expired_cashback(account_id: int, now: datetime | None = None) -> int:
    """
    Expire every earned/active entry of the account whose expires_at < now.

    Each entry commits on its own; a failing entry is logged and skipped so
    the rest of the sweep still completes. Re-running is a no-op for
    entries already expired.
    """
    now = now or utcnow()
    due_ids = [
        row.id
        for row in db.session.query(CashbackEntry.id).filter(
            CashbackEntry.account_id == account_id,
            CashbackEntry.direction == DIRECTION_EARNED,
            CashbackEntry.status == ENTRY_STATUS_ACTIVE,
            CashbackEntry.expires_at.isnot(None),
            CashbackEntry.expires_at < now,
        ).order_by(CashbackEntry.id).all()
    ]

    expired = 0
    for entry_id in due_ids:
        try:
            if run_with_retry(partial(_expire_entry, entry_id, now), label=f"expire cashback entry {entry_id}"):
                expired += 1
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.warning("Failed to expire cashback entry %s", entry_id, exc_info=True)

    current_app.logger.info(
        "Cashback sweep for account %s: %s of %s due entries expired", account_id, expired, len(due_ids)
    )
    return expired


@returns_result
def expire_cashback(actor: Actor, now: datetime | None = None) -> int:
    return sweep_expired_cashback(actor.account_id, now=now)
