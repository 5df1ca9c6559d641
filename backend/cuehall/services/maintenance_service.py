# Overview: Service-layer operations for maintenance; encapsulates business logic and database work.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import CashbackEntry, Customer
from ..models.cashback import DIRECTION_EARNED, DIRECTION_SPENT, ENTRY_STATUS_EXPIRED


@dataclass(frozen=True)
class BalanceDrift:
    customer_id: int
    stored_balance: int
    ledger_balance: int
    stored_earned: int
    ledger_earned: int
    stored_spent: int
    ledger_spent: int

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "stored_balance": self.stored_balance,
            "ledger_balance": self.ledger_balance,
            "stored_earned": self.stored_earned,
            "ledger_earned": self.ledger_earned,
            "stored_spent": self.stored_spent,
            "ledger_spent": self.ledger_spent,
        }


def _replay_ledger(account_id: int) -> dict[int, dict[str, int]]:
    """
    Replay the account's ledger per customer in time order.

    Expired entries are debited when the sweep actually ran (expired_at),
    with the same clamp at 0 the sweep applies. Legacy rows without an
    expired_at fall back to their expires_at.
    """
    entries = db.session.query(CashbackEntry).filter(
        CashbackEntry.account_id == account_id
    ).all()

    events: dict[int, list[tuple]] = {}
    for entry in entries:
        timeline = events.setdefault(entry.customer_id, [])
        if entry.direction == DIRECTION_EARNED:
            timeline.append((entry.created_at, entry.id, "earned", entry.amount))
            debited_at = entry.expired_at or entry.expires_at
            if entry.status == ENTRY_STATUS_EXPIRED and debited_at is not None:
                timeline.append((debited_at, entry.id, "expired", entry.amount))
        elif entry.direction == DIRECTION_SPENT:
            timeline.append((entry.created_at, entry.id, "spent", entry.amount))

    totals: dict[int, dict[str, int]] = {}
    for customer_id, timeline in events.items():
        t = {"balance": 0, "earned": 0, "spent": 0}
        for _, _, kind, amount in sorted(timeline, key=lambda e: (e[0], e[1])):
            if kind == "earned":
                t["balance"] += amount
                t["earned"] += amount
            elif kind == "spent":
                t["balance"] = max(0, t["balance"] - amount)
                t["spent"] += amount
            else:
                t["balance"] = max(0, t["balance"] - amount)
        totals[customer_id] = t
    return totals


def rebuild_cashback_balances(account_id: int, *, dry_run: bool = False) -> list[BalanceDrift]:
    """
    Recompute every customer's denormalized cashback figures from the ledger.

    balance = the replayed ledger (see _replay_ledger), earned = all earned,
    spent = all spent. Run once after importing legacy cashback rows; the
    normal write path keeps these in sync on its own.

    Returns the customers whose stored figures differed. With dry_run
    nothing is written.
    """
    totals = _replay_ledger(account_id)
    customers = db.session.query(Customer).filter_by(account_id=account_id).order_by(Customer.id).all()

    drifts: list[BalanceDrift] = []
    for customer in customers:
        t = totals.get(customer.id, {"balance": 0, "earned": 0, "spent": 0})
        ledger_balance = t["balance"]
        stored = (
            customer.cashback_balance or 0,
            customer.total_cashback_earned or 0,
            customer.total_cashback_spent or 0,
        )
        if stored == (ledger_balance, t["earned"], t["spent"]):
            continue

        drifts.append(
            BalanceDrift(
                customer_id=customer.id,
                stored_balance=stored[0],
                ledger_balance=ledger_balance,
                stored_earned=stored[1],
                ledger_earned=t["earned"],
                stored_spent=stored[2],
                ledger_spent=t["spent"],
            )
        )
        if not dry_run:
            customer.cashback_balance = ledger_balance
            customer.total_cashback_earned = t["earned"]
            customer.total_cashback_spent = t["spent"]

    if dry_run:
        db.session.rollback()
    else:
        db.session.commit()
    return drifts
