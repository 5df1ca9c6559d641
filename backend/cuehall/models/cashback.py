from __future__ import annotations

from ..extensions import db
from cuehall.time_utils import to_utc_z


DIRECTION_EARNED = "earned"
DIRECTION_SPENT = "spent"

ENTRY_STATUS_ACTIVE = "active"
ENTRY_STATUS_USED = "used"
ENTRY_STATUS_EXPIRED = "expired"

SOURCE_SESSION_PAYMENT = "session_payment"


class CashbackEntry(db.Model):
    """
    Append-only ledger of cashback movements.

    DIRECTIONS:
    - earned: credited at settlement, status active until swept to expired
    - spent: redeemed against a session, always status used

    The only permitted update is earned/active -> expired by the expiry sweep.
    """
    __tablename__ = "cashback_entries"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_cashback_entries_amount_positive"),
        db.Index("ix_cashback_entries_account_status", "account_id", "status"),
        db.Index("ix_cashback_entries_account_customer", "account_id", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)
    session_id = db.Column(db.Integer, db.ForeignKey("play_sessions.id"), nullable=True, index=True)

    amount = db.Column(db.BigInteger, nullable=False)
    direction = db.Column(db.String(16), nullable=False)
    source = db.Column(db.String(32), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    # Set by the sweep; the moment the balance was actually debited
    expired_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("cashback_entries", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "customer_id": self.customer_id,
            "session_id": self.session_id,
            "amount": self.amount,
            "direction": self.direction,
            "source": self.source,
            "description": self.description,
            "status": self.status,
            "expires_at": to_utc_z(self.expires_at) if self.expires_at else None,
            "expired_at": to_utc_z(self.expired_at) if self.expired_at else None,
            "created_at": to_utc_z(self.created_at),
        }


class CashbackSettings(db.Model):
    """
    Per-account loyalty rules.

    One row per account, enforced by the unique constraint so concurrent
    first reads cannot create two default rows.
    """
    __tablename__ = "cashback_settings"
    __table_args__ = (
        db.UniqueConstraint("account_id", name="uq_cashback_settings_account"),
        db.CheckConstraint("percentage >= 0 AND percentage <= 100", name="ck_cashback_settings_percentage"),
        db.CheckConstraint("max_usage_percent >= 0 AND max_usage_percent <= 100", name="ck_cashback_settings_max_usage"),
        db.CheckConstraint("min_amount >= 0", name="ck_cashback_settings_min_amount"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False)

    enabled = db.Column(db.Boolean, nullable=False, default=True)
    percentage = db.Column(db.Integer, nullable=False, default=5)
    min_amount = db.Column(db.BigInteger, nullable=False, default=1000)
    apply_on_debt = db.Column(db.Boolean, nullable=False, default=False)
    max_usage_percent = db.Column(db.Integer, nullable=False, default=30)
    apply_on_extras = db.Column(db.Boolean, nullable=False, default=True)

    updated_by_operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "account_id": self.account_id,
            "enabled": self.enabled,
            "percentage": self.percentage,
            "min_amount": self.min_amount,
            "apply_on_debt": self.apply_on_debt,
            "max_usage_percent": self.max_usage_percent,
            "apply_on_extras": self.apply_on_extras,
            "updated_by": self.updated_by_operator_id,
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
