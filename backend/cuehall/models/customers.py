from __future__ import annotations

from ..extensions import db
from cuehall.time_utils import to_utc_z


class Customer(db.Model):
    """
    Venue customer with debt and cashback aggregates.

    MULTI-TENANT: Customers are scoped to accounts via account_id.

    DENORMALIZED: cashback_balance / total_cashback_* are the authoritative
    fast path. They change only in the same transaction as a CashbackEntry
    insert or status transition. version_id makes concurrent writers fail
    with StaleDataError instead of losing an increment.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.CheckConstraint("total_debt >= 0", name="ck_customers_debt_non_negative"),
        db.CheckConstraint("cashback_balance >= 0", name="ck_customers_cashback_non_negative"),
        db.Index("ix_customers_account_created", "account_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    total_debt = db.Column(db.BigInteger, nullable=False, default=0)
    cashback_balance = db.Column(db.BigInteger, nullable=False, default=0)
    total_cashback_earned = db.Column(db.BigInteger, nullable=False, default=0)
    total_cashback_spent = db.Column(db.BigInteger, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    account = db.relationship("Account", backref=db.backref("customers", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "name": self.name,
            "phone": self.phone,
            "total_debt": self.total_debt,
            "cashback_balance": self.cashback_balance,
            "total_cashback_earned": self.total_cashback_earned,
            "total_cashback_spent": self.total_cashback_spent,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
