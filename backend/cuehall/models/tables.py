from __future__ import annotations

from ..extensions import db
from cuehall.time_utils import to_utc_z


class PoolTable(db.Model):
    """
    Billiard table rented by the hour.

    hourly_rate is the CURRENT rate; sessions pin their own copy at open
    (PlaySession.hourly_rate_at_start), so later changes never touch them.
    """
    __tablename__ = "pool_tables"
    __table_args__ = (
        db.CheckConstraint("hourly_rate >= 0", name="ck_pool_tables_rate_non_negative"),
        db.Index("ix_pool_tables_account_active", "account_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    hourly_rate = db.Column(db.BigInteger, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    account = db.relationship("Account", backref=db.backref("tables", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "name": self.name,
            "is_active": self.is_active,
            "hourly_rate": self.hourly_rate,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class RateHistory(db.Model):
    """
    Append-only audit trail of hourly rate changes.

    IMMUTABLE: Records are never updated. They are removed only together
    with their table.
    """
    __tablename__ = "rate_history"
    __table_args__ = (
        db.Index("ix_rate_history_table_changed", "table_id", "changed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    table_id = db.Column(db.Integer, db.ForeignKey("pool_tables.id"), nullable=False, index=True)
    old_rate = db.Column(db.BigInteger, nullable=False)
    new_rate = db.Column(db.BigInteger, nullable=False)
    changed_by_operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False)
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    table = db.relationship("PoolTable", backref=db.backref("rate_history", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "table_id": self.table_id,
            "old_rate": self.old_rate,
            "new_rate": self.new_rate,
            "changed_by": self.changed_by_operator_id,
            "changed_at": to_utc_z(self.changed_at),
        }
