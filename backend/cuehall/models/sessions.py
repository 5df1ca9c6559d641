from __future__ import annotations

from ..extensions import db
from cuehall.time_utils import to_utc_z


SESSION_STATUS_ACTIVE = "active"
SESSION_STATUS_COMPLETED = "completed"


class PlaySession(db.Model):
    """
    One timed occupancy of a table by a customer.

    LIFECYCLE:
    - active: metered live, orders may be added/removed
    - completed: settled, every monetary field frozen

    IMMUTABLE: Once completed, a session is never reopened or modified.

    CONCURRENCY: the partial unique index below allows at most one active
    session per (account, table), even if two opens race past the
    application-level check.
    """
    __tablename__ = "play_sessions"
    __table_args__ = (
        db.Index("ix_play_sessions_account_table", "account_id", "table_id"),
        db.Index("ix_play_sessions_account_status", "account_id", "status"),
        db.Index("ix_play_sessions_account_customer", "account_id", "customer_id"),
        db.Index(
            "uq_play_sessions_one_active_per_table",
            "account_id",
            "table_id",
            unique=True,
            sqlite_where=db.text("status = 'active'"),
            postgresql_where=db.text("status = 'active'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False)
    # Nulled when a table with settled history is deleted
    table_id = db.Column(db.Integer, db.ForeignKey("pool_tables.id", ondelete="SET NULL"), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=SESSION_STATUS_ACTIVE)

    start_time = db.Column(db.DateTime(timezone=True), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)
    duration_minutes = db.Column(db.Integer, nullable=True)

    # Pinned at open, never changes
    hourly_rate_at_start = db.Column(db.BigInteger, nullable=False)

    # Set once at settlement
    game_amount = db.Column(db.BigInteger, nullable=True)
    additional_amount = db.Column(db.BigInteger, nullable=True)
    total_amount = db.Column(db.BigInteger, nullable=True)
    paid_amount = db.Column(db.BigInteger, nullable=True)
    cashback_used = db.Column(db.BigInteger, nullable=True)
    debt_amount = db.Column(db.BigInteger, nullable=True)
    payment_type = db.Column(db.String(16), nullable=True)

    opened_by_operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)
    completed_by_operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    table = db.relationship("PoolTable", backref=db.backref("sessions", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("sessions", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_active(self) -> bool:
        return self.status == SESSION_STATUS_ACTIVE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "table_id": self.table_id,
            "customer_id": self.customer_id,
            "status": self.status,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time) if self.end_time else None,
            "duration_minutes": self.duration_minutes,
            "hourly_rate_at_start": self.hourly_rate_at_start,
            "game_amount": self.game_amount,
            "additional_amount": self.additional_amount,
            "total_amount": self.total_amount,
            "paid_amount": self.paid_amount,
            "cashback_used": self.cashback_used,
            "debt_amount": self.debt_amount,
            "payment_type": self.payment_type,
            "completed_by": self.completed_by_operator_id,
            "notes": self.notes,
            "version_id": self.version_id,
        }


class AdditionalOrder(db.Model):
    """
    Ancillary item (drinks, snacks) charged on top of table time.

    total_price is stored as quantity * unit_price at insert time.
    """
    __tablename__ = "additional_orders"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_additional_orders_quantity_positive"),
        db.CheckConstraint("unit_price >= 0", name="ck_additional_orders_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("play_sessions.id"), nullable=False, index=True)

    item_name = db.Column(db.String(128), nullable=False)
    quantity = db.Column(db.BigInteger, nullable=False)
    unit_price = db.Column(db.BigInteger, nullable=False)
    total_price = db.Column(db.BigInteger, nullable=False)

    created_by_operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    session = db.relationship("PlaySession", backref=db.backref("orders", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
            "created_at": to_utc_z(self.created_at),
        }
