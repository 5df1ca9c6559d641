from __future__ import annotations

from ..extensions import db
from cuehall.time_utils import to_utc_z


PAYMENT_KIND_CASH = "cash"
PAYMENT_KIND_CARD = "card"
PAYMENT_KIND_DEBT_PAYMENT = "debt_payment"


class Payment(db.Model):
    """
    Money actually received by the venue.

    KINDS:
    - cash / card: paid at session settlement
    - debt_payment: customer paying down outstanding debt (tender in `tender`)

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        db.Index("ix_payments_account_created", "account_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("play_sessions.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    amount = db.Column(db.BigInteger, nullable=False)
    kind = db.Column(db.String(16), nullable=False)
    tender = db.Column(db.String(16), nullable=False)
    description = db.Column(db.String(255), nullable=True)

    created_by_operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "session_id": self.session_id,
            "customer_id": self.customer_id,
            "amount": self.amount,
            "kind": self.kind,
            "tender": self.tender,
            "description": self.description,
            "created_by": self.created_by_operator_id,
            "created_at": to_utc_z(self.created_at),
        }
