# Overview: Service-layer operations for customers and debt; encapsulates business logic and database work.

from __future__ import annotations

from ..errors import ValidationError
from ..extensions import db
from ..models import Customer, Payment
from ..models.payments import PAYMENT_KIND_CARD, PAYMENT_KIND_CASH, PAYMENT_KIND_DEBT_PAYMENT
from ..validation import optional_text, require_amount, require_choice, require_text
from cuehall.time_utils import utcnow
from .concurrency import run_with_retry
from .results import returns_result
from .tenant_service import Actor, require_owned


VALID_DEBT_TENDERS = [PAYMENT_KIND_CASH, PAYMENT_KIND_CARD]


@returns_result
def create_customer(actor: Actor, name, phone=None) -> dict:
    customer = Customer(
        account_id=actor.account_id,
        name=require_text("name", name, max_length=128),
        phone=optional_text("phone", phone, max_length=32),
        total_debt=0,
        cashback_balance=0,
        total_cashback_earned=0,
        total_cashback_spent=0,
    )
    db.session.add(customer)
    db.session.commit()
    return customer.to_dict()


def list_customers(actor: Actor) -> list[Customer]:
    return db.session.query(Customer).filter_by(
        account_id=actor.account_id
    ).order_by(Customer.created_at.desc(), Customer.id.desc()).all()


def get_customer(actor: Actor, customer_id: int) -> Customer:
    return require_owned(Customer, customer_id, actor.account_id, label="Customer")


@returns_result
def pay_customer_debt(actor: Actor, customer_id: int, amount, tender: str) -> dict:
    """
    Record a customer paying down outstanding debt.

    Returns:
        {"payment_id": ..., "remaining_debt": ...}

    Raises (as Failure):
        NotFoundError: customer missing or owned by another account
        ValidationError: amount <= 0, amount > total_debt, bad tender
    """
    amount = require_amount("amount", amount, minimum=1)
    tender = require_choice("tender", tender, VALID_DEBT_TENDERS)

    def _op():
        customer = require_owned(Customer, customer_id, actor.account_id, label="Customer", for_update=True)

        if amount > customer.total_debt:
            raise ValidationError(f"Payment exceeds outstanding debt: max {customer.total_debt}")

        customer.total_debt = customer.total_debt - amount

        payment = Payment(
            account_id=actor.account_id,
            customer_id=customer.id,
            amount=amount,
            kind=PAYMENT_KIND_DEBT_PAYMENT,
            tender=tender,
            description=f"Debt payment by {customer.name}",
            created_by_operator_id=actor.operator_id,
            created_at=utcnow(),
        )
        db.session.add(payment)
        db.session.commit()
        return {"payment_id": payment.id, "remaining_debt": customer.total_debt}

    return run_with_retry(_op, label=f"pay_customer_debt({customer_id})")
