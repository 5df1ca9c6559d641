"""
Session lifecycle and settlement tests.

Covers opening (single active session per table, rate pinning), closing
(metering, conservation of money, all-or-nothing failure) and the
immutability of completed sessions.
"""

from datetime import timedelta

from unittest import mock

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from cuehall.extensions import db
from cuehall.errors import PreconditionError
from cuehall.models import CashbackEntry, Customer, Payment, PlaySession, PoolTable
from cuehall.models.sessions import SESSION_STATUS_ACTIVE, SESSION_STATUS_COMPLETED
from cuehall.services import concurrency, order_service, rate_service, session_service
from cuehall.services.session_service import CompletedSession, OpenSession
from conftest import T0, minutes_after


def _open(actor, table, customer, now=T0):
    result = session_service.open_session(actor, table.id, customer.id, now=now)
    assert result.ok, result
    return result.value


def _give_cashback(customer, amount):
    customer.cashback_balance = amount
    db.session.commit()


class TestOpenSession:

    def test_open_pins_current_rate(self, db_session, actor_a, table_a, customer_a):
        session_id = _open(actor_a, table_a, customer_a)

        session = session_service.get_session(actor_a, session_id)
        assert isinstance(session, OpenSession)
        assert session.hourly_rate_at_start == 60000
        assert session.start_time == T0

    def test_second_open_on_occupied_table_fails(self, db_session, actor_a, table_a, customer_a):
        first_id = _open(actor_a, table_a, customer_a)

        result = session_service.open_session(actor_a, table_a.id, customer_a.id, now=T0)
        assert not result.ok
        assert result.kind == "precondition"
        assert str(first_id) in result.message
        assert db_session.query(PlaySession).filter_by(status=SESSION_STATUS_ACTIVE).count() == 1

    def test_table_can_reopen_after_close(self, db_session, actor_a, table_a, customer_a):
        session_id = _open(actor_a, table_a, customer_a)
        closed = session_service.close_session(
            actor_a, session_id, paid_amount=10000, payment_type="cash", now=minutes_after(T0, 10)
        )
        assert closed.ok

        assert session_service.open_session(actor_a, table_a.id, customer_a.id).ok

    def test_inactive_table_rejected(self, db_session, actor_a, table_a, customer_a):
        table_a.is_active = False
        db_session.commit()

        result = session_service.open_session(actor_a, table_a.id, customer_a.id)
        assert not result.ok
        assert result.kind == "precondition"

    def test_unknown_customer_not_found(self, db_session, actor_a, table_a):
        result = session_service.open_session(actor_a, table_a.id, 99999)
        assert not result.ok
        assert result.kind == "not_found"

    def test_partial_index_rejects_second_active_row(self, db_session, account_a, table_a, customer_a):
        """The database itself refuses two active sessions on one table."""
        for _ in range(2):
            db_session.add(PlaySession(
                account_id=account_a.id,
                table_id=table_a.id,
                customer_id=customer_a.id,
                status=SESSION_STATUS_ACTIVE,
                start_time=T0,
                hourly_rate_at_start=60000,
            ))
        with pytest.raises(IntegrityError):
            db_session.flush()
        db_session.rollback()

    def test_partial_index_allows_many_completed_rows(self, db_session, account_a, table_a, customer_a):
        for _ in range(2):
            db_session.add(PlaySession(
                account_id=account_a.id,
                table_id=table_a.id,
                customer_id=customer_a.id,
                status=SESSION_STATUS_COMPLETED,
                start_time=T0,
                hourly_rate_at_start=60000,
            ))
        db_session.commit()
        assert db_session.query(PlaySession).count() == 2


class TestCloseSession:

    def test_duration_rounds_up(self, db_session, actor_a, table_a, customer_a):
        session_id = _open(actor_a, table_a, customer_a)
        result = session_service.close_session(
            actor_a, session_id, paid_amount=2000, payment_type="cash",
            now=T0 + timedelta(milliseconds=90001),
        )
        assert result.ok

        session = session_service.get_session(actor_a, session_id)
        assert session.duration_minutes == 2
        assert session.game_amount == 2000

    def test_conservation_with_cashback_and_debt(self, db_session, actor_a, table_a, customer_a):
        _give_cashback(customer_a, 5000)
        session_id = _open(actor_a, table_a, customer_a)

        result = session_service.close_session(
            actor_a, session_id,
            paid_amount=30000, payment_type="cash", cashback_amount=5000,
            now=minutes_after(T0, 50),
        )
        assert result.ok
        summary = result.value
        assert summary.total_amount == 50000
        assert summary.cashback_used == 5000
        assert summary.payable_amount == 45000
        assert summary.paid_amount == 30000
        assert summary.debt_amount == 15000
        # No cashback on a sale that left debt (apply_on_debt defaults to False)
        assert summary.cashback_earned == 0

        session = session_service.get_session(actor_a, session_id)
        assert isinstance(session, CompletedSession)
        assert session.paid_amount + session.cashback_used + session.debt_amount == session.total_amount

        customer = db_session.get(Customer, customer_a.id)
        assert customer.total_debt == 15000
        assert customer.cashback_balance == 0
        assert customer.total_cashback_spent == 5000

    def test_orders_are_added_to_total(self, db_session, actor_a, table_a, customer_a):
        session_id = _open(actor_a, table_a, customer_a)
        assert order_service.add_additional_order(actor_a, session_id, "Cola", 2, 5000).ok

        result = session_service.close_session(
            actor_a, session_id, paid_amount=40000, payment_type="card", now=minutes_after(T0, 30)
        )
        assert result.ok
        assert result.value.total_amount == 40000

        session = session_service.get_session(actor_a, session_id)
        assert session.game_amount == 30000
        assert session.additional_amount == 10000

    def test_rate_change_mid_session_does_not_reprice(self, db_session, actor_a, table_a, customer_a):
        session_id = _open(actor_a, table_a, customer_a)
        assert rate_service.update_table_rate(actor_a, table_a.id, 120000).ok

        result = session_service.close_session(
            actor_a, session_id, paid_amount=60000, payment_type="cash", now=minutes_after(T0, 60)
        )
        assert result.ok
        assert result.value.total_amount == 60000

    def test_card_payment_recorded(self, db_session, actor_a, table_a, customer_a):
        session_id = _open(actor_a, table_a, customer_a)
        session_service.close_session(
            actor_a, session_id, paid_amount=10000, payment_type="card", now=minutes_after(T0, 10)
        )

        payment = db_session.query(Payment).filter_by(session_id=session_id).one()
        assert payment.amount == 10000
        assert payment.kind == "card"
        assert payment.tender == "card"

    def test_debt_payment_type_records_no_payment(self, db_session, actor_a, table_a, customer_a):
        session_id = _open(actor_a, table_a, customer_a)
        result = session_service.close_session(
            actor_a, session_id, paid_amount=0, payment_type="debt", now=minutes_after(T0, 10)
        )
        assert result.ok
        assert result.value.debt_amount == 10000
        assert db_session.query(Payment).count() == 0
        assert db_session.get(Customer, customer_a.id).total_debt == 10000

    def test_overpayment_rejected(self, db_session, actor_a, table_a, customer_a):
        session_id = _open(actor_a, table_a, customer_a)
        result = session_service.close_session(
            actor_a, session_id, paid_amount=10001, payment_type="cash", now=minutes_after(T0, 10)
        )
        assert not result.ok
        assert result.kind == "validation"
        assert isinstance(session_service.get_session(actor_a, session_id), OpenSession)

    def test_negative_paid_amount_rejected(self, db_session, actor_a, table_a, customer_a):
        session_id = _open(actor_a, table_a, customer_a)
        result = session_service.close_session(actor_a, session_id, paid_amount=-1, payment_type="cash")
        assert not result.ok
        assert result.kind == "validation"

    def test_unknown_payment_type_rejected(self, db_session, actor_a, table_a, customer_a):
        session_id = _open(actor_a, table_a, customer_a)
        result = session_service.close_session(actor_a, session_id, paid_amount=0, payment_type="crypto")
        assert not result.ok
        assert result.kind == "validation"

    def test_cashback_failure_leaves_nothing_behind(self, db_session, actor_a, table_a, customer_a):
        _give_cashback(customer_a, 50000)
        session_id = _open(actor_a, table_a, customer_a)

        result = session_service.close_session(
            actor_a, session_id,
            paid_amount=0, payment_type="debt", cashback_amount=30001,
            now=minutes_after(T0, 100),
        )
        assert not result.ok
        assert result.kind == "validation"

        db_session.expire_all()
        session = db_session.get(PlaySession, session_id)
        assert session.status == SESSION_STATUS_ACTIVE
        assert session.total_amount is None
        customer = db_session.get(Customer, customer_a.id)
        assert customer.cashback_balance == 50000
        assert customer.total_debt == 0
        assert db_session.query(CashbackEntry).count() == 0
        assert db_session.query(Payment).count() == 0

    def test_notes_and_operator_recorded(self, db_session, actor_a, table_a, customer_a):
        session_id = _open(actor_a, table_a, customer_a)
        session_service.close_session(
            actor_a, session_id, paid_amount=10000, payment_type="cash",
            notes="  birthday party ", now=minutes_after(T0, 10),
        )
        session = session_service.get_session(actor_a, session_id)
        assert session.notes == "birthday party"
        assert session.completed_by == actor_a.operator_id


class TestCompletedSessionIsImmutable:

    @pytest.fixture
    def completed_id(self, db_session, actor_a, table_a, customer_a):
        session_id = _open(actor_a, table_a, customer_a)
        result = session_service.close_session(
            actor_a, session_id, paid_amount=10000, payment_type="cash", now=minutes_after(T0, 10)
        )
        assert result.ok
        return session_id

    def test_cannot_close_twice(self, actor_a, completed_id):
        result = session_service.close_session(
            actor_a, completed_id, paid_amount=0, payment_type="cash", now=minutes_after(T0, 500)
        )
        assert not result.ok
        assert result.kind == "precondition"

        session = session_service.get_session(actor_a, completed_id)
        assert session.total_amount == 10000
        assert session.end_time == minutes_after(T0, 10)

    def test_cannot_add_orders(self, actor_a, completed_id):
        result = order_service.add_additional_order(actor_a, completed_id, "Tea", 1, 3000)
        assert not result.ok
        assert result.kind == "precondition"

    def test_cannot_project(self, actor_a, completed_id):
        with pytest.raises(PreconditionError):
            session_service.project_session(actor_a, completed_id)


class TestSessionQueries:

    def test_projection_re_derives_from_now(self, db_session, actor_a, table_a, customer_a):
        session_id = _open(actor_a, table_a, customer_a)

        early = session_service.project_session(actor_a, session_id, now=minutes_after(T0, 5))
        late = session_service.project_session(actor_a, session_id, now=minutes_after(T0, 6))
        assert early.game_amount == 5000
        assert late.game_amount == 6000
        assert late.table_name == "Table 1"
        assert late.customer_name == "Customer A"

    def test_active_sessions_lists_only_open(self, db_session, account_a, actor_a, table_a, customer_a):
        other = PoolTable(account_id=account_a.id, name="Table 2", hourly_rate=30000)
        db_session.add(other)
        db_session.commit()

        open_id = _open(actor_a, table_a, customer_a)
        closed_id = _open(actor_a, other, customer_a)
        session_service.close_session(
            actor_a, closed_id, paid_amount=5000, payment_type="cash", now=minutes_after(T0, 10)
        )

        active = session_service.get_active_sessions(actor_a, now=minutes_after(T0, 15))
        assert [p.session.id for p in active] == [open_id]
        assert active[0].total_amount == 15000

    def test_history_pages_newest_first(self, db_session, actor_a, table_a, customer_a):
        ids = []
        for i in range(3):
            start = minutes_after(T0, i * 60)
            session_id = _open(actor_a, table_a, customer_a, now=start)
            session_service.close_session(
                actor_a, session_id, paid_amount=0, payment_type="debt", now=minutes_after(start, 10)
            )
            ids.append(session_id)

        first = session_service.get_session_history(actor_a, limit=2, offset=0)
        assert [s.id for s in first["sessions"]] == [ids[2], ids[1]]
        assert first["total"] == 3
        assert first["has_more"] is True

        second = session_service.get_session_history(actor_a, limit=2, offset=2)
        assert [s.id for s in second["sessions"]] == [ids[0]]
        assert second["has_more"] is False


class TestConcurrentWrites:

    def test_racing_open_becomes_conflict(self, db_session, actor_a, table_a, customer_a):
        """Both opens pass the active-session check; the index decides."""
        first_id = _open(actor_a, table_a, customer_a)

        with mock.patch.object(session_service, "_active_session_on", return_value=None):
            result = session_service.open_session(actor_a, table_a.id, customer_a.id, now=T0)

        assert not result.ok
        assert result.kind == "conflict"
        active = db_session.query(PlaySession).filter_by(status=SESSION_STATUS_ACTIVE).all()
        assert [s.id for s in active] == [first_id]

    def test_stale_customer_row_is_retried_once(self, db_session, actor_a, table_a, customer_a):
        _give_cashback(customer_a, 1000)
        session_id = _open(actor_a, table_a, customer_a)

        real_earn = session_service.earn_cashback
        calls = []

        def flaky_earn(**kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("customers row was updated concurrently")
            return real_earn(**kwargs)

        with mock.patch.object(session_service, "earn_cashback", side_effect=flaky_earn), \
                mock.patch.object(concurrency.time, "sleep"):
            result = session_service.close_session(
                actor_a, session_id, paid_amount=50000, payment_type="cash",
                cashback_amount=1000, now=minutes_after(T0, 60),
            )

        assert result.ok, result
        assert len(calls) == 2
        assert result.value.debt_amount == 9000

        db_session.expire_all()
        customer = db_session.get(Customer, customer_a.id)
        assert customer.cashback_balance == 0
        assert customer.total_cashback_spent == 1000
        assert customer.total_debt == 9000
        assert db_session.query(CashbackEntry).filter_by(session_id=session_id).count() == 1
        assert db_session.query(Payment).filter_by(session_id=session_id).count() == 1

    def test_persistent_stale_rows_leave_session_open(self, db_session, actor_a, table_a, customer_a):
        session_id = _open(actor_a, table_a, customer_a)

        with mock.patch.object(
            session_service, "earn_cashback", side_effect=StaleDataError("customers row keeps changing")
        ), mock.patch.object(concurrency.time, "sleep"):
            with pytest.raises(StaleDataError):
                session_service.close_session(
                    actor_a, session_id, paid_amount=10000, payment_type="cash", now=minutes_after(T0, 10)
                )

        db_session.expire_all()
        assert db_session.get(PlaySession, session_id).status == SESSION_STATUS_ACTIVE
        assert db_session.query(Payment).count() == 0
