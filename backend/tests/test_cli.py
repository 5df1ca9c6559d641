"""CLI command tests (flask system/accounts/operators/maintenance)."""

from datetime import timedelta

from cuehall.models import Account, CashbackEntry, CashbackSettings, Customer, Operator
from cuehall.models.cashback import DIRECTION_EARNED, ENTRY_STATUS_ACTIVE, ENTRY_STATUS_EXPIRED, SOURCE_SESSION_PAYMENT
from cuehall.time_utils import utcnow


class TestSystemCommands:

    def test_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "init", "--account", "Main Hall", "--code", "MAIN"])
        assert first.exit_code == 0, first.output
        assert "Created account: Main Hall" in first.output

        second = runner.invoke(args=["system", "init", "--account", "Main Hall", "--code", "MAIN"])
        assert second.exit_code == 0, second.output
        assert "Using existing account" in second.output

        assert db_session.query(Account).filter_by(code="MAIN").count() == 1
        assert db_session.query(Operator).filter_by(username="admin").count() == 1
        assert db_session.query(CashbackSettings).count() == 1


class TestAccountCommands:

    def test_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["accounts", "create", "--name", "Side Pocket", "--code", "SIDE"])
        assert result.exit_code == 0, result.output
        assert "PASS Created account" in result.output

        listing = runner.invoke(args=["accounts", "list"])
        assert "Side Pocket" in listing.output

    def test_duplicate_code_refused(self, app, account_a):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["accounts", "create", "--name", "Copy", "--code", account_a.code])
        assert "already exists" in result.output


class TestOperatorCommands:

    def test_create_operator(self, app, db_session, account_a):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "operators", "create", "--account-id", str(account_a.id),
            "--username", "night_shift", "--display-name", "Night Shift",
        ])
        assert result.exit_code == 0, result.output

        operator = db_session.query(Operator).filter_by(username="night_shift").one()
        assert operator.account_id == account_a.id
        assert operator.display_name == "Night Shift"

    def test_unknown_account(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["operators", "create", "--account-id", "99999", "--username", "x"])
        assert "not found" in result.output


class TestMaintenanceCommands:

    def _seed_expired_credit(self, db_session, customer):
        now = utcnow()
        entry = CashbackEntry(
            account_id=customer.account_id,
            customer_id=customer.id,
            amount=1500,
            direction=DIRECTION_EARNED,
            source=SOURCE_SESSION_PAYMENT,
            description="old credit",
            status=ENTRY_STATUS_ACTIVE,
            created_at=now - timedelta(days=100),
            expires_at=now - timedelta(days=10),
        )
        db_session.add(entry)
        customer.cashback_balance = 1500
        customer.total_cashback_earned = 1500
        db_session.commit()
        return entry.id

    def test_expire_cashback(self, app, db_session, account_a, customer_a):
        entry_id = self._seed_expired_credit(db_session, customer_a)

        result = app.test_cli_runner().invoke(
            args=["maintenance", "expire-cashback", "--account-id", str(account_a.id)]
        )
        assert result.exit_code == 0, result.output
        assert "Expired 1 cashback entries" in result.output

        db_session.expire_all()
        assert db_session.get(CashbackEntry, entry_id).status == ENTRY_STATUS_EXPIRED
        assert db_session.get(Customer, customer_a.id).cashback_balance == 0

    def test_rebuild_dry_run_then_fix(self, app, db_session, account_a, customer_a):
        self._seed_expired_credit(db_session, customer_a)
        customer_a.cashback_balance = 9999
        db_session.commit()
        runner = app.test_cli_runner()

        dry = runner.invoke(args=[
            "maintenance", "rebuild-cashback-balances", "--account-id", str(account_a.id), "--dry-run",
        ])
        assert dry.exit_code == 0, dry.output
        assert "Would fix customer" in dry.output
        db_session.expire_all()
        assert db_session.get(Customer, customer_a.id).cashback_balance == 9999

        fixed = runner.invoke(args=[
            "maintenance", "rebuild-cashback-balances", "--account-id", str(account_a.id),
        ])
        assert fixed.exit_code == 0, fixed.output
        assert "Fixed 1 customer(s)." in fixed.output
        db_session.expire_all()
        assert db_session.get(Customer, customer_a.id).cashback_balance == 1500

        again = runner.invoke(args=[
            "maintenance", "rebuild-cashback-balances", "--account-id", str(account_a.id),
        ])
        assert "match the ledger" in again.output
