# Overview: Flask CLI command groups for bootstrap, tenants and cashback maintenance.

# backend/cuehall/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--account "Main Hall"] [--code MAIN] [--operator admin]
#   Idempotent bootstrap: creates a default account, an operator and its cashback settings.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Account management (MULTI-TENANT):
# - python -m flask accounts list
#   List all accounts.
# - python -m flask accounts create --name "Corner Hall" --code "CORNER"
#   Create a new account (tenant).
#
# Operators:
# - python -m flask operators create --account-id 1 --username desk1 [--display-name "Front Desk"]
#   Create an operator for an account.
#
# Maintenance:
# - python -m flask maintenance expire-cashback --account-id 1
#   Expire earned cashback past its expiry date (schedule this daily).
# - python -m flask maintenance rebuild-cashback-balances --account-id 1 [--dry-run]
#   Recompute customer cashback aggregates from the ledger and report drift.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Account, Customer, Operator, PoolTable
from .services import maintenance_service
from .services.cashback_service import get_or_create_settings, sweep_expired_cashback


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--account', 'account_name', default='Default Hall', help='Account name')
@click.option('--code', 'account_code', default='DEFAULT', help='Account code')
@click.option('--operator', 'operator_username', default='admin', help='Operator username')
@with_appcontext
def init_system(account_name, account_code, operator_username):
    """
    Initialize a usable system: account, operator and cashback settings.

    Safe to re-run; existing rows are reused.
    """
    click.echo("START Initializing system...")

    account = db.session.query(Account).filter_by(code=account_code).first()
    if not account:
        account = Account(name=account_name, code=account_code, is_active=True)
        db.session.add(account)
        db.session.commit()
        click.echo(f"PASS Created account: {account.name} (ID: {account.id}, Code: {account.code})")
    else:
        click.echo(f"PASS Using existing account: {account.name} (ID: {account.id})")

    operator = db.session.query(Operator).filter_by(account_id=account.id, username=operator_username).first()
    if not operator:
        operator = Operator(account_id=account.id, username=operator_username, is_active=True)
        db.session.add(operator)
        db.session.commit()
        click.echo(f"PASS Created operator: {operator.username} (ID: {operator.id})")
    else:
        click.echo(f"PASS Using existing operator: {operator.username} (ID: {operator.id})")

    settings = get_or_create_settings(account.id)
    click.echo(
        f"PASS Cashback settings: {settings.percentage}% earn, "
        f"min {settings.min_amount}, max usage {settings.max_usage_percent}%"
    )

    click.echo("\nDONE System initialized.")
    click.echo(f"   Send X-Account-Id: {account.id} and X-Operator-Id: {operator.id} with API requests.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('accounts')
def accounts_group():
    """Account (tenant) management commands."""


@accounts_group.command('list')
@with_appcontext
def list_accounts():
    """List all accounts."""
    accounts = db.session.query(Account).order_by(Account.id).all()

    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Tables':<8} {'Customers'}")
    click.echo("="*80)

    for account in accounts:
        table_count = db.session.query(PoolTable).filter_by(account_id=account.id).count()
        customer_count = db.session.query(Customer).filter_by(account_id=account.id).count()
        active_str = "Yes" if account.is_active else "No"

        click.echo(f"{account.id:<5} {account.name:<30} {account.code:<15} {active_str:<8} {table_count:<8} {customer_count}")

    click.echo("="*80 + "\n")


@accounts_group.command('create')
@click.option('--name', required=True, help='Account name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_account_cli(name, code):
    """Create a new account (tenant)."""
    existing = db.session.query(Account).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Account with code '{code}' already exists")
        return

    account = Account(name=name, code=code, is_active=True)
    db.session.add(account)
    db.session.commit()
    get_or_create_settings(account.id)

    click.echo(f"PASS Created account: {account.name} (ID: {account.id}, Code: {account.code})")


@click.group('operators')
def operators_group():
    """Operator management commands."""


@operators_group.command('create')
@click.option('--account-id', type=int, required=True, help='Account ID')
@click.option('--username', required=True, help='Username (unique within the account)')
@click.option('--display-name', help='Name shown on receipts')
@with_appcontext
def create_operator_cli(account_id, username, display_name):
    """Create an operator for an account."""
    account = db.session.get(Account, account_id)
    if not account:
        click.echo(f"FAIL Account {account_id} not found")
        return

    existing = db.session.query(Operator).filter_by(account_id=account.id, username=username).first()
    if existing:
        click.echo(f"FAIL Operator '{username}' already exists in account {account.id}")
        return

    operator = Operator(account_id=account.id, username=username, display_name=display_name, is_active=True)
    db.session.add(operator)
    db.session.commit()

    click.echo(f"PASS Created operator: {operator.username} (ID: {operator.id}, Account: {account.id})")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('expire-cashback')
@click.option('--account-id', type=int, required=True, help='Account ID')
@with_appcontext
def expire_cashback_cli(account_id):
    """
    Expire earned cashback whose expiry date has passed.

    Balances are only reduced when this runs, so schedule it daily.
    """
    expired = sweep_expired_cashback(account_id)
    click.echo(f"Expired {expired} cashback entries for account {account_id}.")


@maintenance_group.command('rebuild-cashback-balances')
@click.option('--account-id', type=int, required=True, help='Account ID')
@click.option('--dry-run', is_flag=True, help='Report drift without writing')
@with_appcontext
def rebuild_cashback_balances_cli(account_id, dry_run):
    """
    Recompute each customer's cashback aggregates from the ledger.

    Use after importing legacy data, or if balances were edited by hand.
    """
    drifts = maintenance_service.rebuild_cashback_balances(account_id, dry_run=dry_run)
    if not drifts:
        click.echo("PASS All customer cashback balances match the ledger.")
        return

    verb = "Would fix" if dry_run else "Fixed"
    for drift in drifts:
        click.echo(
            f"{verb} customer {drift.customer_id}: balance {drift.stored_balance} -> {drift.ledger_balance}"
        )
    click.echo(f"{verb} {len(drifts)} customer(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(accounts_group)  # Multi-tenant account management
    app.cli.add_command(operators_group)
    app.cli.add_command(maintenance_group)
