"""Initial schema: accounts, tables, customers, sessions, payments, cashback

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*names):
    return [
        sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False)
        for name in names
    ]


def upgrade():
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("accounts", schema=None) as batch_op:
        batch_op.create_index("ix_accounts_code", ["code"], unique=True)

    op.create_table(
        "operators",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("display_name", sa.String(128), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps("created_at"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("account_id", "username", name="uq_operators_account_username"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("operators", schema=None) as batch_op:
        batch_op.create_index("ix_operators_account_id", ["account_id"], unique=False)

    op.create_table(
        "pool_tables",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("hourly_rate", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        *_timestamps("created_at"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint("hourly_rate >= 0", name="ck_pool_tables_rate_non_negative"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("pool_tables", schema=None) as batch_op:
        batch_op.create_index("ix_pool_tables_account_id", ["account_id"], unique=False)
        batch_op.create_index("ix_pool_tables_account_active", ["account_id", "is_active"], unique=False)

    op.create_table(
        "rate_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("table_id", sa.Integer(), nullable=False),
        sa.Column("old_rate", sa.BigInteger(), nullable=False),
        sa.Column("new_rate", sa.BigInteger(), nullable=False),
        sa.Column("changed_by_operator_id", sa.Integer(), nullable=False),
        *_timestamps("changed_at"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
        sa.ForeignKeyConstraint(["table_id"], ["pool_tables.id"]),
        sa.ForeignKeyConstraint(["changed_by_operator_id"], ["operators.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("rate_history", schema=None) as batch_op:
        batch_op.create_index("ix_rate_history_account_id", ["account_id"], unique=False)
        batch_op.create_index("ix_rate_history_table_id", ["table_id"], unique=False)
        batch_op.create_index("ix_rate_history_table_changed", ["table_id", "changed_at"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("total_debt", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("cashback_balance", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_cashback_earned", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_cashback_spent", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        *_timestamps("created_at", "updated_at"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint("total_debt >= 0", name="ck_customers_debt_non_negative"),
        sa.CheckConstraint("cashback_balance >= 0", name="ck_customers_cashback_non_negative"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.create_index("ix_customers_account_id", ["account_id"], unique=False)
        batch_op.create_index("ix_customers_account_created", ["account_id", "created_at"], unique=False)

    op.create_table(
        "play_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("table_id", sa.Integer(), nullable=True),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("hourly_rate_at_start", sa.BigInteger(), nullable=False),
        sa.Column("game_amount", sa.BigInteger(), nullable=True),
        sa.Column("additional_amount", sa.BigInteger(), nullable=True),
        sa.Column("total_amount", sa.BigInteger(), nullable=True),
        sa.Column("paid_amount", sa.BigInteger(), nullable=True),
        sa.Column("cashback_used", sa.BigInteger(), nullable=True),
        sa.Column("debt_amount", sa.BigInteger(), nullable=True),
        sa.Column("payment_type", sa.String(16), nullable=True),
        sa.Column("opened_by_operator_id", sa.Integer(), nullable=True),
        sa.Column("completed_by_operator_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
        sa.ForeignKeyConstraint(["table_id"], ["pool_tables.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["opened_by_operator_id"], ["operators.id"]),
        sa.ForeignKeyConstraint(["completed_by_operator_id"], ["operators.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("play_sessions", schema=None) as batch_op:
        batch_op.create_index("ix_play_sessions_account_table", ["account_id", "table_id"], unique=False)
        batch_op.create_index("ix_play_sessions_account_status", ["account_id", "status"], unique=False)
        batch_op.create_index("ix_play_sessions_account_customer", ["account_id", "customer_id"], unique=False)

    # At most one active session per table
    op.create_index(
        "uq_play_sessions_one_active_per_table",
        "play_sessions",
        ["account_id", "table_id"],
        unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "additional_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("item_name", sa.String(128), nullable=False),
        sa.Column("quantity", sa.BigInteger(), nullable=False),
        sa.Column("unit_price", sa.BigInteger(), nullable=False),
        sa.Column("total_price", sa.BigInteger(), nullable=False),
        sa.Column("created_by_operator_id", sa.Integer(), nullable=True),
        *_timestamps("created_at"),
        sa.CheckConstraint("quantity > 0", name="ck_additional_orders_quantity_positive"),
        sa.CheckConstraint("unit_price >= 0", name="ck_additional_orders_price_non_negative"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
        sa.ForeignKeyConstraint(["session_id"], ["play_sessions.id"]),
        sa.ForeignKeyConstraint(["created_by_operator_id"], ["operators.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("additional_orders", schema=None) as batch_op:
        batch_op.create_index("ix_additional_orders_account_id", ["account_id"], unique=False)
        batch_op.create_index("ix_additional_orders_session_id", ["session_id"], unique=False)

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=True),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("tender", sa.String(16), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("created_by_operator_id", sa.Integer(), nullable=False),
        *_timestamps("created_at"),
        sa.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
        sa.ForeignKeyConstraint(["session_id"], ["play_sessions.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["created_by_operator_id"], ["operators.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("payments", schema=None) as batch_op:
        batch_op.create_index("ix_payments_account_id", ["account_id"], unique=False)
        batch_op.create_index("ix_payments_session_id", ["session_id"], unique=False)
        batch_op.create_index("ix_payments_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_payments_account_created", ["account_id", "created_at"], unique=False)

    op.create_table(
        "cashback_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=True),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("direction", sa.String(16), nullable=False),
        sa.Column("source", sa.String(32), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expired_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps("created_at"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint("amount > 0", name="ck_cashback_entries_amount_positive"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["session_id"], ["play_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("cashback_entries", schema=None) as batch_op:
        batch_op.create_index("ix_cashback_entries_account_id", ["account_id"], unique=False)
        batch_op.create_index("ix_cashback_entries_session_id", ["session_id"], unique=False)
        batch_op.create_index("ix_cashback_entries_account_status", ["account_id", "status"], unique=False)
        batch_op.create_index("ix_cashback_entries_account_customer", ["account_id", "customer_id"], unique=False)

    op.create_table(
        "cashback_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("percentage", sa.Integer(), nullable=False, server_default=sa.text("5")),
        sa.Column("min_amount", sa.BigInteger(), nullable=False, server_default=sa.text("1000")),
        sa.Column("apply_on_debt", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("max_usage_percent", sa.Integer(), nullable=False, server_default=sa.text("30")),
        sa.Column("apply_on_extras", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_by_operator_id", sa.Integer(), nullable=True),
        *_timestamps("updated_at"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint("percentage >= 0 AND percentage <= 100", name="ck_cashback_settings_percentage"),
        sa.CheckConstraint("max_usage_percent >= 0 AND max_usage_percent <= 100", name="ck_cashback_settings_max_usage"),
        sa.CheckConstraint("min_amount >= 0", name="ck_cashback_settings_min_amount"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
        sa.ForeignKeyConstraint(["updated_by_operator_id"], ["operators.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("account_id", name="uq_cashback_settings_account"),
        sqlite_autoincrement=True,
    )


def downgrade():
    op.drop_table("cashback_settings")

    with op.batch_alter_table("cashback_entries", schema=None) as batch_op:
        batch_op.drop_index("ix_cashback_entries_account_customer")
        batch_op.drop_index("ix_cashback_entries_account_status")
        batch_op.drop_index("ix_cashback_entries_session_id")
        batch_op.drop_index("ix_cashback_entries_account_id")
    op.drop_table("cashback_entries")

    op.drop_table("payments")
    op.drop_table("additional_orders")

    op.drop_index("uq_play_sessions_one_active_per_table", table_name="play_sessions")
    op.drop_table("play_sessions")

    op.drop_table("customers")
    op.drop_table("rate_history")
    op.drop_table("pool_tables")
    op.drop_table("operators")
    op.drop_table("accounts")
