"""ledger schema

Revision ID: 202610180900
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610180900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "categories",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("color", sa.String(length=32), nullable=False),
        sa.Column(
            "kind", sa.Enum("default", "custom", name="categorykind"), nullable=False
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column(
            "type",
            sa.Enum("income", "expense", "savings", name="transactiontype"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("paid", "pending", name="transactionstatus"),
            nullable=False,
        ),
        sa.Column("recurring_rule_id", sa.String(length=36)),
        sa.Column("parent_transaction_id", sa.String(length=36)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_occurred_at", "transactions", ["occurred_at"])
    op.create_index(
        "ix_transactions_recurring_rule",
        "transactions",
        ["recurring_rule_id", "occurred_at"],
    )
    op.create_index(
        "ix_transactions_parent", "transactions", ["parent_transaction_id"]
    )

    op.create_table(
        "installment_plans",
        sa.Column(
            "transaction_id",
            sa.String(length=36),
            sa.ForeignKey("transactions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("total_installments", sa.Integer(), nullable=False),
        sa.Column(
            "paid_installments", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("monthly_amount_cents", sa.Integer(), nullable=False),
        sa.CheckConstraint("total_installments > 0", name="ck_plan_total_positive"),
        sa.CheckConstraint(
            "paid_installments >= 0 AND paid_installments <= total_installments",
            name="ck_plan_paid_in_range",
        ),
        sa.CheckConstraint("monthly_amount_cents > 0", name="ck_plan_amount_positive"),
    )

    op.create_table(
        "recurring_rules",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("description", sa.String(length=200), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("day_of_month", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_rule_amount_positive"),
        sa.CheckConstraint(
            "day_of_month >= 1 AND day_of_month <= 31", name="ck_rule_day_in_range"
        ),
    )

    op.create_table(
        "ledger_baseline",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "initial_balance_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )


def downgrade():
    op.drop_table("ledger_baseline")
    op.drop_table("recurring_rules")
    op.drop_table("installment_plans")
    op.drop_index("ix_transactions_parent", table_name="transactions")
    op.drop_index("ix_transactions_recurring_rule", table_name="transactions")
    op.drop_index("ix_transactions_occurred_at", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("categories")
