"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(12, 2)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("tg_id", sa.BigInteger(), nullable=False, unique=True),
        sa.Column("username", sa.Text()),
        sa.Column("full_name", sa.Text()),
    )

    op.create_table(
        "rooms",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("created_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("invite_code", sa.Text(), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "room_members",
        sa.Column("room_id", sa.BigInteger(), sa.ForeignKey("rooms.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("role in ('owner','member')", name="room_members_role_check"),
    )

    op.create_table(
        "shared_expenses",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("room_id", sa.BigInteger(), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("category", sa.Text(), nullable=False, server_default="Other"),
        sa.Column("description", sa.Text()),
        sa.Column("date", sa.Date(), nullable=False, server_default=sa.func.current_date()),
        sa.Column("paid_by", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("split_type", sa.Text(), nullable=False, server_default="equal"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("amount > 0", name="shared_expenses_amount_check"),
        sa.CheckConstraint("split_type in ('full','equal','custom')", name="shared_expenses_split_type_check"),
    )

    op.create_table(
        "expense_splits",
        sa.Column(
            "shared_expense_id",
            sa.BigInteger(),
            sa.ForeignKey("shared_expenses.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("amount", MONEY, nullable=False),
    )

    op.create_table(
        "settlements",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("room_id", sa.BigInteger(), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("from_user_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("to_user_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("amount > 0", name="settlements_amount_check"),
    )

    op.create_table(
        "room_budgets",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("room_id", sa.BigInteger(), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("budget_limit", MONEY, nullable=False),
        sa.UniqueConstraint("room_id", "category", name="room_budgets_room_category_key"),
    )

    op.create_table(
        "expenses",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("category", sa.Text(), nullable=False, server_default="Other"),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "income",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("income_type", sa.Text(), nullable=False, server_default="one_time"),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "income_type in ('yearly_salary','monthly_salary','one_time')",
            name="income_income_type_check",
        ),
    )

    op.create_table(
        "budgets",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("budget_limit", MONEY, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "category", name="budgets_user_category_key"),
    )

    op.create_table(
        "budget_alert_acks",
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("budget_id", sa.BigInteger(), sa.ForeignKey("budgets.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("threshold", sa.Integer(), primary_key=True),
        sa.Column("period", sa.String(length=7), primary_key=True),
        sa.Column("acked_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_index("idx_room_members_user", "room_members", ["user_id"])
    op.create_index("idx_shared_expenses_room", "shared_expenses", ["room_id"])
    op.create_index("idx_settlements_room", "settlements", ["room_id"])
    op.create_index("idx_expenses_user_date", "expenses", ["user_id", "date"])
    op.create_index("idx_income_user_date", "income", ["user_id", "date"])


def downgrade() -> None:
    op.drop_index("idx_income_user_date", table_name="income")
    op.drop_index("idx_expenses_user_date", table_name="expenses")
    op.drop_index("idx_settlements_room", table_name="settlements")
    op.drop_index("idx_shared_expenses_room", table_name="shared_expenses")
    op.drop_index("idx_room_members_user", table_name="room_members")

    op.drop_table("budget_alert_acks")
    op.drop_table("budgets")
    op.drop_table("income")
    op.drop_table("expenses")
    op.drop_table("room_budgets")
    op.drop_table("settlements")
    op.drop_table("expense_splits")
    op.drop_table("shared_expenses")
    op.drop_table("room_members")
    op.drop_table("rooms")
    op.drop_table("users")
