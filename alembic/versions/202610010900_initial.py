"""cards, expenses and offers

Revision ID: 202610010900
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610010900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "credit_cards",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("bank", sa.String(length=100), nullable=False),
        sa.Column("last_four_digits", sa.String(length=4), nullable=False),
        sa.Column("credit_limit", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "current_balance", sa.Numeric(12, 2), nullable=False, server_default="0"
        ),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("min_payment", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("interest_rate", sa.Numeric(6, 2), nullable=False, server_default="0"),
        sa.Column(
            "reward_type", sa.String(length=32), nullable=False, server_default="none"
        ),
        sa.Column("color", sa.String(length=9), nullable=False, server_default="#ef4444"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("credit_limit >= 0", name="ck_credit_limit_non_negative"),
    )
    op.create_index(
        "ix_credit_cards_user_created", "credit_cards", ["user_id", "created_at"]
    )

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "card_id",
            sa.Integer(),
            sa.ForeignKey("credit_cards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=32), nullable=False, server_default="other"),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("merchant", sa.String(length=120)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_expenses_user_date", "expenses", ["user_id", "date"])

    op.create_table(
        "offers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "card_id",
            sa.Integer(),
            sa.ForeignKey("credit_cards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=32), nullable=False, server_default="other"),
        sa.Column("cashback", sa.Numeric(6, 2), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("min_spend", sa.Numeric(12, 2)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("cashback >= 0", name="ck_offer_cashback_non_negative"),
    )
    op.create_index("ix_offers_card_created", "offers", ["card_id", "created_at"])


def downgrade():
    op.drop_index("ix_offers_card_created", table_name="offers")
    op.drop_table("offers")
    op.drop_index("ix_expenses_user_date", table_name="expenses")
    op.drop_table("expenses")
    op.drop_index("ix_credit_cards_user_created", table_name="credit_cards")
    op.drop_table("credit_cards")
