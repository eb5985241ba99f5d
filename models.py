from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from categories import DEFAULT_CARD_COLOR, ExpenseCategory, RewardType
from database import Base

MONEY = Numeric(12, 2, asdecimal=True)
PERCENT = Numeric(6, 2, asdecimal=True)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class CreditCard(Base, TimestampMixin):
    __tablename__ = "credit_cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    bank: Mapped[str] = mapped_column(String(100), nullable=False)
    last_four_digits: Mapped[str] = mapped_column(String(4), nullable=False)
    credit_limit: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    current_balance: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    min_payment: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    interest_rate: Mapped[Decimal] = mapped_column(
        PERCENT, nullable=False, default=Decimal("0")
    )
    # Stored as text; parsed into RewardType at the record boundary.
    reward_type: Mapped[str] = mapped_column(
        String(32), nullable=False, default=RewardType.none.value
    )
    color: Mapped[str] = mapped_column(
        String(9), nullable=False, default=DEFAULT_CARD_COLOR
    )

    expenses: Mapped[list["Expense"]] = relationship(
        "Expense", back_populates="card", cascade="all, delete-orphan"
    )
    offers: Mapped[list["Offer"]] = relationship(
        "Offer", back_populates="card", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("credit_limit >= 0", name="ck_credit_limit_non_negative"),
        Index("ix_credit_cards_user_created", "user_id", "created_at"),
    )


class Expense(Base, TimestampMixin):
    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    card_id: Mapped[int] = mapped_column(
        ForeignKey("credit_cards.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Stored as text; parsed into ExpenseCategory at the record boundary.
    category: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ExpenseCategory.other.value
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    merchant: Mapped[Optional[str]] = mapped_column(String(120))

    card: Mapped["CreditCard"] = relationship("CreditCard", back_populates="expenses")

    __table_args__ = (Index("ix_expenses_user_date", "user_id", "date"),)


class Offer(Base, TimestampMixin):
    __tablename__ = "offers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    card_id: Mapped[int] = mapped_column(
        ForeignKey("credit_cards.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ExpenseCategory.other.value
    )
    cashback: Mapped[Decimal] = mapped_column(PERCENT, nullable=False)
    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    min_spend: Mapped[Optional[Decimal]] = mapped_column(MONEY)

    card: Mapped["CreditCard"] = relationship("CreditCard", back_populates="offers")

    __table_args__ = (
        CheckConstraint("cashback >= 0", name="ck_offer_cashback_non_negative"),
        Index("ix_offers_card_created", "card_id", "created_at"),
    )
