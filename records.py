"""Immutable record types handed to the derivation layer.

ORM rows never leave the data-access services; they are converted here so the
aggregation and alert code works on plain, hashable values and cannot write
back to the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from categories import ExpenseCategory, RewardType, parse_category, parse_reward_type
from models import CreditCard, Expense, Offer


def _money(value: object) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class CardRecord:
    id: int
    user_id: str
    name: str
    bank: str
    last_four_digits: str
    credit_limit: Decimal
    current_balance: Decimal
    due_date: date
    min_payment: Decimal
    interest_rate: Decimal
    reward_type: RewardType
    color: str
    created_at: datetime

    @classmethod
    def from_model(cls, card: CreditCard) -> CardRecord:
        return cls(
            id=card.id,
            user_id=card.user_id,
            name=card.name,
            bank=card.bank,
            last_four_digits=card.last_four_digits,
            credit_limit=_money(card.credit_limit),
            current_balance=_money(card.current_balance),
            due_date=card.due_date,
            min_payment=_money(card.min_payment),
            interest_rate=_money(card.interest_rate),
            reward_type=parse_reward_type(card.reward_type),
            color=card.color,
            created_at=card.created_at,
        )


@dataclass(frozen=True)
class ExpenseRecord:
    id: int
    card_id: int
    user_id: str
    amount: Decimal
    description: str
    category: ExpenseCategory
    date: date
    merchant: Optional[str]
    created_at: datetime

    @classmethod
    def from_model(cls, expense: Expense) -> ExpenseRecord:
        return cls(
            id=expense.id,
            card_id=expense.card_id,
            user_id=expense.user_id,
            amount=_money(expense.amount),
            description=expense.description or "",
            category=parse_category(expense.category),
            date=expense.date,
            merchant=expense.merchant,
            created_at=expense.created_at,
        )


@dataclass(frozen=True)
class OfferRecord:
    id: int
    card_id: int
    title: str
    description: str
    category: ExpenseCategory
    cashback: Decimal
    expiry_date: date
    is_active: bool
    min_spend: Optional[Decimal]
    created_at: datetime

    @classmethod
    def from_model(cls, offer: Offer) -> OfferRecord:
        return cls(
            id=offer.id,
            card_id=offer.card_id,
            title=offer.title,
            description=offer.description or "",
            category=parse_category(offer.category),
            cashback=_money(offer.cashback),
            expiry_date=offer.expiry_date,
            is_active=bool(offer.is_active),
            min_spend=_money(offer.min_spend) if offer.min_spend is not None else None,
            created_at=offer.created_at,
        )


@dataclass(frozen=True)
class Snapshot:
    user_id: str
    cards: tuple[CardRecord, ...] = field(default_factory=tuple)
    expenses: tuple[ExpenseRecord, ...] = field(default_factory=tuple)
    offers: tuple[OfferRecord, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not (self.cards or self.expenses or self.offers)
