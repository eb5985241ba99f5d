from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from categories import ExpenseCategory
from records import ExpenseRecord, OfferRecord


@dataclass(frozen=True)
class ExpenseFilters:
    card_id: Optional[int] = None
    category: Optional[ExpenseCategory] = None

    def matches(self, expense: ExpenseRecord) -> bool:
        if self.card_id is not None and expense.card_id != self.card_id:
            return False
        if self.category is not None and expense.category != self.category:
            return False
        return True


def filter_expenses(
    expenses: Iterable[ExpenseRecord], filters: Optional[ExpenseFilters] = None
) -> list[ExpenseRecord]:
    if filters is None:
        return list(expenses)
    return [expense for expense in expenses if filters.matches(expense)]


def filter_offers(
    offers: Iterable[OfferRecord], card_id: Optional[int] = None
) -> list[OfferRecord]:
    if card_id is None:
        return list(offers)
    return [offer for offer in offers if offer.card_id == card_id]


def expense_total(expenses: Iterable[ExpenseRecord]) -> Decimal:
    return sum((expense.amount for expense in expenses), Decimal("0"))
