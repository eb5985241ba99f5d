"""Spending and credit metrics computed from a record snapshot.

Every function here is pure: results depend only on the records passed in and
the explicit ``today`` reference date. Nothing reads the clock or the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional, Sequence

from categories import ExpenseCategory, category_color
from filters import expense_total
from periods import Period, add_months, days_until, month_key, month_start, trailing_period
from records import CardRecord, ExpenseRecord, OfferRecord

ZERO = Decimal("0")
UPCOMING_BADGE_DAYS = 7
DUE_SOON_DAYS = 3


class UtilizationLevel(str, Enum):
    healthy = "healthy"
    elevated = "elevated"
    high = "high"


class DueStatus(str, Enum):
    overdue = "overdue"
    due_soon = "due_soon"
    upcoming = "upcoming"


@dataclass(frozen=True)
class PortfolioTotals:
    total_credit_limit: Decimal
    total_balance: Decimal
    total_available: Decimal
    utilization_rate: float


@dataclass(frozen=True)
class CategorySlice:
    category: ExpenseCategory
    amount: Decimal
    percentage: float
    color: str


@dataclass(frozen=True)
class MonthlyAmount:
    month: str
    amount: Decimal


@dataclass(frozen=True)
class MonthOverMonth:
    current_month: str
    previous_month: str
    current_spending: Decimal
    previous_spending: Decimal
    change_percent: float
    # False means change_percent is a placeholder, not a comparison.
    has_comparable_data: bool


@dataclass(frozen=True)
class CardSpending:
    card: CardRecord
    spending: Decimal
    utilization: float
    utilization_level: UtilizationLevel


@dataclass(frozen=True)
class DueDateEntry:
    card: CardRecord
    days_until_due: int
    status: DueStatus


@dataclass(frozen=True)
class DueDateSchedule:
    entries: list[DueDateEntry]
    overdue_count: int
    due_soon_count: int


@dataclass(frozen=True)
class SpendingSummary:
    period_days: int
    totals: PortfolioTotals
    total_expenses: Decimal
    period_spending: Decimal
    active_offers: int
    upcoming_due_dates: int
    month_over_month: MonthOverMonth
    category_breakdown: list[CategorySlice]


@dataclass(frozen=True)
class AnalyticsOverview:
    period_days: int
    total_spending: Decimal
    transaction_count: int
    average_transaction: Decimal
    utilization_rate: float
    top_spending_card: Optional[CardSpending]
    category_breakdown: list[CategorySlice]
    monthly_spending: list[MonthlyAmount]
    cards: list[CardSpending]


def utilization_percent(balance: Decimal, limit: Decimal) -> float:
    if limit <= ZERO:
        return 0.0
    return float(balance / limit * 100)


def utilization_level(percent: float) -> UtilizationLevel:
    if percent >= 80:
        return UtilizationLevel.high
    if percent >= 60:
        return UtilizationLevel.elevated
    return UtilizationLevel.healthy


def card_utilization(card: CardRecord) -> float:
    return utilization_percent(card.current_balance, card.credit_limit)


def portfolio_totals(cards: Iterable[CardRecord]) -> PortfolioTotals:
    total_limit = ZERO
    total_balance = ZERO
    for card in cards:
        total_limit += card.credit_limit
        total_balance += card.current_balance
    return PortfolioTotals(
        total_credit_limit=total_limit,
        total_balance=total_balance,
        total_available=total_limit - total_balance,
        utilization_rate=utilization_percent(total_balance, total_limit),
    )


def filtered_expenses(
    expenses: Iterable[ExpenseRecord], period_days: int, today: date
) -> list[ExpenseRecord]:
    period: Period = trailing_period(period_days, today)
    return [expense for expense in expenses if period.contains(expense.date)]


def total_spending(expenses: Iterable[ExpenseRecord], period_days: int, today: date) -> Decimal:
    return expense_total(filtered_expenses(expenses, period_days, today))


def average_transaction(
    expenses: Iterable[ExpenseRecord], period_days: int, today: date
) -> Decimal:
    selected = filtered_expenses(expenses, period_days, today)
    if not selected:
        return ZERO
    return expense_total(selected) / len(selected)


def category_breakdown(expenses: Iterable[ExpenseRecord]) -> list[CategorySlice]:
    """Totals per category, largest first.

    The caller decides the scope: the analytics view passes every expense, the
    summary view passes only the selected period.
    """
    totals: dict[ExpenseCategory, Decimal] = {}
    for expense in expenses:
        totals[expense.category] = totals.get(expense.category, ZERO) + expense.amount

    grand_total = sum(totals.values(), ZERO)
    breakdown = [
        CategorySlice(
            category=category,
            amount=amount,
            percentage=float(amount / grand_total * 100) if grand_total else 0.0,
            color=category_color(category),
        )
        for category, amount in totals.items()
    ]
    breakdown.sort(key=lambda item: item.amount, reverse=True)
    return breakdown


def monthly_spending(expenses: Iterable[ExpenseRecord], today: date) -> list[MonthlyAmount]:
    cutoff = add_months(month_start(today), -11)
    totals: dict[str, Decimal] = {}
    for expense in expenses:
        if expense.date < cutoff:
            continue
        key = month_key(expense.date)
        totals[key] = totals.get(key, ZERO) + expense.amount
    return [MonthlyAmount(month=key, amount=totals[key]) for key in sorted(totals)]


def card_spending(
    card: CardRecord, expenses: Iterable[ExpenseRecord], period_days: int, today: date
) -> Decimal:
    return expense_total(
        expense
        for expense in filtered_expenses(expenses, period_days, today)
        if expense.card_id == card.id
    )


def card_breakdown(
    cards: Sequence[CardRecord],
    expenses: Sequence[ExpenseRecord],
    period_days: int,
    today: date,
) -> list[CardSpending]:
    selected = filtered_expenses(expenses, period_days, today)
    per_card: dict[int, Decimal] = {}
    for expense in selected:
        per_card[expense.card_id] = per_card.get(expense.card_id, ZERO) + expense.amount

    rows = []
    for card in cards:
        percent = card_utilization(card)
        rows.append(
            CardSpending(
                card=card,
                spending=per_card.get(card.id, ZERO),
                utilization=percent,
                utilization_level=utilization_level(percent),
            )
        )
    return rows


def top_spending_card(
    cards: Sequence[CardRecord],
    expenses: Sequence[ExpenseRecord],
    period_days: int,
    today: date,
) -> Optional[CardSpending]:
    best: Optional[CardSpending] = None
    for row in card_breakdown(cards, expenses, period_days, today):
        # Strictly greater: ties keep the earlier card.
        if row.spending > (best.spending if best else ZERO):
            best = row
    return best


def month_over_month(expenses: Iterable[ExpenseRecord], today: date) -> MonthOverMonth:
    current_key = month_key(today)
    previous_key = month_key(add_months(month_start(today), -1))

    current = ZERO
    previous = ZERO
    seen = False
    for expense in expenses:
        key = month_key(expense.date)
        if key == current_key:
            current += expense.amount
            seen = True
        elif key == previous_key:
            previous += expense.amount
            seen = True

    change = float((current - previous) / previous * 100) if previous > ZERO else 0.0
    return MonthOverMonth(
        current_month=current_key,
        previous_month=previous_key,
        current_spending=current,
        previous_spending=previous,
        change_percent=change,
        has_comparable_data=seen,
    )


def upcoming_due_count(cards: Iterable[CardRecord], today: date) -> int:
    """Cards due within the coarse seven-day summary window.

    Independent of the alert thresholds in ``alerts``.
    """
    count = 0
    for card in cards:
        days = days_until(card.due_date, today)
        if 0 < days <= UPCOMING_BADGE_DAYS:
            count += 1
    return count


def active_offer_count(offers: Iterable[OfferRecord]) -> int:
    return sum(1 for offer in offers if offer.is_active)


def due_status(days_until_due: int) -> DueStatus:
    if days_until_due < 0:
        return DueStatus.overdue
    if days_until_due <= DUE_SOON_DAYS:
        return DueStatus.due_soon
    return DueStatus.upcoming


def due_date_schedule(cards: Iterable[CardRecord], today: date) -> DueDateSchedule:
    entries = []
    for card in cards:
        days = days_until(card.due_date, today)
        entries.append(DueDateEntry(card=card, days_until_due=days, status=due_status(days)))
    entries.sort(key=lambda e: (e.status != DueStatus.overdue, e.days_until_due))
    return DueDateSchedule(
        entries=entries,
        overdue_count=sum(1 for e in entries if e.status == DueStatus.overdue),
        due_soon_count=sum(1 for e in entries if e.status == DueStatus.due_soon),
    )


def spending_summary(
    cards: Sequence[CardRecord],
    expenses: Sequence[ExpenseRecord],
    offers: Sequence[OfferRecord],
    *,
    period_days: int,
    today: date,
) -> SpendingSummary:
    period_expenses = filtered_expenses(expenses, period_days, today)
    return SpendingSummary(
        period_days=period_days,
        totals=portfolio_totals(cards),
        total_expenses=expense_total(expenses),
        period_spending=expense_total(period_expenses),
        active_offers=active_offer_count(offers),
        upcoming_due_dates=upcoming_due_count(cards, today),
        month_over_month=month_over_month(expenses, today),
        category_breakdown=category_breakdown(period_expenses),
    )


def analytics_overview(
    cards: Sequence[CardRecord],
    expenses: Sequence[ExpenseRecord],
    *,
    period_days: int,
    today: date,
) -> AnalyticsOverview:
    period_expenses = filtered_expenses(expenses, period_days, today)
    spent = expense_total(period_expenses)
    count = len(period_expenses)
    return AnalyticsOverview(
        period_days=period_days,
        total_spending=spent,
        transaction_count=count,
        average_transaction=(spent / count) if count else ZERO,
        utilization_rate=portfolio_totals(cards).utilization_rate,
        top_spending_card=top_spending_card(cards, expenses, period_days, today),
        category_breakdown=category_breakdown(expenses),
        monthly_spending=monthly_spending(expenses, today),
        cards=card_breakdown(cards, expenses, period_days, today),
    )
