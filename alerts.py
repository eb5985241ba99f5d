"""Notification list derived from cards and offers.

Notifications are never stored. They are rebuilt from the current snapshot on
every load, and their ids depend only on the rule that fired and the source
record, so a caller-held dismissed set keeps working across reloads.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import AbstractSet, Iterable, Optional, Sequence

from analytics import card_utilization
from periods import days_until
from records import CardRecord, OfferRecord

DUE_SOON_DAYS = 3
OFFER_EXPIRY_DAYS = 7
OFFER_URGENT_DAYS = 3
UTILIZATION_WARNING = 80.0
UTILIZATION_CRITICAL = 90.0


class NotificationKind(str, Enum):
    due_date = "due_date"
    high_utilization = "high_utilization"
    offer_expiry = "offer_expiry"


class Priority(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.high: 3, Priority.medium: 2, Priority.low: 1}


@dataclass(frozen=True)
class Notification:
    id: str
    kind: NotificationKind
    title: str
    message: str
    priority: Priority
    created_at: datetime
    card_id: Optional[int] = None
    offer_id: Optional[int] = None


def format_amount(amount: Decimal, symbol: str = "₹") -> str:
    if amount == amount.to_integral_value():
        return f"{symbol}{amount.to_integral_value()}"
    return f"{symbol}{amount.quantize(Decimal('0.01'))}"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _due_notification(
    card: CardRecord, today: date, now: datetime, symbol: str
) -> Optional[Notification]:
    days = days_until(card.due_date, today)
    payment = format_amount(card.min_payment, symbol)
    if days <= 0:
        return Notification(
            id=f"due-overdue-{card.id}",
            kind=NotificationKind.due_date,
            title="Payment Overdue",
            message=(
                f"Your {card.name} payment is {_plural(abs(days), 'day')} overdue. "
                f"Pay {payment} immediately to avoid late fees."
            ),
            priority=Priority.high,
            created_at=now,
            card_id=card.id,
        )
    if days <= DUE_SOON_DAYS:
        return Notification(
            id=f"due-soon-{card.id}",
            kind=NotificationKind.due_date,
            title="Payment Due Soon",
            message=f"Your {card.name} payment of {payment} is due in {_plural(days, 'day')}.",
            priority=Priority.high if days == 1 else Priority.medium,
            created_at=now,
            card_id=card.id,
        )
    return None


def _utilization_notification(card: CardRecord, now: datetime) -> Optional[Notification]:
    utilization = card_utilization(card)
    if utilization < UTILIZATION_WARNING:
        return None
    return Notification(
        id=f"utilization-{card.id}",
        kind=NotificationKind.high_utilization,
        title="High Credit Utilization",
        message=(
            f"Your {card.name} is {utilization:.1f}% utilized. "
            "Consider paying down the balance to improve your credit score."
        ),
        priority=Priority.high if utilization >= UTILIZATION_CRITICAL else Priority.medium,
        created_at=now,
        card_id=card.id,
    )


def _offer_notification(
    offer: OfferRecord,
    cards_by_id: dict[int, CardRecord],
    today: date,
    now: datetime,
) -> Optional[Notification]:
    if not offer.is_active:
        return None
    days = days_until(offer.expiry_date, today)
    if days <= 0 or days > OFFER_EXPIRY_DAYS:
        return None
    card = cards_by_id.get(offer.card_id)
    card_name = card.name if card else "your card"
    return Notification(
        id=f"offer-expiry-{offer.id}",
        kind=NotificationKind.offer_expiry,
        title="Offer Expiring Soon",
        message=(
            f"{offer.title} on {card_name} expires in {_plural(days, 'day')}. "
            f"Use it before {offer.expiry_date.isoformat()}."
        ),
        priority=Priority.high if days <= OFFER_URGENT_DAYS else Priority.medium,
        created_at=now,
        card_id=offer.card_id,
        offer_id=offer.id,
    )


def derive_notifications(
    cards: Sequence[CardRecord],
    offers: Iterable[OfferRecord],
    *,
    today: date,
    now: Optional[datetime] = None,
    currency_symbol: str = "₹",
) -> list[Notification]:
    """Build the prioritized notification list for one user's records.

    ``now`` stamps every notification from this pass; it defaults to midnight
    of ``today`` so the output is fully determined by the arguments.

    Discovery order is due dates over all cards, then utilization over all
    cards, then offers. The final sort is stable, so notifications of equal
    priority (and equal ``created_at``, which is always the case within one
    pass) stay in discovery order.
    """
    stamp = now or datetime.combine(today, time.min)
    found: list[Notification] = []

    for card in cards:
        notification = _due_notification(card, today, stamp, currency_symbol)
        if notification:
            found.append(notification)

    for card in cards:
        notification = _utilization_notification(card, stamp)
        if notification:
            found.append(notification)

    cards_by_id = {card.id: card for card in cards}
    for offer in offers:
        notification = _offer_notification(offer, cards_by_id, today, stamp)
        if notification:
            found.append(notification)

    found.sort(key=lambda n: n.created_at, reverse=True)
    found.sort(key=lambda n: n.priority.rank, reverse=True)
    return found


def visible_notifications(
    notifications: Iterable[Notification], dismissed: AbstractSet[str]
) -> list[Notification]:
    return [n for n in notifications if n.id not in dismissed]
