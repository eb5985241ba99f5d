from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import CreditCard, Expense, Offer
from records import CardRecord, ExpenseRecord, OfferRecord, Snapshot
from schemas import (
    CardIn,
    CardUpdate,
    ExpenseIn,
    ExpenseUpdate,
    OfferIn,
    OfferUpdate,
)

logger = logging.getLogger(__name__)


def _column_value(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    return value


def _apply_changes(
    row: object, changes: BaseModel, nullable: frozenset[str] = frozenset()
) -> None:
    for field, value in changes.model_dump(exclude_unset=True).items():
        if value is None and field not in nullable:
            continue
        setattr(row, field, _column_value(value))


class _UserScopedService:
    """Shared plumbing for the per-user data-access services.

    Store failures never escape: reads come back empty, writes come back as
    ``None``/``False`` after a rollback, and the failure is logged. Input that
    references another user's records raises ``ValueError``.
    """

    entity = "record"

    def __init__(self, session: Session, user_id: str) -> None:
        if not user_id:
            raise ValueError("A signed-in user is required")
        self.session = session
        self.user_id = user_id

    def _read(self, stmt: Select) -> list:
        try:
            return list(self.session.scalars(stmt).all())
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception(
                f"store_read_failed: entity={self.entity} user={self.user_id}"
            )
            return []

    def _commit(self, action: str) -> bool:
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception(
                f"store_write_failed: entity={self.entity} action={action} user={self.user_id}"
            )
            return False
        return True

    def _owned_card(self, card_id: int) -> CreditCard:
        card = self.session.get(CreditCard, card_id)
        if not card or card.user_id != self.user_id:
            raise ValueError("Card not found")
        return card


class CardService(_UserScopedService):
    entity = "card"

    def _get(self, card_id: int) -> Optional[CreditCard]:
        rows = self._read(
            select(CreditCard).where(
                CreditCard.user_id == self.user_id, CreditCard.id == card_id
            )
        )
        return rows[0] if rows else None

    def list(self) -> list[CardRecord]:
        stmt = (
            select(CreditCard)
            .where(CreditCard.user_id == self.user_id)
            .order_by(CreditCard.created_at.desc(), CreditCard.id.desc())
        )
        return [CardRecord.from_model(card) for card in self._read(stmt)]

    def get(self, card_id: int) -> Optional[CardRecord]:
        card = self._get(card_id)
        return CardRecord.from_model(card) if card else None

    def create(self, data: CardIn) -> Optional[CardRecord]:
        card = CreditCard(
            user_id=self.user_id,
            **{k: _column_value(v) for k, v in data.model_dump().items()},
        )
        self.session.add(card)
        if not self._commit("create"):
            return None
        self.session.refresh(card)
        logger.info(f"card_created: user={self.user_id} card={card.id}")
        return CardRecord.from_model(card)

    def update(self, card_id: int, data: CardUpdate) -> Optional[CardRecord]:
        card = self._get(card_id)
        if not card:
            return None
        _apply_changes(card, data)
        if not self._commit("update"):
            return None
        self.session.refresh(card)
        return CardRecord.from_model(card)

    def delete(self, card_id: int) -> bool:
        card = self._get(card_id)
        if not card:
            return False
        self.session.delete(card)
        if not self._commit("delete"):
            return False
        logger.info(f"card_deleted: user={self.user_id} card={card_id}")
        return True


class ExpenseService(_UserScopedService):
    entity = "expense"
    nullable_fields = frozenset({"merchant"})

    def _get(self, expense_id: int) -> Optional[Expense]:
        rows = self._read(
            select(Expense).where(
                Expense.user_id == self.user_id, Expense.id == expense_id
            )
        )
        return rows[0] if rows else None

    def list(self, card_id: Optional[int] = None) -> list[ExpenseRecord]:
        stmt = select(Expense).where(Expense.user_id == self.user_id)
        if card_id is not None:
            stmt = stmt.where(Expense.card_id == card_id)
        stmt = stmt.order_by(
            Expense.date.desc(), Expense.created_at.desc(), Expense.id.desc()
        )
        return [ExpenseRecord.from_model(row) for row in self._read(stmt)]

    def create(self, data: ExpenseIn) -> Optional[ExpenseRecord]:
        self._owned_card(data.card_id)
        expense = Expense(
            user_id=self.user_id,
            card_id=data.card_id,
            amount=data.amount,
            description=data.description.strip(),
            category=data.category.value,
            date=data.date,
            merchant=(data.merchant or "").strip() or None,
        )
        self.session.add(expense)
        if not self._commit("create"):
            return None
        self.session.refresh(expense)
        return ExpenseRecord.from_model(expense)

    def update(self, expense_id: int, data: ExpenseUpdate) -> Optional[ExpenseRecord]:
        expense = self._get(expense_id)
        if not expense:
            return None
        if data.card_id is not None and data.card_id != expense.card_id:
            self._owned_card(data.card_id)
        _apply_changes(expense, data, self.nullable_fields)
        if not self._commit("update"):
            return None
        self.session.refresh(expense)
        return ExpenseRecord.from_model(expense)

    def delete(self, expense_id: int) -> bool:
        expense = self._get(expense_id)
        if not expense:
            return False
        self.session.delete(expense)
        return self._commit("delete")


class OfferService(_UserScopedService):
    entity = "offer"
    nullable_fields = frozenset({"min_spend"})

    def _owned_offers(self) -> Select:
        return (
            select(Offer)
            .join(CreditCard, CreditCard.id == Offer.card_id)
            .where(CreditCard.user_id == self.user_id)
        )

    def _get(self, offer_id: int) -> Optional[Offer]:
        rows = self._read(self._owned_offers().where(Offer.id == offer_id))
        return rows[0] if rows else None

    def list(self, card_id: Optional[int] = None) -> list[OfferRecord]:
        stmt = self._owned_offers()
        if card_id is not None:
            stmt = stmt.where(Offer.card_id == card_id)
        stmt = stmt.order_by(Offer.created_at.desc(), Offer.id.desc())
        return [OfferRecord.from_model(row) for row in self._read(stmt)]

    def create(self, data: OfferIn) -> Optional[OfferRecord]:
        self._owned_card(data.card_id)
        offer = Offer(**{k: _column_value(v) for k, v in data.model_dump().items()})
        self.session.add(offer)
        if not self._commit("create"):
            return None
        self.session.refresh(offer)
        return OfferRecord.from_model(offer)

    def update(self, offer_id: int, data: OfferUpdate) -> Optional[OfferRecord]:
        offer = self._get(offer_id)
        if not offer:
            return None
        if data.card_id is not None and data.card_id != offer.card_id:
            self._owned_card(data.card_id)
        _apply_changes(offer, data, self.nullable_fields)
        if not self._commit("update"):
            return None
        self.session.refresh(offer)
        return OfferRecord.from_model(offer)

    def toggle_active(self, offer_id: int) -> Optional[OfferRecord]:
        offer = self._get(offer_id)
        if not offer:
            return None
        return self.update(offer_id, OfferUpdate(is_active=not offer.is_active))

    def delete(self, offer_id: int) -> bool:
        offer = self._get(offer_id)
        if not offer:
            return False
        self.session.delete(offer)
        return self._commit("delete")


def load_snapshot(session: Session, user_id: str) -> Snapshot:
    """Read everything the dashboard derives from, for one user."""
    return Snapshot(
        user_id=user_id,
        cards=tuple(CardService(session, user_id).list()),
        expenses=tuple(ExpenseService(session, user_id).list()),
        offers=tuple(OfferService(session, user_id).list()),
    )


def user_ids_with_cards(session: Session) -> list[str]:
    """Every user that owns at least one card. Used by the reminder sweep."""
    try:
        return list(session.scalars(select(CreditCard.user_id).distinct()).all())
    except SQLAlchemyError:
        session.rollback()
        logger.exception("store_read_failed: entity=card action=list_users")
        return []
