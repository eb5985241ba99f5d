from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from categories import ExpenseCategory, RewardType
from database import Base
from models import Expense, Offer
from schemas import CardIn, CardUpdate, ExpenseIn, ExpenseUpdate, OfferIn, OfferUpdate
from services import (
    CardService,
    ExpenseService,
    OfferService,
    load_snapshot,
    user_ids_with_cards,
)


def make_session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def _card(name: str = "Regalia", **overrides) -> CardIn:
    data = dict(
        name=name,
        bank="HDFC Bank",
        last_four_digits="4321",
        credit_limit=Decimal("100000"),
        current_balance=Decimal("25000"),
        due_date=date(2026, 11, 5),
        min_payment=Decimal("1250"),
        reward_type=RewardType.cashback,
    )
    data.update(overrides)
    return CardIn(**data)


def _expense(card_id: int, amount: str = "450.00", **overrides) -> ExpenseIn:
    data = dict(
        card_id=card_id,
        amount=Decimal(amount),
        description="Dinner",
        category=ExpenseCategory.dining,
        date=date(2026, 10, 12),
        merchant="Toit",
    )
    data.update(overrides)
    return ExpenseIn(**data)


def _offer(card_id: int, **overrides) -> OfferIn:
    data = dict(
        card_id=card_id,
        title="5% on fuel",
        category=ExpenseCategory.fuel,
        cashback=Decimal("5"),
        expiry_date=date(2026, 10, 25),
    )
    data.update(overrides)
    return OfferIn(**data)


def _fail(*_args, **_kwargs):
    raise OperationalError("COMMIT", {}, Exception("disk I/O error"))


def test_service_requires_a_user() -> None:
    with make_session() as session:
        with pytest.raises(ValueError):
            CardService(session, "")


def test_card_crud_round_trip() -> None:
    with make_session() as session:
        cards = CardService(session, "u1")
        created = cards.create(_card())
        assert created is not None
        assert created.reward_type == RewardType.cashback
        assert created.color == "#ef4444"

        updated = cards.update(created.id, CardUpdate(current_balance=Decimal("0")))
        assert updated.current_balance == Decimal("0")
        assert updated.name == "Regalia"

        assert [c.id for c in cards.list()] == [created.id]
        assert cards.delete(created.id) is True
        assert cards.list() == []
        assert cards.get(created.id) is None


def test_cards_are_scoped_to_their_owner() -> None:
    with make_session() as session:
        mine = CardService(session, "u1").create(_card())
        other = CardService(session, "u2")

        assert other.list() == []
        assert other.get(mine.id) is None
        assert other.update(mine.id, CardUpdate(name="Stolen")) is None
        assert other.delete(mine.id) is False
        assert CardService(session, "u1").get(mine.id).name == "Regalia"


def test_expense_on_another_users_card_is_rejected() -> None:
    with make_session() as session:
        card = CardService(session, "u1").create(_card())

        with pytest.raises(ValueError):
            ExpenseService(session, "u2").create(_expense(card.id))
        assert session.scalars(select(Expense)).all() == []


def test_expense_update_can_clear_merchant_and_move_cards() -> None:
    with make_session() as session:
        cards = CardService(session, "u1")
        first = cards.create(_card("First"))
        second = cards.create(_card("Second"))
        expenses = ExpenseService(session, "u1")
        expense = expenses.create(_expense(first.id))
        assert expense.merchant == "Toit"

        moved = expenses.update(
            expense.id, ExpenseUpdate(card_id=second.id, merchant=None)
        )
        assert moved.card_id == second.id
        assert moved.merchant is None
        assert moved.description == "Dinner"

        foreign = CardService(session, "u2").create(_card("Foreign"))
        with pytest.raises(ValueError):
            expenses.update(expense.id, ExpenseUpdate(card_id=foreign.id))


def test_expenses_listed_newest_first_and_filtered_by_card() -> None:
    with make_session() as session:
        cards = CardService(session, "u1")
        first = cards.create(_card("First"))
        second = cards.create(_card("Second"))
        expenses = ExpenseService(session, "u1")
        older = expenses.create(_expense(first.id, date=date(2026, 10, 1)))
        newer = expenses.create(_expense(second.id, date=date(2026, 10, 9)))

        assert [e.id for e in expenses.list()] == [newer.id, older.id]
        assert [e.id for e in expenses.list(card_id=first.id)] == [older.id]


def test_offers_are_scoped_through_card_ownership() -> None:
    with make_session() as session:
        card = CardService(session, "u1").create(_card())
        offers = OfferService(session, "u1")
        offer = offers.create(_offer(card.id))

        intruder = OfferService(session, "u2")
        assert intruder.list() == []
        assert intruder.toggle_active(offer.id) is None
        assert intruder.delete(offer.id) is False
        with pytest.raises(ValueError):
            intruder.create(_offer(card.id))

        assert [o.id for o in offers.list(card_id=card.id)] == [offer.id]


def test_toggle_and_update_offer() -> None:
    with make_session() as session:
        card = CardService(session, "u1").create(_card())
        offers = OfferService(session, "u1")
        offer = offers.create(_offer(card.id, min_spend=Decimal("2000")))
        assert offer.is_active is True

        toggled = offers.toggle_active(offer.id)
        assert toggled.is_active is False

        updated = offers.update(offer.id, OfferUpdate(min_spend=None, cashback=Decimal("7.5")))
        assert updated.min_spend is None
        assert updated.cashback == Decimal("7.50")
        assert updated.is_active is False


def test_deleting_card_removes_its_expenses_and_offers() -> None:
    with make_session() as session:
        card = CardService(session, "u1").create(_card())
        ExpenseService(session, "u1").create(_expense(card.id))
        OfferService(session, "u1").create(_offer(card.id))

        assert CardService(session, "u1").delete(card.id) is True

        assert session.scalars(select(Expense)).all() == []
        assert session.scalars(select(Offer)).all() == []


def test_failed_write_rolls_back_and_returns_none(monkeypatch) -> None:
    with make_session() as session:
        monkeypatch.setattr(session, "commit", _fail)

        assert CardService(session, "u1").create(_card()) is None

        monkeypatch.undo()
        assert CardService(session, "u1").list() == []


def test_failed_read_returns_empty_list(monkeypatch) -> None:
    with make_session() as session:
        CardService(session, "u1").create(_card())
        monkeypatch.setattr(session, "scalars", _fail)

        assert CardService(session, "u1").list() == []
        assert user_ids_with_cards(session) == []


def test_load_snapshot_reads_one_user() -> None:
    with make_session() as session:
        mine = CardService(session, "u1").create(_card())
        ExpenseService(session, "u1").create(_expense(mine.id))
        OfferService(session, "u1").create(_offer(mine.id))
        theirs = CardService(session, "u2").create(_card("Other"))
        OfferService(session, "u2").create(_offer(theirs.id))

        snapshot = load_snapshot(session, "u1")
        assert snapshot.user_id == "u1"
        assert [c.id for c in snapshot.cards] == [mine.id]
        assert len(snapshot.expenses) == 1
        assert [o.card_id for o in snapshot.offers] == [mine.id]
        assert not snapshot.is_empty

        assert load_snapshot(session, "u3").is_empty
        assert sorted(user_ids_with_cards(session)) == ["u1", "u2"]
