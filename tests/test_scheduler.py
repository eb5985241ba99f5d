from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import init_db, session_scope
from scheduler import SchedulerManager, run_reminder_sweep
from schemas import CardIn
from services import CardService


def make_factory() -> sessionmaker:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def _card(due: date, balance: str) -> CardIn:
    return CardIn(
        name="Regalia",
        bank="HDFC Bank",
        last_four_digits="4321",
        credit_limit=Decimal("100000"),
        current_balance=Decimal(balance),
        due_date=due,
        min_payment=Decimal("2500"),
    )


def test_reminder_sweep_counts_high_priority_alerts_per_user() -> None:
    factory = make_factory()
    with session_scope(factory) as session:
        CardService(session, "u1").create(_card(date(2026, 10, 12), "96000"))
        CardService(session, "u2").create(_card(date(2026, 12, 1), "1000"))

    counts = run_reminder_sweep(
        factory, now=datetime(2026, 10, 18, 8, 0, tzinfo=ZoneInfo("Asia/Kolkata"))
    )

    assert counts == {"u1": 2, "u2": 0}


def test_disabled_scheduler_does_not_start() -> None:
    manager = SchedulerManager()
    manager.enabled = False
    manager.start()

    assert not manager.scheduler.running
    manager.stop()
