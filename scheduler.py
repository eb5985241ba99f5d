import logging
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import sessionmaker

from alerts import Priority, derive_notifications
from config import get_settings
from database import SessionLocal, session_scope
from services import load_snapshot, user_ids_with_cards


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def run_reminder_sweep(
    factory: sessionmaker = SessionLocal, *, now: Optional[datetime] = None
) -> dict[str, int]:
    """Derive alerts for every user with cards and log what is pending.

    Returns high-priority counts per user. Nothing is stored or sent.
    """
    settings = get_settings()
    current = now or datetime.now(ZoneInfo(settings.timezone))
    today = current.date()
    counts: dict[str, int] = {}
    with session_scope(factory) as session:
        user_ids = user_ids_with_cards(session)
        for user_id in user_ids:
            snapshot = load_snapshot(session, user_id)
            notifications = derive_notifications(
                snapshot.cards,
                snapshot.offers,
                today=today,
                currency_symbol=settings.currency_symbol,
            )
            urgent = sum(1 for n in notifications if n.priority == Priority.high)
            counts[user_id] = urgent
            if notifications:
                logger.info(
                    f"reminder_sweep: user={user_id} total={len(notifications)} high={urgent}"
                )
    return counts


class SchedulerManager:
    def __init__(self) -> None:
        settings = get_settings()
        self.enabled = settings.reminder_sweep_enabled
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_job(self, source: str = "manual") -> None:
        logger.info(f"scheduler_run: source={source}")
        counts = run_reminder_sweep()
        logger.info(
            f"scheduler_run: source={source} users={len(counts)} high_priority={sum(counts.values())}"
        )

    def start(self) -> None:
        if not self.enabled:
            logger.info("Reminder sweep disabled")
            return
        self._run_job("startup")

        trigger = CronTrigger(hour=8, minute=0)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["daily_08:00"],
            id="reminder_daily",
            replace_existing=True,
            misfire_grace_time=3600,
        )

        self.scheduler.start()
        logger.info("Scheduler started with daily 08:00 reminder sweep")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
