from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo

PRESET_PERIOD_DAYS = (7, 30, 90, 365)


@dataclass(frozen=True)
class Period:
    days: int
    start: date
    end: date

    def contains(self, d: date) -> bool:
        # No upper bound: future-dated expenses still count toward the period.
        return d >= self.start


def parse_period_days(raw: Union[str, int, None], default: int = 30) -> int:
    if raw is None or raw == "":
        return default
    try:
        days = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Period must be a whole number of days, got {raw!r}") from exc
    if days <= 0:
        raise ValueError("Period must be at least one day")
    return days


def trailing_period(days: int, today: date) -> Period:
    if days <= 0:
        raise ValueError("Period must be at least one day")
    return Period(days, today - timedelta(days=days), today)


def month_start(d: date) -> date:
    return d.replace(day=1)


def add_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def days_until(target: date, today: date) -> int:
    return (target - today).days


def today_in(timezone: str, *, now: Optional[datetime] = None) -> date:
    current = now or datetime.now(ZoneInfo(timezone))
    if current.tzinfo is not None:
        current = current.astimezone(ZoneInfo(timezone))
    return current.date()
