import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        session_secret: str,
        session_max_age_hours: int,
        currency_symbol: str,
        default_period_days: int,
        reminder_sweep_enabled: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.session_secret = session_secret
        self.session_max_age_hours = session_max_age_hours
        self.currency_symbol = currency_symbol
        self.default_period_days = default_period_days
        self.reminder_sweep_enabled = reminder_sweep_enabled


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("CARDS_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "cards.db"
    database_url = os.getenv("CARDS_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("CARDS_TIMEZONE", "Asia/Kolkata")
    session_secret = os.getenv(
        "CARDS_SESSION_SECRET",
        "5f0c1d7a9e24b86b3c4a1f29e07d5b8c6a31e9f4d2b7c08a5e6f13d9b2a4c7e1",
    )
    session_max_age_hours = int(os.getenv("CARDS_SESSION_MAX_AGE_HOURS", "24"))
    currency_symbol = os.getenv("CARDS_CURRENCY_SYMBOL", "₹")
    default_period_days = int(os.getenv("CARDS_DEFAULT_PERIOD_DAYS", "30"))
    reminder_sweep_enabled = _env_flag("CARDS_REMINDER_SWEEP", "1")
    return Settings(
        database_url=database_url,
        timezone=timezone,
        session_secret=session_secret,
        session_max_age_hours=session_max_age_hours,
        currency_symbol=currency_symbol,
        default_period_days=default_period_days,
        reminder_sweep_enabled=reminder_sweep_enabled,
    )
