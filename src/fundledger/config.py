"""Runtime settings read from the environment."""

import os
from functools import lru_cache
from pathlib import Path

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class Settings:
    def __init__(
        self,
        database_path: str,
        log_level: str,
        week_start: int,
        page_size: int,
        currency: str,
    ) -> None:
        self.database_path = database_path
        self.log_level = log_level
        # 0 = Monday, matching date.weekday()
        self.week_start = week_start
        self.page_size = page_size
        self.currency = currency


def _default_database_path() -> str:
    db_dir = Path.home() / ".fundledger"
    db_dir.mkdir(exist_ok=True)
    return str(db_dir / "fundledger.db")


def parse_weekday(value: str) -> int:
    """Convert a weekday name (or 0-6) into a ``date.weekday()`` index."""
    text = value.strip().lower()
    if text.isdigit() and int(text) < 7:
        return int(text)
    if text not in WEEKDAYS:
        raise ValueError(f"Unknown weekday '{value}'. Expected one of: {', '.join(WEEKDAYS)}")
    return WEEKDAYS.index(text)


def parse_log_level(value: str) -> str:
    """Normalize a log level name to one of LOG_LEVELS."""
    level = value.strip().upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"Unknown log level '{value}'. Expected one of: {', '.join(LOG_LEVELS)}")
    return level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_path = os.getenv("FUNDLEDGER_DB_PATH") or _default_database_path()
    log_level = parse_log_level(os.getenv("FUNDLEDGER_LOG_LEVEL", "WARNING"))
    week_start = parse_weekday(os.getenv("FUNDLEDGER_WEEK_START", "monday"))
    page_size = int(os.getenv("FUNDLEDGER_PAGE_SIZE", "50"))
    currency = os.getenv("FUNDLEDGER_CURRENCY", "USD").upper()
    return Settings(
        database_path=database_path,
        log_level=log_level,
        week_start=week_start,
        page_size=page_size,
        currency=currency,
    )
