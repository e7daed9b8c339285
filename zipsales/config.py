# zipsales/config.py
"""Environment-driven settings.

Values come from the process environment, optionally seeded from a `.env`
file. `Settings.from_env()` is read once by the composition root.
"""
import os
from dataclasses import dataclass
from datetime import date
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def normalize_database_url(url: Optional[str]) -> Optional[str]:
    # SQLAlchemy 2.x doesn't accept 'postgres://'
    if url and url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg2://", 1)
    return url


@dataclass
class Settings:
    database_url: Optional[str] = None
    db_pool_size: int = 5
    db_max_overflow: int = 10
    attom_api_key: str = ""
    attom_base_url: str = ""
    attom_page_size: int = 100
    attom_timeout: float = 30.0
    cache_ttl_days: int = 7
    default_start_date: date = date(2022, 1, 1)
    fetch_overlap_days: int = 0
    default_page_limit: int = 12
    refresh_interval_hours: float = 0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=normalize_database_url(os.getenv("POSTGRES_URL")),
            db_pool_size=int(os.getenv("DB_POOL_SIZE", 5)),
            db_max_overflow=int(os.getenv("DB_MAX_OVERFLOW", 10)),
            attom_api_key=os.getenv("ATTOM_API_KEY", ""),
            attom_base_url=os.getenv("ATTOM_BASE_URL", "").rstrip("/"),
            attom_page_size=int(os.getenv("ATTOM_PAGE_SIZE", 100)),
            attom_timeout=float(os.getenv("ATTOM_TIMEOUT", 30)),
            cache_ttl_days=int(os.getenv("CACHE_TTL_DAYS", 7)),
            default_start_date=date.fromisoformat(os.getenv("DEFAULT_START_DATE", "2022-01-01")),
            fetch_overlap_days=int(os.getenv("FETCH_OVERLAP_DAYS", 0)),
            default_page_limit=int(os.getenv("DEFAULT_PAGE_LIMIT", 12)),
            refresh_interval_hours=float(os.getenv("REFRESH_INTERVAL_HOURS", 0)),
        )
