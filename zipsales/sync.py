# zipsales/sync.py
"""Per-zipcode cache synchronization.

A sync walks CHECK_METADATA -> (CACHE_FRESH | NEEDS_FETCH) and, when the
cache is stale, FETCHING -> MERGING -> DONE. Only the window since the last
successful sync is requested from upstream; the merge is an upsert by id,
so overlapping windows and concurrent syncs of the same zipcode are safe.
"""
import enum
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from . import crud
from .errors import StoreError
from .schemas import SaleRecord
from .upstream import SalesSource
from .utils import logger


class SyncState(str, enum.Enum):
    CHECK_METADATA = "check_metadata"
    CACHE_FRESH = "cache_fresh"
    NEEDS_FETCH = "needs_fetch"
    FETCHING = "fetching"
    MERGING = "merging"
    DONE = "done"


@dataclass
class SyncResult:
    zipcode: str
    state: SyncState
    upstream_called: bool = False
    records: List[SaleRecord] = field(default_factory=list)
    inserted_count: int = 0
    stored: bool = True
    window: Optional[Tuple[date, date]] = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo; everything is written in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SyncEngine:
    def __init__(
        self,
        source: SalesSource,
        ttl: timedelta = timedelta(days=7),
        default_start_date: date = date(2022, 1, 1),
        overlap: timedelta = timedelta(0),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.source = source
        self.ttl = ttl
        self.default_start_date = default_start_date
        self.overlap = overlap
        self.clock = clock

    @classmethod
    def from_settings(cls, settings, source: SalesSource, clock: Callable[[], datetime] = utcnow) -> "SyncEngine":
        return cls(
            source,
            ttl=timedelta(days=settings.cache_ttl_days),
            default_start_date=settings.default_start_date,
            overlap=timedelta(days=settings.fetch_overlap_days),
            clock=clock,
        )

    def stale_cutoff(self, now: Optional[datetime] = None) -> datetime:
        return (now or self.clock()) - self.ttl

    def _last_fetch(self, db: Session, zipcode: str) -> Optional[datetime]:
        try:
            metadata = crud.get_metadata(db, zipcode)
        except StoreError as e:
            logger.warning("Could not read fetch metadata for %s, treating as unsynced: %s", zipcode, e)
            return None
        if metadata is None:
            return None
        return as_utc(metadata.last_fetch_date)

    def fetch_window(self, last_fetch: Optional[datetime], now: datetime) -> Tuple[date, date]:
        if last_fetch is None:
            start = self.default_start_date
        else:
            start = (last_fetch - self.overlap).date()
        return start, now.date()

    def _enter(self, zipcode: str, state: SyncState):
        logger.debug("sync %s -> %s", zipcode, state.value)

    def sync(self, db: Session, zipcode: str) -> SyncResult:
        """Bring the cache for `zipcode` up to date.

        Raises `UpstreamError` / `ConfigurationError` from the source without
        touching the store. A failed merge is logged and reported through
        `SyncResult.stored`; the fetched records are still returned.
        """
        now = self.clock()
        self._enter(zipcode, SyncState.CHECK_METADATA)
        last_fetch = self._last_fetch(db, zipcode)
        if last_fetch is not None and last_fetch >= self.stale_cutoff(now):
            self._enter(zipcode, SyncState.CACHE_FRESH)
            logger.info("Cache fresh for %s (last fetch %s)", zipcode, last_fetch.isoformat())
            return SyncResult(zipcode, SyncState.CACHE_FRESH)

        self._enter(zipcode, SyncState.NEEDS_FETCH)
        start, end = self.fetch_window(last_fetch, now)
        kind = "full" if last_fetch is None else "incremental"
        logger.info("Cache stale for %s, %s fetch %s..%s", zipcode, kind, start, end)
        self._enter(zipcode, SyncState.FETCHING)
        fetched = self.source.fetch_sales(zipcode, start, end)
        records = [r for r in fetched if crud.is_storable(r)]
        if len(records) < len(fetched):
            logger.warning("Dropped %d unstorable sales for %s", len(fetched) - len(records), zipcode)
        result = SyncResult(zipcode, SyncState.DONE, upstream_called=True, records=records, window=(start, end))

        self._enter(zipcode, SyncState.MERGING)
        try:
            result.inserted_count = crud.upsert_sales(db, records)
        except StoreError as e:
            logger.error("Failed to cache %d sales for %s: %s", len(records), zipcode, e)
            result.stored = False
            return result

        try:
            crud.record_fetch(db, zipcode, now, result.inserted_count)
        except StoreError as e:
            logger.warning("Failed to update fetch metadata for %s: %s", zipcode, e)
        self._enter(zipcode, SyncState.DONE)
        logger.info("Synced %s: %d fetched, %d new", zipcode, len(records), result.inserted_count)
        return result
