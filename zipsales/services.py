# zipsales/services.py
"""Query side: validation, pagination and the sales page served to clients."""
import re
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from . import crud
from .errors import StoreError, UpstreamError, ValidationError
from .schemas import Pagination, SaleFilters, SaleRecord, SalesPage
from .sync import SyncEngine
from .upstream import sort_by_sale_date
from .utils import logger, retry

MAX_PAGE_LIMIT = 100
_ZIPCODE_RE = re.compile(r"^[0-9]{5}$")


def validate_zipcode(zipcode: Optional[str]) -> str:
    if not zipcode:
        raise ValidationError("Zipcode is required")
    if not _ZIPCODE_RE.match(zipcode):
        raise ValidationError("Invalid zipcode format. Must be 5 digits.")
    return zipcode


def clamp_pagination(page: Optional[int], limit: Optional[int], default_limit: int = 12) -> Tuple[int, int]:
    page = 1 if page is None else max(1, page)
    limit = default_limit if limit is None else min(max(1, limit), MAX_PAGE_LIMIT)
    return page, limit


def build_pagination(page: int, limit: int, total_count: int) -> Pagination:
    return Pagination(
        current_page=page,
        total_pages=-(-total_count // limit),
        total_count=total_count,
        limit=limit,
    )


def _in_range(value, low, high) -> bool:
    if low is None and high is None:
        return True
    if value is None:
        return False
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


def _sale_year(record: SaleRecord) -> Optional[int]:
    if not record.sale_date:
        return None
    try:
        return int(record.sale_date[:4])
    except ValueError:
        return None


def matches_filters(record: SaleRecord, filters: Optional[SaleFilters]) -> bool:
    if filters is None:
        return True
    return (
        _in_range(record.price, filters.min_price, filters.max_price)
        and _in_range(record.bedrooms, filters.min_beds, filters.max_beds)
        and _in_range(record.sqft, filters.min_sqft, filters.max_sqft)
        and _in_range(record.year_built, filters.year_built_from, filters.year_built_to)
        and _in_range(_sale_year(record), filters.year_of_sale_from, filters.year_of_sale_to)
    )


def filter_records(records: List[SaleRecord], filters: Optional[SaleFilters]) -> List[SaleRecord]:
    return [r for r in records if matches_filters(r, filters)]


def paginate(records: List[SaleRecord], page: int, limit: int) -> SalesPage:
    skip = (page - 1) * limit
    return SalesPage(
        properties=records[skip:skip + limit],
        pagination=build_pagination(page, limit, len(records)),
    )


def query_page(db: Session, zipcode: str, filters: Optional[SaleFilters], page: int, limit: int) -> SalesPage:
    try:
        records, total = crud.query_sales(db, zipcode, filters, skip=(page - 1) * limit, limit=limit)
    except StoreError as e:
        logger.warning("Error reading cached sales for %s: %s", zipcode, e)
        return SalesPage(properties=[], pagination=build_pagination(1, limit, 0))
    return SalesPage(properties=records, pagination=build_pagination(page, limit, total))


def get_sales_page(db: Session, engine: SyncEngine, zipcode: str, filters: Optional[SaleFilters] = None,
                   page: Optional[int] = None, limit: Optional[int] = None, default_limit: int = 12) -> SalesPage:
    """Sync `zipcode` if stale, then return one filtered page of its sales."""
    zipcode = validate_zipcode(zipcode)
    page, limit = clamp_pagination(page, limit, default_limit)
    result = engine.sync(db, zipcode)
    if not result.stored:
        # the merge failed; serve what was just fetched
        logger.info("Serving %d uncached sales for %s from memory", len(result.records), zipcode)
        return paginate(sort_by_sale_date(filter_records(result.records, filters)), page, limit)
    return query_page(db, zipcode, filters, page, limit)


def refresh_stale_zipcodes(db: Session, engine: SyncEngine, tries: int = 3, delay: float = 5) -> int:
    """Re-sync every tracked zipcode whose last fetch is older than the TTL."""
    sync = retry(UpstreamError, tries=tries, delay=delay)(engine.sync)
    stale = [m.zipcode for m in crud.list_stale_metadata(db, engine.stale_cutoff())]
    refreshed = 0
    for zipcode in stale:
        try:
            sync(db, zipcode)
            refreshed += 1
        except Exception as e:
            logger.exception("Scheduled refresh failed for %s: %s", zipcode, e)
    logger.info("Refreshed %d of %d stale zipcodes", refreshed, len(stale))
    return refreshed
