# zipsales/crud.py
"""Store operations for `Sale` and `ZipcodeMetadata`.

Sales are upserted by `sale_id` with a dialect `ON CONFLICT DO UPDATE`, so
re-ingesting the same upstream record overwrites it in place. Records that
break the storage invariant (no price, no zipcode, or unlocated at 0,0) are
dropped before they reach the table. Failures are rolled back and re-raised
as `StoreError`.
"""
import math
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, and_, func, delete, literal_column
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import StoreError
from .models import Sale, ZipcodeMetadata
from .schemas import SaleFilters, SaleRecord
from .utils import logger

# SaleRecord field -> Sale column, for everything except the id
_SALE_FIELDS = (
    "zipcode", "address_line", "address_detail", "price", "latitude", "longitude",
    "bedrooms", "bathrooms", "sqft", "lot_size", "year_built", "property_type",
    "sale_type", "land_use_code", "sale_date", "price_per_sqft", "price_per_bedroom",
    "last_modified",
)


def _insert(dialect: str):
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise StoreError(f"upsert not supported on dialect {dialect}")


def _dialect(db: Session) -> str:
    return db.get_bind().dialect.name


def _fail(db: Session, action: str, e: Exception):
    db.rollback()
    raise StoreError(f"{action} failed: {e}") from e


def _finite(value) -> bool:
    return value is not None and math.isfinite(value)


def is_storable(record: SaleRecord) -> bool:
    if not record.zipcode or not _finite(record.price):
        return False
    if not _finite(record.latitude) or not _finite(record.longitude):
        return False
    return not (record.latitude == 0 and record.longitude == 0)


def record_to_row(record: SaleRecord) -> Dict:
    row = {name: getattr(record, name) for name in _SALE_FIELDS}
    row["sale_id"] = record.id
    return row


def row_to_record(obj: Sale) -> SaleRecord:
    return SaleRecord(id=obj.sale_id, **{name: getattr(obj, name) for name in _SALE_FIELDS})


def upsert_sales_statement(dialect: str, rows: List[Dict]):
    table = Sale.__table__
    stmt = _insert(dialect)(table).values(rows)
    # copy all updatable columns from EXCLUDED, keep the surrogate key and created_at
    excluded = {c.name: stmt.excluded[c.name] for c in table.columns if c.name not in ("id", "sale_id", "created_at")}
    excluded["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(index_elements=["sale_id"], set_=excluded)
    if dialect == "postgresql":
        # xmax is 0 only on rows this statement inserted
        stmt = stmt.returning(literal_column("(xmax = 0)").label("inserted"))
    return stmt


def upsert_sales(db: Session, records: Iterable[SaleRecord]) -> int:
    """Insert or replace records by id; returns how many ids were new.

    On PostgreSQL the count comes from the upsert itself, so concurrent syncs
    of one zipcode never both count the same row. SQLite checks for existing
    ids inside the same transaction just before the upsert, so a writer on
    another connection landing between the two statements can be overcounted.
    """
    # last occurrence wins when a batch repeats an id
    rows = {}
    for record in records:
        if not is_storable(record):
            logger.warning("Dropping unstorable sale %s (zipcode=%r price=%r lat=%r lon=%r)",
                           record.id, record.zipcode, record.price, record.latitude, record.longitude)
            continue
        rows[record.id] = record_to_row(record)
    if not rows:
        return 0
    dialect = _dialect(db)
    try:
        stmt = upsert_sales_statement(dialect, list(rows.values()))
        if dialect == "postgresql":
            inserted = sum(1 for row in db.execute(stmt) if row.inserted)
        else:
            existing = set(db.scalars(select(Sale.sale_id).where(Sale.sale_id.in_(list(rows)))))
            db.execute(stmt)
            inserted = len(rows.keys() - existing)
        db.commit()
    except SQLAlchemyError as e:
        _fail(db, "upsert", e)
    return inserted


def get_sale(db: Session, sale_id: str) -> Optional[Sale]:
    try:
        return db.query(Sale).filter(Sale.sale_id == sale_id).first()
    except SQLAlchemyError as e:
        _fail(db, "sale read", e)

def _sale_conditions(zipcode: str, filters: Optional[SaleFilters]) -> List:
    conds = [Sale.zipcode == zipcode]
    if filters is None:
        return conds
    bounds = (
        (Sale.price, filters.min_price, filters.max_price),
        (Sale.bedrooms, filters.min_beds, filters.max_beds),
        (Sale.sqft, filters.min_sqft, filters.max_sqft),
        (Sale.year_built, filters.year_built_from, filters.year_built_to),
    )
    for column, low, high in bounds:
        if low is not None:
            conds.append(column >= low)
        if high is not None:
            conds.append(column <= high)
    if filters.year_of_sale_from is not None:
        conds.append(Sale.sale_date >= f"{filters.year_of_sale_from:04d}-01-01")
    if filters.year_of_sale_to is not None:
        # exclusive upper bound also admits timestamps on December 31st
        conds.append(Sale.sale_date < f"{filters.year_of_sale_to + 1:04d}-01-01")
    return conds


def query_sales(db: Session, zipcode: str, filters: Optional[SaleFilters] = None,
                skip: int = 0, limit: int = 12) -> Tuple[List[SaleRecord], int]:
    try:
        q = db.query(Sale).filter(and_(*_sale_conditions(zipcode, filters)))
        total = q.count()
        # newest first, undated last, insertion order among equals
        items = (
            q.order_by(Sale.sale_date.is_(None), Sale.sale_date.desc(), Sale.id)
            .offset(skip)
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        _fail(db, "query", e)
    return [row_to_record(obj) for obj in items], total


def delete_sales_by_zipcode(db: Session, zipcode: str) -> int:
    try:
        result = db.execute(delete(Sale).where(Sale.zipcode == zipcode))
        db.commit()
    except SQLAlchemyError as e:
        _fail(db, "delete", e)
    return result.rowcount


def delete_all_sales(db: Session) -> int:
    try:
        result = db.execute(delete(Sale))
        db.commit()
    except SQLAlchemyError as e:
        _fail(db, "delete", e)
    return result.rowcount


def get_metadata(db: Session, zipcode: str) -> Optional[ZipcodeMetadata]:
    try:
        return db.query(ZipcodeMetadata).filter(ZipcodeMetadata.zipcode == zipcode).first()
    except SQLAlchemyError as e:
        _fail(db, "metadata read", e)


def list_metadata(db: Session) -> List[ZipcodeMetadata]:
    try:
        return db.query(ZipcodeMetadata).order_by(ZipcodeMetadata.zipcode).all()
    except SQLAlchemyError as e:
        _fail(db, "metadata read", e)


def list_stale_metadata(db: Session, cutoff: datetime) -> List[ZipcodeMetadata]:
    try:
        return (
            db.query(ZipcodeMetadata)
            .filter(ZipcodeMetadata.last_fetch_date < cutoff)
            .order_by(ZipcodeMetadata.last_fetch_date)
            .all()
        )
    except SQLAlchemyError as e:
        _fail(db, "metadata read", e)


def record_fetch(db: Session, zipcode: str, fetched_at: datetime, inserted_count: int = 0):
    """Stamp a sync for `zipcode` and add `inserted_count` to its running total."""
    table = ZipcodeMetadata.__table__
    stmt = _insert(_dialect(db))(table).values(
        zipcode=zipcode,
        last_fetch_date=fetched_at,
        last_api_call_date=fetched_at,
        total_records_count=inserted_count,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["zipcode"],
        set_={
            "last_fetch_date": stmt.excluded.last_fetch_date,
            "last_api_call_date": stmt.excluded.last_api_call_date,
            "total_records_count": table.c.total_records_count + stmt.excluded.total_records_count,
            "updated_at": func.now(),
        },
    )
    try:
        db.execute(stmt)
        db.commit()
    except SQLAlchemyError as e:
        _fail(db, "metadata update", e)


def delete_metadata(db: Session, zipcode: str) -> int:
    try:
        result = db.execute(delete(ZipcodeMetadata).where(ZipcodeMetadata.zipcode == zipcode))
        db.commit()
    except SQLAlchemyError as e:
        _fail(db, "metadata delete", e)
    return result.rowcount


def clear_metadata(db: Session) -> int:
    try:
        result = db.execute(delete(ZipcodeMetadata))
        db.commit()
    except SQLAlchemyError as e:
        _fail(db, "metadata delete", e)
    return result.rowcount
