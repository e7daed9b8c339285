# zipsales/api/routes.py
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from typing import Optional
from .. import crud, schemas
from ..db import get_db
from ..services import get_sales_page, validate_zipcode
from ..sync import SyncEngine
from ..utils import logger

router = APIRouter()


def get_sync_engine(request: Request) -> SyncEngine:
    return request.app.state.sync_engine


def get_default_limit(request: Request) -> int:
    return request.app.state.settings.default_page_limit


def _metadata_out(obj) -> schemas.MetadataOut:
    return schemas.MetadataOut(
        zipcode=obj.zipcode,
        last_fetch_date=obj.last_fetch_date,
        last_api_call_date=obj.last_api_call_date,
        total_records_count=obj.total_records_count or 0,
        created_at=obj.created_at,
        updated_at=obj.updated_at,
    )


@router.get("/health")
def health():
    return {"status": "ok"}

@router.get("/sales/{zipcode}", response_model=schemas.SalesPage)
def sales(
    zipcode: str,
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    min_beds: Optional[int] = Query(None, alias="minBeds"),
    max_beds: Optional[int] = Query(None, alias="maxBeds"),
    min_sqft: Optional[int] = Query(None, alias="minSqft"),
    max_sqft: Optional[int] = Query(None, alias="maxSqft"),
    year_built_from: Optional[int] = Query(None, alias="yearBuiltFrom"),
    year_built_to: Optional[int] = Query(None, alias="yearBuiltTo"),
    year_of_sale_from: Optional[int] = Query(None, alias="yearOfSaleFrom"),
    year_of_sale_to: Optional[int] = Query(None, alias="yearOfSaleTo"),
    db: Session = Depends(get_db),
    engine: SyncEngine = Depends(get_sync_engine),
    default_limit: int = Depends(get_default_limit),
):
    filters = schemas.SaleFilters(
        min_price=min_price,
        max_price=max_price,
        min_beds=min_beds,
        max_beds=max_beds,
        min_sqft=min_sqft,
        max_sqft=max_sqft,
        year_built_from=year_built_from,
        year_built_to=year_built_to,
        year_of_sale_from=year_of_sale_from,
        year_of_sale_to=year_of_sale_to,
    )
    logger.info("Sales request for %s (page %s)", zipcode, page)
    return get_sales_page(db, engine, zipcode, filters, page=page, limit=limit, default_limit=default_limit)


@router.get("/sales/{zipcode}/{sale_id}", response_model=schemas.SaleRecord)
def get_sale(zipcode: str, sale_id: str, db: Session = Depends(get_db)):
    validate_zipcode(zipcode)
    obj = crud.get_sale(db, sale_id)
    if not obj or obj.zipcode != zipcode:
        raise HTTPException(status_code=404, detail="Sale not found")
    return crud.row_to_record(obj)


@router.delete("/sales/{zipcode}", response_model=schemas.MessageResponse)
def delete_sales(zipcode: str, db: Session = Depends(get_db)):
    validate_zipcode(zipcode)
    deleted = crud.delete_sales_by_zipcode(db, zipcode)
    logger.info("Deleted %d cached sales for %s", deleted, zipcode)
    return schemas.MessageResponse(message=f"Cached sales for zipcode {zipcode} have been cleared", deleted_count=deleted)


@router.delete("/sales", response_model=schemas.MessageResponse)
def delete_all_sales(db: Session = Depends(get_db)):
    deleted = crud.delete_all_sales(db)
    logger.info("Deleted all %d cached sales", deleted)
    return schemas.MessageResponse(message="All cached sales have been cleared", deleted_count=deleted)


@router.get("/metadata/{zipcode}", response_model=schemas.MetadataResponse)
def get_metadata(zipcode: str, db: Session = Depends(get_db)):
    validate_zipcode(zipcode)
    obj = crud.get_metadata(db, zipcode)
    if not obj:
        raise HTTPException(status_code=404, detail=f"No metadata found for zipcode {zipcode}")
    return schemas.MetadataResponse(data=_metadata_out(obj))


@router.get("/metadata", response_model=schemas.MetadataListResponse)
def list_metadata(db: Session = Depends(get_db)):
    items = [_metadata_out(obj) for obj in crud.list_metadata(db)]
    return schemas.MetadataListResponse(data=items, count=len(items))


@router.delete("/metadata/{zipcode}", response_model=schemas.MessageResponse)
def delete_metadata(zipcode: str, db: Session = Depends(get_db)):
    validate_zipcode(zipcode)
    deleted = crud.delete_metadata(db, zipcode)
    if not deleted:
        logger.info("No metadata found for zipcode %s", zipcode)
    return schemas.MessageResponse(message=f"Metadata for zipcode {zipcode} has been reset", deleted_count=deleted)


@router.delete("/metadata", response_model=schemas.MessageResponse)
def clear_metadata(db: Session = Depends(get_db)):
    deleted = crud.clear_metadata(db)
    logger.info("Cleared %d metadata records", deleted)
    return schemas.MessageResponse(message="All metadata has been cleared", deleted_count=deleted)
