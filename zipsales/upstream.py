# zipsales/upstream.py
"""Upstream sales source backed by the ATTOM `sale/snapshot` endpoint.

One call fetches a single page of sales for a zipcode and a sale-date
window, drops records that cannot be placed on a map or have no price, and
returns them as `SaleRecord`s sorted newest first. Retrying is left to the
caller.
"""
import math
import time
import uuid
from datetime import date
from typing import Any, Dict, List, Optional, Protocol

import requests

from .errors import ConfigurationError, UpstreamError
from .schemas import SaleRecord
from .utils import logger


class SalesSource(Protocol):
    def fetch_sales(self, zipcode: str, start_date: date, end_date: date) -> List[SaleRecord]:
        ...


def _to_float(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    # "nan" and "inf" parse but cannot be stored or serialized
    return f if math.isfinite(f) else None


def _to_int(value) -> Optional[int]:
    f = _to_float(value)
    return int(f) if f is not None else None


def _ratio(price: Optional[float], divisor) -> Optional[int]:
    if price is None or not divisor:
        return None
    # half up, not Python's half-to-even
    return int(math.floor(price / divisor + 0.5))


def format_search_date(d: date) -> str:
    return d.strftime("%Y/%m/%d")


def normalize_sale(raw: Dict[str, Any], zipcode: str) -> Optional[SaleRecord]:
    """Map one upstream property into a SaleRecord, or None when unusable."""
    sale = raw.get("sale") or {}
    location = raw.get("location") or {}
    address = raw.get("address") or {}
    building = raw.get("building") or {}
    size = building.get("size") or {}
    rooms = building.get("rooms") or {}
    summary = raw.get("summary") or {}

    price = _to_float((sale.get("amount") or {}).get("saleamt"))
    latitude = _to_float(location.get("latitude"))
    longitude = _to_float(location.get("longitude"))
    if not price or latitude is None or longitude is None:
        return None
    if latitude == 0 and longitude == 0:
        return None

    sqft = _to_int(size.get("universalsize"))
    bedrooms = _to_int(rooms.get("beds"))
    upstream_id = (raw.get("identifier") or {}).get("attomId")
    if upstream_id in (None, ""):
        upstream_id = f"attom_{zipcode}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
    last_modified = (raw.get("vintage") or {}).get("lastModified") or raw.get("lastModified")

    return SaleRecord(
        id=str(upstream_id),
        zipcode=zipcode,
        address_line=address.get("oneLine") or "Address not available",
        address_detail=address.get("line2") or "",
        price=price,
        latitude=latitude,
        longitude=longitude,
        bedrooms=bedrooms,
        bathrooms=_to_float(rooms.get("bathstotal")),
        sqft=sqft,
        lot_size=_to_float(size.get("lotsize")),
        year_built=_to_int(summary.get("yearbuilt")),
        property_type=summary.get("propertyType") or summary.get("proptype"),
        sale_type=sale.get("saleType") or (sale.get("amount") or {}).get("saletranstype"),
        land_use_code=summary.get("propLandUse") or summary.get("propclass"),
        sale_date=sale.get("saleTransDate") or sale.get("salesearchdate"),
        price_per_sqft=_ratio(price, sqft),
        price_per_bedroom=_ratio(price, bedrooms),
        last_modified=last_modified,
    )


def sort_by_sale_date(records: List[SaleRecord]) -> List[SaleRecord]:
    # reverse=True keeps the sort stable; "" puts undated records last
    return sorted(records, key=lambda r: r.sale_date or "", reverse=True)


class AttomSalesSource:
    def __init__(self, base_url: str, api_key: str, page_size: int = 100, timeout: float = 30.0, session=None):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.page_size = page_size
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings, session=None) -> "AttomSalesSource":
        return cls(
            settings.attom_base_url,
            settings.attom_api_key,
            page_size=settings.attom_page_size,
            timeout=settings.attom_timeout,
            session=session,
        )

    def fetch_sales(self, zipcode: str, start_date: date, end_date: date) -> List[SaleRecord]:
        if not self.api_key or not self.base_url:
            raise ConfigurationError("Missing ATTOM API configuration")

        url = f"{self.base_url}/sale/snapshot"
        params = {
            "postalcode": zipcode,
            "startSaleSearchDate": format_search_date(start_date),
            "endSaleSearchDate": format_search_date(end_date),
            "pagesize": self.page_size,
        }
        headers = {"accept": "application/json", "apikey": self.api_key}
        logger.info("ATTOM sale snapshot for %s (%s..%s)", zipcode, params["startSaleSearchDate"], params["endSaleSearchDate"])
        try:
            resp = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError("ATTOM request failed", detail=str(e)) from e
        if not 200 <= resp.status_code < 300:
            raise UpstreamError("ATTOM request failed", status_code=resp.status_code, detail=resp.text[:500])
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError("ATTOM returned invalid JSON", status_code=resp.status_code) from e

        raw_properties = (data or {}).get("property") or []
        records = []
        for raw in raw_properties:
            record = normalize_sale(raw, zipcode)
            if record is not None:
                records.append(record)
        logger.info("ATTOM returned %d properties for %s, %d usable", len(raw_properties), zipcode, len(records))
        return sort_by_sale_date(records)
