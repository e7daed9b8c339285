# zipsales/schemas.py
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime

class SaleRecord(BaseModel):
    """Canonical sale record; camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str = Field(..., max_length=255)
    zipcode: str
    address_line: str = Field("", alias="addressLine")
    address_detail: str = Field("", alias="addressDetail")
    price: Optional[float] = None
    latitude: float = 0
    longitude: float = 0
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    sqft: Optional[int] = None
    lot_size: Optional[float] = Field(None, alias="lotSize")
    year_built: Optional[int] = Field(None, alias="yearBuilt")
    property_type: Optional[str] = Field(None, alias="propertyType")
    sale_type: Optional[str] = Field(None, alias="saleType")
    land_use_code: Optional[str] = Field(None, alias="landUseCode")
    sale_date: Optional[str] = Field(None, alias="saleDate")
    price_per_sqft: Optional[int] = Field(None, alias="pricePerSqft")
    price_per_bedroom: Optional[int] = Field(None, alias="pricePerBedroom")
    last_modified: Optional[str] = Field(None, alias="lastModified")

class SaleFilters(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    min_price: Optional[float] = Field(None, alias="minPrice")
    max_price: Optional[float] = Field(None, alias="maxPrice")
    min_beds: Optional[int] = Field(None, alias="minBeds")
    max_beds: Optional[int] = Field(None, alias="maxBeds")
    min_sqft: Optional[int] = Field(None, alias="minSqft")
    max_sqft: Optional[int] = Field(None, alias="maxSqft")
    year_built_from: Optional[int] = Field(None, alias="yearBuiltFrom")
    year_built_to: Optional[int] = Field(None, alias="yearBuiltTo")
    year_of_sale_from: Optional[int] = Field(None, alias="yearOfSaleFrom")
    year_of_sale_to: Optional[int] = Field(None, alias="yearOfSaleTo")

class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_page: int = Field(..., alias="currentPage")
    total_pages: int = Field(..., alias="totalPages")
    total_count: int = Field(..., alias="totalCount")
    limit: int

class SalesPage(BaseModel):
    success: bool = True
    properties: List[SaleRecord]
    pagination: Pagination

class MetadataOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    zipcode: str
    last_fetch_date: datetime = Field(..., alias="lastFetchDate")
    last_api_call_date: datetime = Field(..., alias="lastApiCallDate")
    total_records_count: int = Field(0, alias="totalRecordsCount")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

class MetadataResponse(BaseModel):
    success: bool = True
    data: MetadataOut

class MetadataListResponse(BaseModel):
    success: bool = True
    data: List[MetadataOut]
    count: int

class MessageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    deleted_count: Optional[int] = Field(None, alias="deletedCount")
