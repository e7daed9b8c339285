# zipsales/models.py
"""SQLAlchemy ORM models for persisted entities.

`Sale` holds the cached sale records, keyed by the upstream `sale_id`; the
integer surrogate key records insertion order. `ZipcodeMetadata` tracks one
fetch history row per zipcode.
"""
from sqlalchemy import Column, Integer, Text, String, Float, TIMESTAMP, func, Index
from .db import Base

class Sale(Base):
    __tablename__ = "sales"
    id = Column(Integer, primary_key=True, autoincrement=True)
    sale_id = Column(Text, nullable=False, unique=True, index=True)
    zipcode = Column(String(5), nullable=False, index=True)
    address_line = Column(Text, nullable=False, default="")
    address_detail = Column(Text, nullable=False, default="")
    price = Column(Float, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    bedrooms = Column(Integer)
    bathrooms = Column(Float)
    sqft = Column(Integer)
    lot_size = Column(Float)
    year_built = Column(Integer)
    property_type = Column(Text)
    sale_type = Column(Text)
    land_use_code = Column(Text)
    sale_date = Column(Text)
    price_per_sqft = Column(Integer)
    price_per_bedroom = Column(Integer)
    last_modified = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

Index("idx_sales_zip_sale_date", Sale.zipcode, Sale.sale_date)
Index("idx_sales_zip_price", Sale.zipcode, Sale.price)
Index("idx_sales_zip_bedrooms", Sale.zipcode, Sale.bedrooms)
Index("idx_sales_zip_sqft", Sale.zipcode, Sale.sqft)
Index("idx_sales_zip_year_built", Sale.zipcode, Sale.year_built)


class ZipcodeMetadata(Base):
    __tablename__ = "zipcode_metadata"
    id = Column(Integer, primary_key=True, autoincrement=True)
    zipcode = Column(String(5), nullable=False, unique=True, index=True)
    last_fetch_date = Column(TIMESTAMP(timezone=True), nullable=False)
    last_api_call_date = Column(TIMESTAMP(timezone=True), nullable=False)
    total_records_count = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

Index("idx_zipcode_metadata_last_fetch", ZipcodeMetadata.last_fetch_date)
