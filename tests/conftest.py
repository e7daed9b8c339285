# tests/conftest.py
import pytest
from datetime import datetime, timezone
from zipsales.config import Settings
from zipsales.db import Database
from zipsales.schemas import SaleRecord

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


class FakeSource:
    """Stands in for the ATTOM adapter and records every call."""

    def __init__(self, records=None, error=None):
        self.records = list(records or [])
        self.error = error
        self.calls = []

    def fetch_sales(self, zipcode, start_date, end_date):
        self.calls.append((zipcode, start_date, end_date))
        if self.error is not None:
            raise self.error
        return list(self.records)


def make_sale(sale_id, price=500000, sale_date="2024-01-01", zipcode="90210", **fields):
    data = {
        "id": sale_id,
        "zipcode": zipcode,
        "address_line": f"{sale_id} Test St, Beverly Hills, CA {zipcode}",
        "address_detail": f"BEVERLY HILLS, CA {zipcode}",
        "price": price,
        "latitude": 34.07,
        "longitude": -118.40,
        "sale_date": sale_date,
    }
    data.update(fields)
    return SaleRecord(**data)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        attom_api_key="test-key",
        attom_base_url="https://attom.test/propertyapi/v1.0.0",
    )


@pytest.fixture
def database():
    database = Database("sqlite://").open()
    database.create_all()
    yield database
    database.close()


@pytest.fixture
def db(database):
    session = database.session()
    yield session
    session.close()
