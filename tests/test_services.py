# tests/test_services.py
from datetime import date, timedelta
import pytest
from zipsales import crud, services
from zipsales.errors import StoreError, UpstreamError, ValidationError
from zipsales.schemas import SaleFilters
from zipsales.sync import SyncEngine
from conftest import NOW, FakeSource, make_sale


def make_engine(source, clock):
    return SyncEngine(source, ttl=timedelta(days=7), default_start_date=date(2022, 1, 1), clock=clock)


def beverly_hills_sales():
    return [
        make_sale("a", price=2500000, sale_date="2024-03-01", bedrooms=5, sqft=3500),
        make_sale("b", price=1800000, sale_date="2024-06-15", bedrooms=4, sqft=2800),
        make_sale("c", price=3200000, sale_date="2023-11-20", bedrooms=6, sqft=4200),
    ]


@pytest.mark.parametrize("zipcode", ["", None, "9021", "902101", "9021a", " 90210", "９０２１０"])
def test_validate_zipcode_rejects_malformed(zipcode):
    with pytest.raises(ValidationError):
        services.validate_zipcode(zipcode)


def test_validate_zipcode_accepts_five_digits():
    assert services.validate_zipcode("02134") == "02134"


@pytest.mark.parametrize("page,limit,expected", [
    (None, None, (1, 12)),
    (0, 500, (1, 100)),
    (-3, 0, (1, 1)),
    (4, 25, (4, 25)),
])
def test_clamp_pagination(page, limit, expected):
    assert services.clamp_pagination(page, limit, default_limit=12) == expected


def test_filter_records_price_window():
    records = [make_sale("a", price=100000), make_sale("b", price=250000), make_sale("c", price=400000)]
    result = services.filter_records(records, SaleFilters(min_price=200000, max_price=300000))
    assert [r.price for r in result] == [250000]


def test_filter_records_year_of_sale_and_missing_values():
    records = [
        make_sale("a", sale_date="2021-12-31", bedrooms=3),
        make_sale("b", sale_date="2022-01-01", bedrooms=3),
        make_sale("c", sale_date="2023-12-31", bedrooms=None),
        make_sale("d", sale_date=None, bedrooms=3),
    ]
    by_year = services.filter_records(records, SaleFilters(year_of_sale_from=2022, year_of_sale_to=2023))
    assert [r.id for r in by_year] == ["b", "c"]
    by_beds = services.filter_records(records, SaleFilters(min_beds=2))
    assert [r.id for r in by_beds] == ["a", "b", "d"]
    assert services.filter_records(records, None) == records


def test_paginate_covers_every_record_once():
    records = [make_sale(f"s{i}") for i in range(5)]
    pages = [services.paginate(records, page, 2) for page in (1, 2, 3)]
    assert pages[0].pagination.total_pages == 3
    assert [r.id for p in pages for r in p.properties] == [r.id for r in records]
    beyond = services.paginate(records, 4, 2)
    assert beyond.properties == []
    assert beyond.pagination.total_count == 5
    assert beyond.pagination.current_page == 4


def test_sales_page_end_to_end(db, clock):
    source = FakeSource(beverly_hills_sales())
    page = services.get_sales_page(db, make_engine(source, clock), "90210", page=1, limit=2)
    assert [r.id for r in page.properties] == ["b", "a"]
    assert page.pagination.total_pages == 2
    assert page.pagination.total_count == 3
    assert crud.get_metadata(db, "90210").total_records_count == 3

    second = services.get_sales_page(db, make_engine(source, clock), "90210", page=2, limit=2)
    assert [r.id for r in second.properties] == ["c"]
    assert len(source.calls) == 1


def test_sales_page_applies_filters_against_store(db, clock):
    source = FakeSource(beverly_hills_sales())
    page = services.get_sales_page(db, make_engine(source, clock), "90210", SaleFilters(min_beds=5))
    assert [r.id for r in page.properties] == ["a", "c"]
    assert page.pagination.limit == 12


def test_sales_page_rejects_bad_zipcode_before_sync(db, clock):
    source = FakeSource(beverly_hills_sales())
    with pytest.raises(ValidationError):
        services.get_sales_page(db, make_engine(source, clock), "abc")
    assert source.calls == []


def test_sales_page_serves_fetched_records_when_merge_fails(db, clock, monkeypatch):
    def broken_upsert(db, records):
        raise StoreError("read only")

    monkeypatch.setattr(crud, "upsert_sales", broken_upsert)
    source = FakeSource(beverly_hills_sales())
    page = services.get_sales_page(db, make_engine(source, clock), "90210", SaleFilters(max_price=3000000), limit=1)
    assert [r.id for r in page.properties] == ["b"]
    assert page.pagination.total_count == 2


def test_sales_page_degrades_to_empty_on_read_failure(db, clock, monkeypatch):
    def broken_query(*args, **kwargs):
        raise StoreError("connection lost")

    monkeypatch.setattr(crud, "query_sales", broken_query)
    page = services.get_sales_page(db, make_engine(FakeSource([make_sale("a")]), clock), "90210", page=3, limit=5)
    assert page.properties == []
    assert page.pagination.total_count == 0
    assert page.pagination.total_pages == 0
    assert page.pagination.current_page == 1


def test_refresh_stale_zipcodes_only_touches_stale(db, clock):
    crud.record_fetch(db, "10001", NOW - timedelta(days=9), 0)
    crud.record_fetch(db, "90210", NOW - timedelta(days=1), 0)
    source = FakeSource([make_sale("n", zipcode="10001")])
    assert services.refresh_stale_zipcodes(db, make_engine(source, clock), delay=0) == 1
    assert [call[0] for call in source.calls] == ["10001"]


def test_refresh_stale_zipcodes_retries_upstream_errors(db, clock):
    crud.record_fetch(db, "10001", NOW - timedelta(days=9), 0)

    class FlakySource(FakeSource):
        def fetch_sales(self, zipcode, start_date, end_date):
            if not self.calls:
                self.calls.append((zipcode, start_date, end_date))
                raise UpstreamError("busy", status_code=429)
            return super().fetch_sales(zipcode, start_date, end_date)

    source = FlakySource([])
    assert services.refresh_stale_zipcodes(db, make_engine(source, clock), tries=2, delay=0) == 1
    assert len(source.calls) == 2


def test_refresh_stale_zipcodes_continues_after_failure(db, clock):
    crud.record_fetch(db, "10001", NOW - timedelta(days=9), 0)
    crud.record_fetch(db, "10002", NOW - timedelta(days=8), 0)
    source = FakeSource(error=UpstreamError("down", status_code=500))
    assert services.refresh_stale_zipcodes(db, make_engine(source, clock), tries=1, delay=0) == 0
    assert len(source.calls) == 2
