# tests/test_config.py
from datetime import date
import pytest
from zipsales.config import Settings, normalize_database_url
from zipsales.db import Database


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("POSTGRES_URL", "postgres://u:p@db:5432/sales")
    monkeypatch.setenv("ATTOM_API_KEY", "key")
    monkeypatch.setenv("ATTOM_BASE_URL", "https://api.gateway.attomdata.com/propertyapi/v1.0.0/")
    monkeypatch.setenv("CACHE_TTL_DAYS", "3")
    monkeypatch.setenv("DEFAULT_START_DATE", "2020-06-01")
    monkeypatch.setenv("DEFAULT_PAGE_LIMIT", "24")
    settings = Settings.from_env()
    assert settings.database_url == "postgresql+psycopg2://u:p@db:5432/sales"
    assert settings.attom_api_key == "key"
    assert settings.attom_base_url == "https://api.gateway.attomdata.com/propertyapi/v1.0.0"
    assert settings.cache_ttl_days == 3
    assert settings.default_start_date == date(2020, 6, 1)
    assert settings.default_page_limit == 24


def test_settings_defaults(monkeypatch):
    for name in ("CACHE_TTL_DAYS", "FETCH_OVERLAP_DAYS", "DEFAULT_PAGE_LIMIT", "ATTOM_PAGE_SIZE", "DEFAULT_START_DATE"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings.from_env()
    assert settings.cache_ttl_days == 7
    assert settings.fetch_overlap_days == 0
    assert settings.default_page_limit == 12
    assert settings.attom_page_size == 100
    assert settings.default_start_date == date(2022, 1, 1)


def test_normalize_database_url():
    assert normalize_database_url("postgresql://x/y") == "postgresql://x/y"
    assert normalize_database_url(None) is None


def test_database_requires_url():
    with pytest.raises(RuntimeError):
        Database(None).open()


def test_database_lifecycle():
    database = Database("sqlite://")
    assert not database.is_open
    database.open()
    database.open()
    assert database.is_open
    database.close()
    assert not database.is_open
    with pytest.raises(RuntimeError):
        database.session()
