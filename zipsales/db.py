# zipsales/db.py
"""Database handle and session utilities.

`Database` owns the SQLAlchemy engine and session factory for one
application instance. It is created by the composition root and opened and
closed explicitly; nothing here connects at import time.
"""
from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from sqlalchemy.pool import StaticPool
from .config import normalize_database_url
from .utils import logger

Base = declarative_base()


class Database:
    def __init__(self, url, pool_size=5, max_overflow=10):
        self.url = normalize_database_url(url)
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.engine = None
        self._sessionmaker = None

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def open(self):
        if self.engine is not None:
            return self
        if not self.url:
            raise RuntimeError("POSTGRES_URL not set")
        if self.url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            # in-memory databases only live as long as their single connection
            if self.url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
        else:
            # tuned pool settings for cloud DB
            kwargs = {
                "pool_size": self.pool_size,
                "max_overflow": self.max_overflow,
                "pool_pre_ping": True,
            }
        self.engine = create_engine(self.url, **kwargs)
        self._sessionmaker = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        logger.info("Database opened (%s)", self.engine.dialect.name)
        return self

    def create_all(self):
        # models must be imported so their tables are registered on Base
        from . import models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        if self._sessionmaker is None:
            raise RuntimeError("Database is not open")
        return self._sessionmaker()

    def close(self):
        if self.engine is None:
            return
        self.engine.dispose()
        self.engine = None
        self._sessionmaker = None
        logger.info("Database closed")


def get_db(request: Request):
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
