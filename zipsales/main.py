# zipsales/main.py
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.routes import router as api_router
from .config import Settings
from .db import Database
from .errors import ConfigurationError, StoreError, UpstreamError, ValidationError
from .scheduler import build_scheduler
from .sync import SyncEngine, utcnow
from .upstream import AttomSalesSource
from .utils import logger


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def register_error_handlers(app: FastAPI):
    @app.exception_handler(ValidationError)
    async def on_validation_error(request: Request, exc: ValidationError):
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def on_request_validation_error(request: Request, exc: RequestValidationError):
        fields = ", ".join(str(err.get("loc", ["?"])[-1]) for err in exc.errors())
        return _error(400, f"Invalid request parameters: {fields}")

    @app.exception_handler(ConfigurationError)
    async def on_configuration_error(request: Request, exc: ConfigurationError):
        logger.error("Configuration error on %s: %s", request.url.path, exc)
        return _error(500, "API configuration error")

    @app.exception_handler(UpstreamError)
    async def on_upstream_error(request: Request, exc: UpstreamError):
        logger.error("Upstream failure on %s: %s", request.url.path, exc)
        return _error(500, "Failed to fetch sales data")

    @app.exception_handler(StoreError)
    async def on_store_error(request: Request, exc: StoreError):
        logger.error("Store failure on %s: %s", request.url.path, exc)
        return _error(500, "Internal server error")

    @app.exception_handler(StarletteHTTPException)
    async def on_http_error(request: Request, exc: StarletteHTTPException):
        message = "Route not found" if exc.status_code == 404 and exc.detail == "Not Found" else str(exc.detail)
        return _error(exc.status_code, message)

    @app.exception_handler(Exception)
    async def on_unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s: %s", request.url.path, exc)
        return _error(500, "Internal server error")


def create_app(settings: Settings = None, database: Database = None, source=None, clock=utcnow) -> FastAPI:
    """Compose the application: settings, database handle, upstream source, sync engine."""
    settings = settings or Settings.from_env()
    database = database or Database(settings.database_url, settings.db_pool_size, settings.db_max_overflow)
    source = source or AttomSalesSource.from_settings(settings)
    engine = SyncEngine.from_settings(settings, source, clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database.open()
        database.create_all()
        scheduler = None
        if settings.refresh_interval_hours > 0:
            scheduler = build_scheduler(database, engine, settings.refresh_interval_hours)
            scheduler.start()
        app.state.scheduler = scheduler
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)
            database.close()

    app = FastAPI(title="zipsales", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.sync_engine = engine
    app.state.scheduler = None
    app.include_router(api_router)
    register_error_handlers(app)
    return app


app = create_app()
