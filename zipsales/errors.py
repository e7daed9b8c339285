# zipsales/errors.py
"""Error taxonomy shared by the adapter, store and sync engine.

Each class maps to one category of client-visible failure; the FastAPI
handlers in `zipsales.main` turn them into `{success: false, message}`.
"""
from typing import Optional


class SalesCacheError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(SalesCacheError):
    """Malformed zipcode or request parameter (HTTP 400)."""


class ConfigurationError(SalesCacheError):
    """Upstream credentials or endpoint are not configured (HTTP 500)."""


class UpstreamError(SalesCacheError):
    """The upstream sales API call failed (HTTP 500, not retried here)."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    def __str__(self):
        parts = [self.args[0] if self.args else "upstream error"]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.detail:
            parts.append(f"detail={self.detail}")
        return " ".join(parts)


class StoreError(SalesCacheError):
    """A read or write against the cache store failed."""
