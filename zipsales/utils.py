# zipsales/utils.py
"""Logging setup and the retry decorator used for scheduled refreshes."""
import logging
import os
import time
from functools import wraps

from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
_configured = False


def log_level(default: int = logging.INFO) -> int:
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    # unknown names come back as the string "Level X"
    return level if isinstance(level, int) else default


def get_logger(name: str = "zipsales") -> logging.Logger:
    """Return a named logger, installing the root handler on first use only."""
    global _configured
    if not _configured:
        logging.basicConfig(format=LOG_FORMAT, level=log_level())
        _configured = True
    return logging.getLogger(name)


logger = get_logger("zipsales")


def retry(exceptions, tries: int = 3, delay: float = 1, backoff: float = 2, max_delay: float = 60,
          logger: logging.Logger = logger, sleep=time.sleep):
    """Re-run the wrapped call while it raises `exceptions`.

    Waits `delay`, then `delay * backoff`, and so on, never longer than
    `max_delay`. After `tries` attempts the last exception propagates.
    Exceptions outside `exceptions` are raised immediately.
    """
    if tries < 1:
        raise ValueError("tries must be at least 1")

    def decorator(func):
        name = getattr(func, "__qualname__", repr(func))

        @wraps(func)
        def wrapper(*args, **kwargs):
            wait = delay
            for attempt in range(1, tries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == tries:
                        raise
                    logger.warning("%s attempt %d/%d failed: %s, retrying in %ss", name, attempt, tries, e, wait)
                    sleep(wait)
                    wait = min(wait * backoff, max_delay)
        return wrapper
    return decorator
