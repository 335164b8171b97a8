"""Logging setup shared by the API process and Celery workers.

Every record is stamped with the correlation id of the request or task
that produced it, so a failed background push can be traced back to the
request that triggered it.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextvars import ContextVar

from spinup.config import settings

ROOT_LOGGER = "spinup"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | [%(correlation_id)s] %(message)s"

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="-")


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get()
        return True


def setup_logging() -> None:
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(settings.LOG_LEVEL.upper())

    # Idempotent: uvicorn reloads and Celery worker init may call this twice
    if any(isinstance(f, CorrelationIdFilter) for h in logger.handlers for f in h.filters):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(CorrelationIdFilter())
    logger.addHandler(handler)
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def bind_correlation_id(value: str | None) -> str:
    """Set the correlation id for the current context and return it."""
    value = value or new_correlation_id()
    correlation_id.set(value)
    return value
