"""
Logging setup

Structured-enough stdlib logging for the service:
- One root configuration, level from LOG_LEVEL
- Every record carries the current request id (set by the HTTP middleware)
"""
from __future__ import annotations
from contextvars import ContextVar
from typing import Optional
import logging
import os

# Request id for the task currently being served; "-" outside a request
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"


class RequestIdFilter(logging.Filter):
    """Attach the current request id to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once; repeated calls only adjust the level."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()
    root.setLevel(level_name)

    if any(isinstance(f, RequestIdFilter) for h in root.handlers for f in h.filters):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)
