"""
Core Resilience — Fault Tolerance Primitives.

Provides reliability patterns for database operations:
- retry_async: Bounded retry with exponential backoff
"""
from core.resilience.retry import backoff_delay, retry_async

__all__ = [
    "backoff_delay",
    "retry_async",
]
