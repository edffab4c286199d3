"""
Retry with exponential backoff for transient database failures.

Lock timeouts and "database is locked" errors are retried a bounded number
of times; once attempts are exhausted the last error is re-raised so the
caller can translate it.
"""
from __future__ import annotations
from typing import Any, Awaitable, Callable, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, base: float, maximum: float) -> float:
    """Delay before retry number attempt+1 (attempt starts at 0)."""
    return min(base * (2 ** attempt), maximum)


async def retry_async(
    func: Callable[..., Awaitable[Any]],
    *args,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    max_retries: int = 3,
    backoff_base: float = 0.05,
    backoff_max: float = 1.0,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
    **kwargs,
) -> Any:
    """Await func, retrying on the given exception types.

    Makes at most max_retries + 1 attempts. Exceptions not listed in
    retry_on propagate immediately.
    """
    last_error: BaseException | None = None
    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except retry_on as e:
            last_error = e
            if attempt < max_retries:
                if on_retry:
                    on_retry(attempt + 1, e)
                await asyncio.sleep(backoff_delay(attempt, backoff_base, backoff_max))

    logger.debug("Giving up after %d attempts: %s", max_retries + 1, last_error)
    raise last_error
