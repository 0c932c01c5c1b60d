"""CHARTA — Retry With Exponential Backoff.

Wraps the blocking network calls (Sleeper fetches, document indexing).
Client errors (4xx other than 429) are not transient and fail immediately.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from charta.config import settings
from charta.core.logging import get_logger

logger = get_logger("retry")

T = TypeVar("T")


def _status_of(exc: BaseException) -> int:
    """Pull an HTTP status off an exception, 0 if it has none."""
    status = getattr(exc, "status_code", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    try:
        return int(status or 0)
    except (TypeError, ValueError):
        return 0


def is_retryable(exc: BaseException) -> bool:
    status = _status_of(exc)
    if status and status < 500 and status != 429:
        return False
    return True


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    tries: Optional[int] = None,
    base_delay: Optional[float] = None,
    factor: Optional[float] = None,
    on_retry: Optional[Callable[[BaseException, int], None]] = None,
) -> T:
    """Await ``fn()`` until it succeeds or attempts run out.

    Delay before retry *n* is ``base_delay * factor ** (n - 1)``.
    The last exception is re-raised unchanged.
    """
    tries = tries if tries is not None else settings.retry_tries
    base_delay = base_delay if base_delay is not None else settings.retry_base_delay
    factor = factor if factor is not None else settings.retry_factor

    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            attempt += 1
            if not is_retryable(e) or attempt >= tries:
                raise
            wait = base_delay * (factor ** (attempt - 1))
            logger.warning(
                f"Attempt {attempt}/{tries} failed: {e}. Retrying in {wait:.2f}s"
            )
            if on_retry:
                on_retry(e, attempt)
            await asyncio.sleep(wait)
