"""Retry classification and capped exponential backoff for remote sources."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
import structlog

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 2
DEFAULT_BASE_DELAY = 2.0
DEFAULT_MAX_DELAY = 5.0

_RETRYABLE_STATUS = {403, 429}
_RATE_LIMIT_MARKERS = ("rate limit", "too many requests", "429")


def http_status(exc: BaseException) -> int | None:
    """Status code carried by an HTTP error, if any."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    status = getattr(exc, "status_code", None)
    return status if isinstance(status, int) else None


def is_rate_limited(exc: BaseException) -> bool:
    if http_status(exc) == 429:
        return True
    text = str(exc).lower()
    return any(marker in text for marker in _RATE_LIMIT_MARKERS)


def is_retryable(exc: BaseException) -> bool:
    """True for 429/403 responses, timeouts and rate-limit messages."""
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return True
    if http_status(exc) in _RETRYABLE_STATUS:
        return True
    return is_rate_limited(exc)


def backoff_delay(
    attempt: int,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
) -> float:
    return min(base_delay * (2**attempt), max_delay)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    source: str = "",
) -> T:
    """Run fn, retrying retryable failures up to max_retries extra times.

    Args:
        fn: Zero-argument coroutine factory
        max_retries: Retries after the first attempt
        base_delay: Delay before the first retry, seconds
        max_delay: Delay cap, seconds
        sleep: Sleep function (injected in tests)
        source: Name used in log events

    Raises:
        The last exception when retries are exhausted or the error is not
        retryable.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            if attempt >= max_retries or not is_retryable(exc):
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.debug(
                "source_retry",
                source=source,
                attempt=attempt + 1,
                delay=delay,
                error=str(exc),
            )
            await sleep(delay)
            attempt += 1


__all__ = [
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_BASE_DELAY",
    "DEFAULT_MAX_DELAY",
    "http_status",
    "is_rate_limited",
    "is_retryable",
    "backoff_delay",
    "retry_with_backoff",
]
