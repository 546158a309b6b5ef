"""
Retry logic with exponential backoff.

Wraps the outer submission call in a bounded retry budget. Provider-level
failures never reach this layer; the dispatcher substitutes a local fallback
for those instead.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from utils.exceptions import (
    ApiError,
    NetworkError,
    NoApiKeyError,
    StorageError,
    UnknownModelError,
    ValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior (delays in seconds)."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0

    def compute_delay(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (1-based). No jitter is added."""
        return min(
            self.base_delay * (self.backoff_multiplier ** (retry_number - 1)),
            self.max_delay,
        )


def default_should_retry(error: BaseException) -> bool:
    """Retry transport and 5xx failures; never client errors."""
    if isinstance(error, (ValidationError, UnknownModelError, NoApiKeyError)):
        return False
    if isinstance(error, ApiError):
        return error.status is None or error.status >= 500
    if isinstance(error, (NetworkError, StorageError)):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    if isinstance(error, httpx.TransportError):
        return True
    return isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError))


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_retry: Optional[Callable[[BaseException, int], None]] = None,
) -> T:
    """
    Await an operation with exponential backoff retry.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt.
        config: Retry budget and delays.
        should_retry: Predicate deciding whether an error is retryable.
        sleep: Awaitable sleep, injectable for tests.
        on_retry: Callback on each retry (exception, retry_number).

    Returns:
        Result of the first successful call.

    Raises:
        The last exception once the budget is exhausted, or the first
        exception the predicate rejects.
    """
    config = config or RetryConfig()
    predicate = should_retry or default_should_retry
    total_attempts = config.max_retries + 1
    name = getattr(operation, "__name__", "operation")
    last_exception: Optional[BaseException] = None

    for attempt in range(1, total_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            last_exception = e
            if not predicate(e):
                logger.debug(f"Not retrying {name}: {e}")
                raise
            if attempt == total_attempts:
                logger.error(f"All {total_attempts} attempts failed for {name}: {e}")
                raise

            delay = config.compute_delay(attempt)
            logger.warning(
                f"Attempt {attempt}/{total_attempts} failed for {name}: {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            if on_retry:
                on_retry(e, attempt)
            await sleep(delay)

    raise last_exception


def with_retry(
    config: Optional[RetryConfig] = None,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
):
    """
    Decorator for adding retry logic to coroutine functions.

    Usage:
        @with_retry(RetryConfig(max_retries=2))
        async def submit():
            return await pipeline.submit(request)
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            async def call():
                return await func(*args, **kwargs)

            call.__name__ = func.__name__
            return await retry_with_backoff(call, config=config, should_retry=should_retry)

        return wrapper

    return decorator
