"""
Fixed Window Rate Limiter

Tracks hosted-provider request volume against a shared quota and an
explicit "limited" flag set when the provider answers HTTP 429.

Usage:
    limiter = RateLimiter(max_requests=1000, window_seconds=3600)
    if not limiter.check_limited():
        call_provider()
        limiter.record_success()

The window resets lazily inside check_limited() and get_status(). Swap in a
shared-store backend by implementing the RateLimitBackend protocol.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Hugging Face free tier
DEFAULT_MAX_REQUESTS = 1000
WINDOW_SECONDS = 60.0 * 60.0


@dataclass
class RateLimitState:
    """Mutable counters for one limiter instance."""

    is_limited: bool = False
    request_count: int = 0
    window_start: float = 0.0
    reset_time: Optional[float] = None


@runtime_checkable
class RateLimitBackend(Protocol):
    """Interface the dispatcher and hosted client depend on."""

    def check_limited(self) -> bool:
        ...

    def record_success(self) -> None:
        ...

    def record_rate_limited(self, reset_time: Optional[float] = None) -> None:
        ...

    def get_status(self) -> Dict[str, Any]:
        ...


class RateLimiter:
    """
    In-process rate limiter for the hosted provider quota.

    A single lock guards all state so concurrent tasks and threads see
    atomic increments.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            max_requests: Successful requests allowed per window.
            window_seconds: Window length in seconds.
            clock: Returns the current time in epoch seconds.
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._state = RateLimitState(window_start=clock())

    def _refresh(self, now: float) -> None:
        state = self._state
        if now - state.window_start > self.window_seconds:
            state.request_count = 0
            state.window_start = now
            # A 429 reset time beyond the window end still applies
            if state.reset_time is None or now >= state.reset_time:
                state.is_limited = False
                state.reset_time = None
        elif state.is_limited and state.reset_time is not None and now >= state.reset_time:
            state.is_limited = False
            state.reset_time = None

        if state.request_count >= self.max_requests and not state.is_limited:
            state.is_limited = True
            state.reset_time = state.window_start + self.window_seconds
            logger.warning(
                f"Hosted quota exhausted ({state.request_count}/{self.max_requests}), "
                f"limited until {state.reset_time:.0f}"
            )

    def check_limited(self) -> bool:
        """Return True while hosted calls must be skipped."""
        with self._lock:
            self._refresh(self._clock())
            return self._state.is_limited

    def record_success(self) -> None:
        """Count one successful hosted request against the window."""
        with self._lock:
            self._state.request_count += 1

    def record_rate_limited(self, reset_time: Optional[float] = None) -> None:
        """
        Mark the provider as limited after an HTTP 429.

        Args:
            reset_time: Epoch seconds when the quota frees up. Defaults to the
                        end of the current window.
        """
        with self._lock:
            state = self._state
            state.is_limited = True
            state.reset_time = (
                reset_time
                if reset_time is not None
                else state.window_start + self.window_seconds
            )
            logger.warning(f"Hosted provider rate limited until {state.reset_time:.0f}")

    def get_status(self) -> Dict[str, Any]:
        """Snapshot of the limiter, refreshed against the current time."""
        with self._lock:
            self._refresh(self._clock())
            state = self._state
            return {
                "isLimited": state.is_limited,
                "requestCount": state.request_count,
                "maxRequests": self.max_requests,
                "resetTime": state.reset_time,
            }

    def configure(self, max_requests: int, window_seconds: float) -> None:
        """Change the quota in place; counters and any 429 limit are kept."""
        with self._lock:
            self.max_requests = max_requests
            self.window_seconds = window_seconds

    def reset(self) -> None:
        """Clear all counters and start a fresh window."""
        with self._lock:
            self._state = RateLimitState(window_start=self._clock())


_default_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Process-wide limiter shared by the default dispatcher."""
    global _default_limiter
    if _default_limiter is None:
        _default_limiter = RateLimiter()
    return _default_limiter


def configure_rate_limiter(max_requests: int, window_seconds: float) -> RateLimiter:
    """Apply a quota to the process-wide limiter and return it."""
    limiter = get_rate_limiter()
    limiter.configure(max_requests, window_seconds)
    return limiter
