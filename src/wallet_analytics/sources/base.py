"""Shared building blocks for source adapters.

Every external data source is wrapped behind a narrow contract: adapter
methods return a SourceResult that either carries a value or a SourceError.
Source errors never propagate past the adapter boundary; callers decide
which fallback to use.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import wraps
from typing import Generic, ParamSpec, TypeVar

import aiohttp
import httpx
from prometheus_client import Counter
from web3.exceptions import Web3Exception

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Timeouts (seconds)
SHORT_TIMEOUT = 5.0  # single-value lookups
DEFAULT_TIMEOUT = 30.0  # lists, pages and batches

SOURCE_FAILURES = Counter(
    "wallet_analytics_source_failures_total",
    "Number of failed calls to an external data source",
    ["source"],
)

# Errors that mean "this source gave us nothing usable"
SOURCE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.HTTPError,
    aiohttp.ClientError,
    Web3Exception,
    TimeoutError,
    OSError,
    json.JSONDecodeError,
    ValueError,
    KeyError,
    TypeError,
    IndexError,
)


class SourceCallError(Exception):
    """Raised inside an adapter when a response has an unexpected shape."""


@dataclass(frozen=True)
class SourceError:
    """Description of a failed source call."""

    source: str
    operation: str
    message: str
    timed_out: bool = False

    def __str__(self) -> str:
        return f"{self.source}.{self.operation}: {self.message}"


@dataclass(frozen=True)
class SourceResult(Generic[T]):
    """Outcome of a source call: a value or a SourceError, never both."""

    value: T | None = None
    error: SourceError | None = None

    @classmethod
    def success(cls, value: T) -> SourceResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: SourceError) -> SourceResult[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        """Return True if the call succeeded."""
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        """Return the value, or default if the call failed."""
        if self.error is not None or self.value is None:
            return default
        return self.value


def source_call(
    source: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[SourceResult[T]]]]:
    """Decorator turning an adapter coroutine into a SourceResult-returning call.

    The wrapped call gets a hard timeout. Transport, protocol and shape
    errors are logged, counted and returned as a failure. Cancellation is
    not intercepted.

    Args:
        source: Name of the data source (used for logs and metrics).
        timeout: Timeout in seconds for the whole call.

    Returns:
        Decorator for async adapter methods.
    """

    def decorator(
        func: Callable[P, Awaitable[T]],
    ) -> Callable[P, Awaitable[SourceResult[T]]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> SourceResult[T]:
            try:
                value = await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
            except TimeoutError:
                logger.warning("%s.%s timed out after %.1fs", source, func.__name__, timeout)
                SOURCE_FAILURES.labels(source=source).inc()
                return SourceResult.failure(
                    SourceError(
                        source=source,
                        operation=func.__name__,
                        message=f"timed out after {timeout}s",
                        timed_out=True,
                    )
                )
            except (SourceCallError, *SOURCE_EXCEPTIONS) as e:
                logger.warning("%s.%s failed: %s", source, func.__name__, e)
                SOURCE_FAILURES.labels(source=source).inc()
                return SourceResult.failure(
                    SourceError(source=source, operation=func.__name__, message=str(e))
                )
            return SourceResult.success(value)

        return wrapper

    return decorator


class RateLimiter:
    """Token bucket rate limiter shared by the calls of one adapter."""

    def __init__(self, max_requests_per_second: float) -> None:
        """Initialize the rate limiter.

        Args:
            max_requests_per_second: Sustained request rate (also the burst size).
        """
        self.max_tokens = max_requests_per_second
        self.refill_rate = max_requests_per_second
        self.tokens = max_requests_per_second
        self.last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.max_tokens, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    async def acquire(self, tokens: float = 1.0) -> None:
        """Acquire tokens, waiting if necessary."""
        async with self._lock:
            while True:
                self._refill()
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return
                wait_time = (tokens - self.tokens) / self.refill_rate
                await asyncio.sleep(wait_time)
