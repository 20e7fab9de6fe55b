"""Per-client sliding-window rate limiting for the HTTP API."""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_MAX_REQUESTS = 20
DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_CLEANUP_INTERVAL_SECONDS = 300.0


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate limit check."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # clock time when the oldest request leaves the window

    def retry_after(self, now: float) -> int:
        """Return whole seconds until a request would be allowed."""
        return max(0, math.ceil(self.reset_at - now))


def client_key(headers: Mapping[str, str], remote: str | None) -> str:
    """Identify the caller from proxy headers or the peer address.

    The first X-Forwarded-For entry wins, then X-Real-IP, then the peer.
    """
    forwarded_for = headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return remote or "unknown"


class SlidingWindowRateLimiter:
    """Allows at most ``max_requests`` per client within a sliding window.

    Example:
        ```python
        limiter = SlidingWindowRateLimiter(max_requests=20, window_seconds=60)
        result = limiter.check("203.0.113.7")
        if not result.allowed:
            ...  # respond 429
        ```
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        cleanup_interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
    ) -> None:
        self._max_requests = max_requests
        self._window = window_seconds
        self._clock = clock
        self._cleanup_interval = cleanup_interval_seconds
        self._requests: dict[str, deque[float]] = {}
        self._last_cleanup = clock()

    @property
    def tracked_clients(self) -> int:
        return len(self._requests)

    def _cleanup(self, now: float) -> None:
        """Forget clients with no requests inside the window."""
        cutoff = now - self._window
        stale = [key for key, times in self._requests.items() if not times or times[-1] <= cutoff]
        for key in stale:
            del self._requests[key]
        self._last_cleanup = now
        if stale:
            logger.debug("Dropped rate limit state for %d idle clients", len(stale))

    def check(self, key: str) -> RateLimitResult:
        """Record a request for a client and report whether it is allowed.

        Rejected requests are not recorded.
        """
        now = self._clock()
        if now - self._last_cleanup >= self._cleanup_interval:
            self._cleanup(now)

        cutoff = now - self._window
        times = self._requests.setdefault(key, deque())
        while times and times[0] <= cutoff:
            times.popleft()

        if len(times) >= self._max_requests:
            return RateLimitResult(
                allowed=False,
                limit=self._max_requests,
                remaining=0,
                reset_at=times[0] + self._window,
            )

        times.append(now)
        return RateLimitResult(
            allowed=True,
            limit=self._max_requests,
            remaining=self._max_requests - len(times),
            reset_at=times[0] + self._window,
        )
