"""HTTP API - report endpoint, rate limiting and serialization."""

from wallet_analytics.api.ratelimit import (
    RateLimitResult,
    SlidingWindowRateLimiter,
    client_key,
)
from wallet_analytics.api.serializers import (
    format_usd,
    report_to_dict,
)
from wallet_analytics.api.server import (
    AnalyticsServer,
)

__all__ = [
    # Server
    "AnalyticsServer",
    # Rate limiting
    "RateLimitResult",
    "SlidingWindowRateLimiter",
    "client_key",
    # Serialization
    "format_usd",
    "report_to_dict",
]
