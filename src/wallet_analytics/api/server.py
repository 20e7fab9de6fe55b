"""HTTP API for wallet analytics.

Endpoints:
    GET /api/wallet-analytics?address=0x...   wallet report (rate limited)
    GET /health                               liveness
    GET /metrics                              Prometheus exposition
"""

from __future__ import annotations

import logging
import time
from typing import Any

from aiohttp import web
from prometheus_client import Counter, generate_latest

from wallet_analytics.analytics.engine import WalletAnalyticsEngine
from wallet_analytics.api.ratelimit import (
    RateLimitResult,
    SlidingWindowRateLimiter,
    client_key,
)
from wallet_analytics.api.serializers import report_to_dict
from wallet_analytics.models import InvalidAddressError, PrimarySourceError, validate_address

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_HTTP_HOST = "0.0.0.0"
DEFAULT_HTTP_PORT = 8080

GENERIC_ERROR_MESSAGE = "Failed to fetch wallet data"

# Prometheus metrics
HTTP_REQUESTS = Counter(
    "wallet_analytics_http_requests_total",
    "HTTP requests to the wallet analytics endpoint by status code",
    ["status"],
)


class AnalyticsServer:
    """aiohttp server exposing the analytics engine.

    The runner is created with handler cancellation enabled, so a client
    that disconnects cancels its analysis and every in-flight source call.

    Example:
        ```python
        async with AnalyticsServer(engine) as server:
            await server.start_http_server(port=8080)
            await shutdown.wait()
        ```
    """

    def __init__(
        self,
        engine: WalletAnalyticsEngine,
        *,
        rate_limiter: SlidingWindowRateLimiter | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            engine: Engine used to build reports.
            rate_limiter: Per-client limiter for the report endpoint.
        """
        self._engine = engine
        self._limiter = rate_limiter or SlidingWindowRateLimiter()
        self._start_time = time.time()
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

    @staticmethod
    def _rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
        }

    def _respond(
        self,
        body: dict[str, Any],
        status: int,
        headers: dict[str, str] | None = None,
    ) -> web.Response:
        HTTP_REQUESTS.labels(status=str(status)).inc()
        return web.json_response(body, status=status, headers=headers)

    async def _handle_wallet_analytics(self, request: web.Request) -> web.Response:
        """Handle /api/wallet-analytics."""
        limit = self._limiter.check(client_key(request.headers, request.remote))
        headers = self._rate_limit_headers(limit)
        if not limit.allowed:
            retry_after = limit.retry_after(time.monotonic())
            headers["Retry-After"] = str(retry_after)
            return self._respond(
                {
                    "error": "Too Many Requests",
                    "message": "Rate limit exceeded. Please try again later.",
                    "retryAfter": retry_after,
                },
                429,
                headers,
            )

        try:
            address = validate_address(request.query.get("address"))
        except InvalidAddressError as e:
            return self._respond({"error": str(e)}, 400, headers)

        try:
            report = await self._engine.analyze(address)
        except PrimarySourceError as e:
            logger.error("Wallet analytics failed for %s: %s", address, e)
            return self._respond({"error": GENERIC_ERROR_MESSAGE}, 500, headers)
        except Exception:
            logger.exception("Unexpected error analyzing %s", address)
            return self._respond({"error": GENERIC_ERROR_MESSAGE}, 500, headers)

        return self._respond(report_to_dict(report), 200, headers)

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle /health endpoint."""
        return web.json_response(
            {"status": "healthy", "uptime_seconds": round(time.time() - self._start_time, 1)}
        )

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle /metrics endpoint (Prometheus format)."""
        return web.Response(
            body=generate_latest(),
            content_type="text/plain",
            charset="utf-8",
        )

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_get("/api/wallet-analytics", self._handle_wallet_analytics)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start_http_server(
        self,
        host: str = DEFAULT_HTTP_HOST,
        port: int = DEFAULT_HTTP_PORT,
    ) -> None:
        """Start serving.

        Args:
            host: Interface to bind.
            port: Port to listen on.
        """
        if self._runner:
            logger.warning("HTTP server already running")
            return

        self._app = self.create_app()
        self._runner = web.AppRunner(self._app, handler_cancellation=True)
        await self._runner.setup()

        site = web.TCPSite(self._runner, host, port)
        await site.start()

        logger.info("Wallet analytics API listening on %s:%d", host, port)

    async def stop_http_server(self) -> None:
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._app = None
            logger.info("Wallet analytics API stopped")

    async def __aenter__(self) -> AnalyticsServer:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop_http_server()
