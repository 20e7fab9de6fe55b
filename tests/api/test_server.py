"""Tests for the HTTP API server."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from wallet_analytics.analytics.scoring import FALLBACK_PERSONALITY
from wallet_analytics.api.ratelimit import SlidingWindowRateLimiter
from wallet_analytics.api.server import GENERIC_ERROR_MESSAGE, AnalyticsServer
from wallet_analytics.models import PrimarySourceError, WalletMetrics, WalletReport, WalletScore

WALLET = "0x742d35Cc6634C0532925a3b844Bc9e7595f5eaE2"


def make_report() -> WalletReport:
    metrics = WalletMetrics(
        balance_wei=0,
        transaction_count=0,
        first_tx_date=None,
        last_tx_date=None,
        wallet_age_days=None,
        active_days=0,
        contracts_interacted=0,
        token_count=0,
        nft_count=0,
        total_gas_wei=0,
        total_gas_usd=Decimal(0),
        trading_volume_eth=Decimal(0),
        trading_volume_usd=Decimal(0),
        eth_received=Decimal(0),
        eth_received_usd=Decimal(0),
        eth_sent=Decimal(0),
        eth_sent_usd=Decimal(0),
        limited_data=True,
    )
    return WalletReport(
        address=WALLET.lower(),
        eth_price_usd=Decimal(2000),
        metrics=metrics,
        score=WalletScore(score=0, rank="New", percentile=95),
        personality=FALLBACK_PERSONALITY,
        limited_data=True,
        generated_at=datetime(2025, 6, 1, tzinfo=UTC),
    )


@pytest.fixture
def mock_engine() -> MagicMock:
    engine = MagicMock()
    engine.analyze = AsyncMock(return_value=make_report())
    return engine


@pytest.fixture
def app(mock_engine: MagicMock) -> web.Application:
    server = AnalyticsServer(
        mock_engine,
        rate_limiter=SlidingWindowRateLimiter(max_requests=2, window_seconds=60),
    )
    return server.create_app()


class TestWalletAnalyticsEndpoint:
    """Tests for /api/wallet-analytics."""

    @pytest.mark.asyncio
    async def test_success(self, app: web.Application, mock_engine: MagicMock) -> None:
        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/api/wallet-analytics", params={"address": WALLET})
            assert resp.status == 200
            assert resp.headers["X-RateLimit-Limit"] == "2"
            assert resp.headers["X-RateLimit-Remaining"] == "1"

            data = await resp.json()
            assert data["address"] == WALLET.lower()
            assert data["limitedData"] is True
            assert data["personality"]["title"] == "Abstract Explorer"

        mock_engine.analyze.assert_awaited_once_with(WALLET.lower())

    @pytest.mark.asyncio
    async def test_missing_address(self, app: web.Application, mock_engine: MagicMock) -> None:
        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/api/wallet-analytics")
            assert resp.status == 400
            assert await resp.json() == {"error": "Address required"}

        mock_engine.analyze.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_address(self, app: web.Application, mock_engine: MagicMock) -> None:
        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/api/wallet-analytics", params={"address": "0x123"})
            assert resp.status == 400
            assert await resp.json() == {"error": "Invalid address format"}

        mock_engine.analyze.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_trailing_newline_rejected(
        self, app: web.Application, mock_engine: MagicMock
    ) -> None:
        """An address followed by a newline never reaches the engine."""
        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/api/wallet-analytics", params={"address": WALLET + "\n"})
            assert resp.status == 400
            assert await resp.json() == {"error": "Invalid address format"}

        mock_engine.analyze.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_primary_source_failure(self, app: web.Application, mock_engine: MagicMock) -> None:
        """Failures return a generic message without internal details."""
        mock_engine.analyze = AsyncMock(side_effect=PrimarySourceError("rpc.get_balance: refused"))

        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/api/wallet-analytics", params={"address": WALLET})
            assert resp.status == 500
            assert await resp.json() == {"error": GENERIC_ERROR_MESSAGE}

    @pytest.mark.asyncio
    async def test_unexpected_failure(self, app: web.Application, mock_engine: MagicMock) -> None:
        mock_engine.analyze = AsyncMock(side_effect=RuntimeError("bug"))

        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/api/wallet-analytics", params={"address": WALLET})
            assert resp.status == 500
            assert await resp.json() == {"error": GENERIC_ERROR_MESSAGE}

    @pytest.mark.asyncio
    async def test_rate_limited(self, app: web.Application, mock_engine: MagicMock) -> None:
        """The third request in the window is rejected with 429."""
        async with TestClient(TestServer(app)) as client:
            for _ in range(2):
                resp = await client.get("/api/wallet-analytics", params={"address": WALLET})
                assert resp.status == 200

            resp = await client.get("/api/wallet-analytics", params={"address": WALLET})
            assert resp.status == 429
            assert resp.headers["X-RateLimit-Remaining"] == "0"
            assert int(resp.headers["Retry-After"]) > 0

            data = await resp.json()
            assert data["error"] == "Too Many Requests"
            assert data["retryAfter"] > 0

        assert mock_engine.analyze.await_count == 2

    @pytest.mark.asyncio
    async def test_rate_limit_per_forwarded_client(self, app: web.Application) -> None:
        async with TestClient(TestServer(app)) as client:
            for ip in ("203.0.113.1", "203.0.113.1", "203.0.113.2"):
                resp = await client.get(
                    "/api/wallet-analytics",
                    params={"address": WALLET},
                    headers={"X-Forwarded-For": ip},
                )
                assert resp.status == 200


class TestOperationalEndpoints:
    """Tests for /health and /metrics."""

    @pytest.mark.asyncio
    async def test_health(self, app: web.Application) -> None:
        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/health")
            assert resp.status == 200
            data = await resp.json()
            assert data["status"] == "healthy"
            assert "uptime_seconds" in data

    @pytest.mark.asyncio
    async def test_metrics(self, app: web.Application) -> None:
        async with TestClient(TestServer(app)) as client:
            await client.get("/api/wallet-analytics", params={"address": WALLET})
            resp = await client.get("/metrics")
            assert resp.status == 200
            assert "text/plain" in resp.headers.get("Content-Type", "")
            body = await resp.text()
            assert "wallet_analytics_http_requests_total" in body


class TestServerLifecycle:
    """Tests for starting and stopping the server."""

    @pytest.mark.asyncio
    async def test_start_stop(self, mock_engine: MagicMock) -> None:
        server = AnalyticsServer(mock_engine)
        await server.start_http_server("127.0.0.1", 0)
        assert server._runner is not None

        await server.start_http_server("127.0.0.1", 0)  # idempotent

        await server.stop_http_server()
        assert server._runner is None

    @pytest.mark.asyncio
    async def test_context_manager_stops(self, mock_engine: MagicMock) -> None:
        async with AnalyticsServer(mock_engine) as server:
            await server.start_http_server("127.0.0.1", 0)
        assert server._runner is None

    @pytest.mark.asyncio
    async def test_slow_analysis_is_served(self, mock_engine: MagicMock) -> None:
        """A slow analysis still completes for a connected client."""

        async def slow(address: str) -> WalletReport:
            await asyncio.sleep(0.05)
            return make_report()

        mock_engine.analyze = AsyncMock(side_effect=slow)
        app = AnalyticsServer(mock_engine).create_app()

        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/api/wallet-analytics", params={"address": WALLET})
            assert resp.status == 200
