"""Tests for the wallet analytics engine."""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from wallet_analytics.analytics.engine import (
    DEFAULT_CURRENT_BLOCK,
    DEFAULT_FALLBACK_PRICE_USD,
    WalletAnalyticsEngine,
)
from wallet_analytics.models import (
    InvalidAddressError,
    PrimarySourceError,
    Transaction,
    TransactionHistory,
)
from wallet_analytics.sources.base import SourceError, SourceResult

WALLET = "0x742d35Cc6634C0532925a3b844Bc9e7595f5eaE2"
WALLET_LOWER = WALLET.lower()
ROUTER = "0x7a250d5630b4cf539739df2c5dacb4c659f2488d"  # Uniswap in the known table
FRIEND = "0x2222222222222222222222222222222222222222"
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)
ONE_ETH = 10**18


def failure(source: str = "test") -> SourceResult[Any]:
    return SourceResult.failure(SourceError(source=source, operation="x", message="down"))


def tx(tx_hash: str, when: datetime, *, sender: str = WALLET_LOWER, to: str = ROUTER) -> Transaction:
    return Transaction(
        hash=tx_hash,
        block_number=1,
        timestamp=when,
        from_address=sender,
        to_address=to,
        value=0,
        gas_used=21_000,
        gas_price=1_000_000_000,
    )


SAMPLE_HISTORY = TransactionHistory(
    external=(
        tx("0x1", datetime(2025, 3, 1, 9, tzinfo=UTC)),
        tx("0x2", datetime(2025, 3, 1, 18, tzinfo=UTC), sender=FRIEND, to=WALLET_LOWER),
        tx("0x3", datetime(2025, 3, 2, 9, tzinfo=UTC), sender=FRIEND, to=WALLET_LOWER),
    )
)


@pytest.fixture
def mock_chain() -> MagicMock:
    chain = MagicMock()
    chain.get_balance = AsyncMock(return_value=SourceResult.success(2 * ONE_ETH))
    chain.get_transaction_count = AsyncMock(return_value=SourceResult.success(1))
    chain.get_block_number = AsyncMock(return_value=SourceResult.success(3_000_000))
    chain.probe_erc1155_balances = AsyncMock(return_value=SourceResult.success({}))
    chain.close = AsyncMock()
    return chain


@pytest.fixture
def mock_prices() -> MagicMock:
    prices = MagicMock()
    prices.get_current_price = AsyncMock(return_value=SourceResult.success(Decimal(3000)))
    prices.get_price_history = AsyncMock(
        return_value=SourceResult.success({date(2025, 3, 1): Decimal(2500)})
    )
    prices.close = AsyncMock()
    return prices


@pytest.fixture
def mock_crawler() -> MagicMock:
    crawler = MagicMock()
    crawler.crawl = AsyncMock(return_value=SAMPLE_HISTORY)
    return crawler


@pytest.fixture
def engine(mock_chain: MagicMock, mock_prices: MagicMock, mock_crawler: MagicMock) -> WalletAnalyticsEngine:
    explorer = MagicMock()
    explorer.get_contract_name = AsyncMock(return_value=SourceResult.success(None))
    explorer.get_token_name = AsyncMock(return_value=SourceResult.success(None))
    explorer.close = AsyncMock()

    marketplace = MagicMock()
    marketplace.enabled = False
    marketplace.close = AsyncMock()

    assets = MagicMock()
    assets.get_badge_metadata = AsyncMock(return_value=failure("assets"))
    assets.close = AsyncMock()

    return WalletAnalyticsEngine(
        chain=mock_chain,
        explorer=explorer,
        marketplace=marketplace,
        prices=mock_prices,
        assets=assets,
        crawler=mock_crawler,
    )


class TestAnalyze:
    """Tests for WalletAnalyticsEngine.analyze."""

    @pytest.mark.asyncio
    async def test_full_report(self, engine: WalletAnalyticsEngine, mock_crawler: MagicMock) -> None:
        report = await engine.analyze(WALLET, now=NOW)

        assert report.address == WALLET_LOWER
        assert report.eth_price_usd == Decimal(3000)
        assert report.balance_usd == Decimal(6000)
        assert report.metrics.active_days == 2
        assert report.metrics.total_gas_wei == 21_000 * 10**9
        assert report.metrics.transaction_count == 3
        assert report.limited_data is False
        assert report.holdings_source is None
        assert report.generated_at == NOW
        apps = {app.address: app for app in report.favorite_apps}
        assert apps[ROUTER].resolved_name == "Uniswap"
        assert apps[ROUTER].share_percent == 33
        assert 0 <= report.score.score <= 100
        mock_crawler.crawl.assert_awaited_once_with(WALLET_LOWER, 3_000_000)

    @pytest.mark.asyncio
    async def test_deterministic(self, engine: WalletAnalyticsEngine) -> None:
        """Identical source responses give identical reports."""
        first = await engine.analyze(WALLET, now=NOW)
        second = await engine.analyze(WALLET, now=NOW)
        assert first == second

    @pytest.mark.asyncio
    async def test_invalid_address(self, engine: WalletAnalyticsEngine, mock_chain: MagicMock) -> None:
        with pytest.raises(InvalidAddressError):
            await engine.analyze("0x123")
        mock_chain.get_balance.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_balance_failure_is_fatal(
        self, engine: WalletAnalyticsEngine, mock_chain: MagicMock
    ) -> None:
        mock_chain.get_balance = AsyncMock(return_value=failure("rpc"))
        with pytest.raises(PrimarySourceError):
            await engine.analyze(WALLET, now=NOW)

    @pytest.mark.asyncio
    async def test_nonce_failure_is_fatal(
        self, engine: WalletAnalyticsEngine, mock_chain: MagicMock
    ) -> None:
        mock_chain.get_transaction_count = AsyncMock(return_value=failure("rpc"))
        with pytest.raises(PrimarySourceError):
            await engine.analyze(WALLET, now=NOW)

    @pytest.mark.asyncio
    async def test_price_failure_uses_fallback(
        self, engine: WalletAnalyticsEngine, mock_prices: MagicMock
    ) -> None:
        mock_prices.get_current_price = AsyncMock(return_value=failure("prices"))
        mock_prices.get_price_history = AsyncMock(return_value=failure("prices"))

        report = await engine.analyze(WALLET, now=NOW)

        assert report.eth_price_usd == DEFAULT_FALLBACK_PRICE_USD

    @pytest.mark.asyncio
    async def test_zero_price_uses_fallback(
        self, engine: WalletAnalyticsEngine, mock_prices: MagicMock
    ) -> None:
        mock_prices.get_current_price = AsyncMock(return_value=SourceResult.success(Decimal(0)))
        report = await engine.analyze(WALLET, now=NOW)
        assert report.eth_price_usd == DEFAULT_FALLBACK_PRICE_USD

    @pytest.mark.asyncio
    async def test_block_failure_uses_default_block(
        self,
        engine: WalletAnalyticsEngine,
        mock_chain: MagicMock,
        mock_crawler: MagicMock,
    ) -> None:
        mock_chain.get_block_number = AsyncMock(return_value=failure("rpc"))
        await engine.analyze(WALLET, now=NOW)
        mock_crawler.crawl.assert_awaited_once_with(WALLET_LOWER, DEFAULT_CURRENT_BLOCK)

    @pytest.mark.asyncio
    async def test_empty_history_uses_nonce(
        self,
        engine: WalletAnalyticsEngine,
        mock_chain: MagicMock,
        mock_crawler: MagicMock,
    ) -> None:
        """No explorer data with nonce 120 gives a limited, estimated report."""
        mock_chain.get_transaction_count = AsyncMock(return_value=SourceResult.success(120))
        mock_crawler.crawl = AsyncMock(return_value=TransactionHistory())

        report = await engine.analyze(WALLET, now=NOW)

        assert report.limited_data is True
        assert report.metrics.wallet_age_days == 12
        assert report.metrics.active_days == 12
        assert report.metrics.contracts_interacted == 36

    @pytest.mark.asyncio
    async def test_badges_and_cards_count_as_nfts(
        self, engine: WalletAnalyticsEngine, mock_chain: MagicMock
    ) -> None:
        """Probed badges and cards are reported and counted."""

        async def probe(contract: str, owner: str, token_ids: Any, *, batch_size: int = 100) -> Any:
            if contract == "0xbc176ac2373614f9858a118917d83b139bcb3f8c":
                return SourceResult.success({1: 1, 2: 1})
            return SourceResult.success({10: 3})

        mock_chain.probe_erc1155_balances = AsyncMock(side_effect=probe)

        report = await engine.analyze(WALLET, now=NOW)

        assert [b.label for b in report.badges] == ["Discord Verified", "X Verified"]
        assert report.creator_card_count == 3
        assert report.metrics.nft_count == 5


class TestClose:
    """Tests for engine shutdown."""

    @pytest.mark.asyncio
    async def test_close_closes_resources(self, mock_chain: MagicMock, mock_prices: MagicMock) -> None:
        http = MagicMock()
        http.aclose = AsyncMock()
        redis = MagicMock()
        redis.aclose = AsyncMock()
        adapters = {name: MagicMock(close=AsyncMock()) for name in ("explorer", "marketplace", "assets")}

        engine = WalletAnalyticsEngine(
            chain=mock_chain,
            prices=mock_prices,
            http_client=http,
            redis=redis,
            **adapters,
        )
        async with engine:
            pass

        mock_chain.close.assert_awaited_once()
        mock_prices.close.assert_awaited_once()
        for adapter in adapters.values():
            adapter.close.assert_awaited_once()
        http.aclose.assert_awaited_once()
        redis.aclose.assert_awaited_once()
