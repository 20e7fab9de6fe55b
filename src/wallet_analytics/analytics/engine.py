"""Wallet analytics engine.

Orchestrates one analysis per address: a concurrent fan-out of the
independent lookups, the history crawl, holdings reconciliation, metrics,
contract naming and scoring. Nothing is persisted; the only state that
outlives a call is the bounded caches owned by the engine instance.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import httpx
from prometheus_client import Counter, Histogram
from redis.asyncio import Redis

from wallet_analytics.analytics.badges import BadgeProber
from wallet_analytics.analytics.cache import BoundedCache
from wallet_analytics.analytics.contracts import ContractNameResolver
from wallet_analytics.analytics.crawler import HistoryCrawler
from wallet_analytics.analytics.holdings import (
    CollectionDataLookup,
    HoldingsReconciler,
    MarketplaceResolver,
    TransferLogResolver,
)
from wallet_analytics.analytics.metrics import MetricsCalculator
from wallet_analytics.analytics.scoring import calculate_wallet_score, classify_personality
from wallet_analytics.config import Settings
from wallet_analytics.models import (
    CollectionData,
    PriceBook,
    PrimarySourceError,
    WalletReport,
    validate_address,
)
from wallet_analytics.sources.assets import AssetMetadataClient
from wallet_analytics.sources.chain import ChainClient
from wallet_analytics.sources.explorer import ExplorerClient
from wallet_analytics.sources.marketplace import MarketplaceClient
from wallet_analytics.sources.prices import DEFAULT_HISTORY_DAYS, PriceClient

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_FALLBACK_PRICE_USD = Decimal(2000)
DEFAULT_CURRENT_BLOCK = 50_000_000  # used when the node cannot report one
DEFAULT_COLLECTION_CACHE_CAPACITY = 1000
DEFAULT_COLLECTION_CACHE_TTL = 300.0
DEFAULT_CONTRACT_NAME_CACHE_CAPACITY = 1000
DEFAULT_CONTRACT_NAME_CACHE_TTL = 3600.0

# Prometheus metrics
REPORTS_TOTAL = Counter(
    "wallet_analytics_reports_total",
    "Number of wallet analyses by outcome",
    ["outcome"],
)

ANALYSIS_DURATION = Histogram(
    "wallet_analytics_analysis_duration_seconds",
    "Wall time of a full wallet analysis",
    buckets=[0.5, 1, 2.5, 5, 10, 20, 30, 60, 120],
)


class WalletAnalyticsEngine:
    """Builds WalletReports from the injected source adapters.

    Example:
        ```python
        async with WalletAnalyticsEngine.from_settings(get_settings()) as engine:
            report = await engine.analyze("0x...")
            print(report.score.score, report.personality.title)
        ```
    """

    def __init__(
        self,
        *,
        chain: ChainClient,
        explorer: ExplorerClient,
        marketplace: MarketplaceClient,
        prices: PriceClient,
        assets: AssetMetadataClient,
        collection_cache: BoundedCache[CollectionData] | None = None,
        contract_name_cache: BoundedCache[str] | None = None,
        crawler: HistoryCrawler | None = None,
        fallback_price_usd: Decimal = DEFAULT_FALLBACK_PRICE_USD,
        history_days: int = DEFAULT_HISTORY_DAYS,
        http_client: httpx.AsyncClient | None = None,
        redis: Redis | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            chain: JSON-RPC adapter (primary source).
            explorer: Explorer adapter.
            marketplace: Marketplace adapter (may be disabled).
            prices: Price adapter.
            assets: Badge metadata adapter.
            collection_cache: Cache for collection data.
            contract_name_cache: Cache for resolved contract names.
            crawler: History crawler; built from the explorer if omitted.
            fallback_price_usd: Price used when the current price is unavailable.
            history_days: Days of price history to request.
            http_client: Shared HTTP client closed with the engine.
            redis: Redis client closed with the engine.
        """
        self._chain = chain
        self._explorer = explorer
        self._marketplace = marketplace
        self._prices = prices
        self._assets = assets
        self._fallback_price = fallback_price_usd
        self._history_days = history_days
        self._http = http_client
        self._redis = redis

        if collection_cache is None:
            collection_cache = BoundedCache(
                DEFAULT_COLLECTION_CACHE_CAPACITY, DEFAULT_COLLECTION_CACHE_TTL
            )
        if contract_name_cache is None:
            contract_name_cache = BoundedCache(
                DEFAULT_CONTRACT_NAME_CACHE_CAPACITY, DEFAULT_CONTRACT_NAME_CACHE_TTL
            )
        self._collection_cache = collection_cache
        self._contract_name_cache = contract_name_cache

        self._crawler = crawler or HistoryCrawler(explorer)
        self._badges = BadgeProber(chain, assets)
        self._holdings = HoldingsReconciler(
            [MarketplaceResolver(marketplace), TransferLogResolver()],
            collections=CollectionDataLookup(marketplace, self._collection_cache),
            explorer=explorer,
        )
        self._metrics = MetricsCalculator()
        self._names = ContractNameResolver(explorer, self._contract_name_cache)

    @classmethod
    def from_settings(cls, settings: Settings) -> WalletAnalyticsEngine:
        """Build an engine and its adapters from settings.

        Args:
            settings: Application settings.

        Returns:
            Engine owning one shared HTTP client and an optional Redis client.
        """
        http = httpx.AsyncClient()
        redis = Redis.from_url(settings.redis.url) if settings.redis.url else None

        explorer_key = settings.explorer.api_key
        marketplace_key = settings.marketplace.api_key

        return cls(
            chain=ChainClient(
                settings.chain.rpc_url,
                fallback_rpc_url=settings.chain.fallback_rpc_url,
                http_client=http,
                max_requests_per_second=settings.chain.max_requests_per_second,
            ),
            explorer=ExplorerClient(
                settings.explorer.api_url,
                api_key=explorer_key.get_secret_value() if explorer_key else None,
                http_client=http,
                max_requests_per_second=settings.explorer.max_requests_per_second,
            ),
            marketplace=MarketplaceClient(
                marketplace_key.get_secret_value() if marketplace_key else None,
                base_url=settings.marketplace.api_url,
                chain=settings.marketplace.chain,
                http_client=http,
            ),
            prices=PriceClient(
                settings.prices.api_url,
                coin_id=settings.prices.coin_id,
                http_client=http,
                redis=redis,
                cache_ttl_seconds=settings.prices.cache_ttl_seconds,
            ),
            assets=AssetMetadataClient(settings.badge_metadata_url, http_client=http),
            collection_cache=BoundedCache(
                settings.cache.collection_capacity,
                settings.cache.collection_ttl_seconds,
            ),
            contract_name_cache=BoundedCache(
                settings.cache.contract_name_capacity,
                settings.cache.contract_name_ttl_seconds,
            ),
            fallback_price_usd=settings.prices.fallback_usd,
            history_days=settings.prices.history_days,
            http_client=http,
            redis=redis,
        )

    @property
    def collection_cache(self) -> BoundedCache[CollectionData]:
        return self._collection_cache

    async def analyze(self, address: str, *, now: datetime | None = None) -> WalletReport:
        """Analyze an address and return its report.

        Args:
            address: Account address (any case).
            now: Reference time for ages and the report timestamp.

        Returns:
            WalletReport for the address.

        Raises:
            InvalidAddressError: If the address is missing or malformed.
            PrimarySourceError: If balance or nonce cannot be fetched.
        """
        address = validate_address(address)
        start = time.perf_counter()
        try:
            report = await self._analyze(address, now or datetime.now(UTC))
        except PrimarySourceError:
            REPORTS_TOTAL.labels(outcome="error").inc()
            raise
        finally:
            ANALYSIS_DURATION.observe(time.perf_counter() - start)

        REPORTS_TOTAL.labels(outcome="limited" if report.limited_data else "complete").inc()
        return report

    async def _analyze(self, address: str, now: datetime) -> WalletReport:
        (
            balance,
            nonce,
            block,
            current_price,
            price_history,
            badges,
            cards,
        ) = await asyncio.gather(
            self._chain.get_balance(address),
            self._chain.get_transaction_count(address),
            self._chain.get_block_number(),
            self._prices.get_current_price(),
            self._prices.get_price_history(self._history_days),
            self._badges.get_badges(address),
            self._badges.get_creator_cards(address),
        )

        if not balance.ok or not nonce.ok:
            error = balance.error or nonce.error
            logger.error("Primary source failed for %s: %s", address, error)
            raise PrimarySourceError(f"Failed to fetch wallet data: {error}")

        current_block = block.unwrap_or(DEFAULT_CURRENT_BLOCK)
        if not block.ok:
            logger.warning("Using default current block %d for %s", current_block, address)

        eth_price = current_price.unwrap_or(self._fallback_price)
        if eth_price <= 0:
            eth_price = self._fallback_price
        prices = PriceBook(current=eth_price, history=price_history.unwrap_or({}))

        history = await self._crawler.crawl(address, current_block)

        creator_card_count = sum(card.balance for card in cards)
        holdings = await self._holdings.reconcile(
            address,
            history,
            eth_price,
            badge_count=len(badges),
            creator_card_count=creator_card_count,
        )

        result = self._metrics.calculate(
            address,
            history,
            prices,
            balance_wei=balance.unwrap_or(0),
            nonce=nonce.unwrap_or(0),
            nft_count=holdings.nft_count,
            now=now,
        )
        favorite_apps = await self._names.name_interactions(result.top_interactions)

        metrics = result.metrics
        score = calculate_wallet_score(metrics)
        personality = classify_personality(metrics)

        logger.info(
            "Analyzed %s: score=%d rank=%s personality=%s limited=%s",
            address,
            score.score,
            score.rank,
            personality.title,
            metrics.limited_data,
        )

        return WalletReport(
            address=address,
            eth_price_usd=eth_price,
            metrics=metrics,
            score=score,
            personality=personality,
            favorite_apps=favorite_apps,
            badges=tuple(badges),
            creator_cards=tuple(cards),
            nft_holdings=holdings.holdings,
            holdings_source=holdings.source.value if holdings.source else None,
            daily_activity=result.daily_activity,
            limited_data=metrics.limited_data,
            generated_at=now,
        )

    async def close(self) -> None:
        """Close all adapters and owned connections."""
        await asyncio.gather(
            self._chain.close(),
            self._explorer.close(),
            self._marketplace.close(),
            self._prices.close(),
            self._assets.close(),
        )
        if self._http is not None:
            await self._http.aclose()
        if self._redis is not None:
            await self._redis.aclose()

    async def __aenter__(self) -> WalletAnalyticsEngine:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
