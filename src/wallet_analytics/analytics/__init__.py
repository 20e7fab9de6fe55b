"""Wallet analytics - history reconciliation, metrics and scoring."""

from wallet_analytics.analytics.badges import (
    BadgeProber,
)
from wallet_analytics.analytics.cache import (
    BoundedCache,
)
from wallet_analytics.analytics.contracts import (
    ContractNameResolver,
)
from wallet_analytics.analytics.crawler import (
    HistoryCrawler,
    block_ranges,
)
from wallet_analytics.analytics.engine import (
    WalletAnalyticsEngine,
)
from wallet_analytics.analytics.holdings import (
    CollectionDataLookup,
    HoldingSource,
    HoldingsReconciler,
    Inventory,
    MarketplaceResolver,
    OwnedToken,
    TransferLogResolver,
)
from wallet_analytics.analytics.metrics import (
    MetricsCalculator,
    MetricsResult,
)
from wallet_analytics.analytics.scoring import (
    PERSONALITY_RULES,
    calculate_wallet_score,
    classify_personality,
)

__all__ = [
    # Engine
    "WalletAnalyticsEngine",
    # Cache
    "BoundedCache",
    # Crawler
    "HistoryCrawler",
    "block_ranges",
    # Holdings
    "BadgeProber",
    "CollectionDataLookup",
    "HoldingSource",
    "HoldingsReconciler",
    "Inventory",
    "MarketplaceResolver",
    "OwnedToken",
    "TransferLogResolver",
    # Metrics
    "ContractNameResolver",
    "MetricsCalculator",
    "MetricsResult",
    # Scoring
    "PERSONALITY_RULES",
    "calculate_wallet_score",
    "classify_personality",
]
