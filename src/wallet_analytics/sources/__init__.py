"""Source adapters - typed clients for the external data sources."""

from wallet_analytics.sources.assets import (
    AssetMetadataClient,
)
from wallet_analytics.sources.base import (
    DEFAULT_TIMEOUT,
    SHORT_TIMEOUT,
    SourceCallError,
    SourceError,
    SourceResult,
    source_call,
)
from wallet_analytics.sources.chain import (
    ChainClient,
    ChainClientError,
    RPCError,
)
from wallet_analytics.sources.explorer import (
    ExplorerClient,
    ExplorerError,
    HistoryClass,
)
from wallet_analytics.sources.marketplace import (
    MarketplaceClient,
)
from wallet_analytics.sources.prices import (
    PriceClient,
)

__all__ = [
    # Contract
    "DEFAULT_TIMEOUT",
    "SHORT_TIMEOUT",
    "SourceCallError",
    "SourceError",
    "SourceResult",
    "source_call",
    # Chain
    "ChainClient",
    "ChainClientError",
    "RPCError",
    # Explorer
    "ExplorerClient",
    "ExplorerError",
    "HistoryClass",
    # Marketplace
    "MarketplaceClient",
    # Prices
    "PriceClient",
    # Assets
    "AssetMetadataClient",
]
