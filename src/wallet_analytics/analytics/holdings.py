"""NFT holdings reconciliation.

Holdings come from an ordered list of resolvers. The marketplace inventory
is preferred because it covers every token standard; when it is empty or
unavailable, holdings are rebuilt from the NFT transfer log. The winning
inventory is grouped by collection and the largest groups are enriched
with collection data and a floor-price valuation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Protocol

from wallet_analytics.analytics.cache import BoundedCache
from wallet_analytics.analytics.known import SEPARATELY_TRACKED_CONTRACTS, get_known_collection
from wallet_analytics.models import (
    CollectionData,
    NftHolding,
    TransactionHistory,
    shorten_address,
)
from wallet_analytics.sources.explorer import ExplorerClient
from wallet_analytics.sources.marketplace import MarketplaceClient

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_MAX_ENRICHED_GROUPS = 10


class HoldingSource(str, Enum):
    """Where an inventory came from."""

    MARKETPLACE = "marketplace"
    TRANSFER_LOG = "transfer_log"


@dataclass(frozen=True)
class OwnedToken:
    """One owned token id with its quantity."""

    contract_address: str
    token_id: str
    quantity: int = 1
    name: str | None = None
    collection_name: str | None = None
    image_url: str | None = None


@dataclass(frozen=True)
class Inventory:
    """Owned tokens reported by one holding source."""

    source: HoldingSource
    tokens: tuple[OwnedToken, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.tokens

    @property
    def total_count(self) -> int:
        """Return the number of items held across all tokens."""
        return sum(token.quantity for token in self.tokens)


class HoldingResolver(Protocol):
    """Strategy that produces an inventory for an address."""

    source: HoldingSource

    async def resolve(self, address: str, history: TransactionHistory) -> Inventory: ...


class MarketplaceResolver:
    """Inventory from the marketplace's owned-assets endpoint."""

    source = HoldingSource.MARKETPLACE

    def __init__(self, marketplace: MarketplaceClient) -> None:
        self._marketplace = marketplace

    async def resolve(self, address: str, history: TransactionHistory) -> Inventory:
        if not self._marketplace.enabled:
            return Inventory(self.source)

        result = await self._marketplace.get_account_nfts(address)
        tokens = tuple(
            OwnedToken(
                contract_address=nft.contract_address,
                token_id=nft.token_id,
                name=nft.name,
                collection_name=nft.collection or None,
                image_url=nft.image_url,
            )
            for nft in result.unwrap_or([])
        )
        return Inventory(self.source, tokens)


class TransferLogResolver:
    """Inventory rebuilt from NFT transfers.

    The balance of each (contract, token id) is the sum of inbound minus
    outbound quantities; only positive balances are held.
    """

    source = HoldingSource.TRANSFER_LOG

    async def resolve(self, address: str, history: TransactionHistory) -> Inventory:
        balances: dict[tuple[str, str], int] = {}
        first_seen: dict[tuple[str, str], OwnedToken] = {}

        for tx in history.nft_transfers:
            if not tx.token_contract or tx.token_id is None:
                continue
            key = (tx.token_contract, tx.token_id)
            if key not in first_seen:
                first_seen[key] = OwnedToken(
                    contract_address=tx.token_contract,
                    token_id=tx.token_id,
                    name=tx.token_name,
                    collection_name=tx.token_symbol or tx.token_name,
                )
                balances[key] = 0
            if tx.to_address == address:
                balances[key] += tx.value
            elif tx.from_address == address:
                balances[key] -= tx.value

        tokens = tuple(
            OwnedToken(
                contract_address=token.contract_address,
                token_id=token.token_id,
                quantity=balances[key],
                name=token.name,
                collection_name=token.collection_name,
            )
            for key, token in first_seen.items()
            if balances[key] > 0
        )
        return Inventory(self.source, tokens)


class CollectionDataLookup:
    """Collection data from the bounded cache, the marketplace, then the known table."""

    def __init__(
        self,
        marketplace: MarketplaceClient,
        cache: BoundedCache[CollectionData],
    ) -> None:
        self._marketplace = marketplace
        self._cache = cache

    async def get(self, contract_address: str) -> CollectionData:
        """Return collection data; all fields are None when nothing is known."""
        cached = self._cache.get(contract_address)
        if cached is not None:
            return cached

        if self._marketplace.enabled:
            result = await self._marketplace.get_collection_data(contract_address)
            if result.ok and result.value is not None:
                self._cache.set(contract_address, result.value)
                return result.value

        known = get_known_collection(contract_address)
        if known is not None:
            return CollectionData(floor_eth=known.floor_eth, name=known.name)
        return CollectionData()


@dataclass(frozen=True)
class HoldingsResult:
    """Reconciled holdings.

    Attributes:
        source: Source of the winning inventory, or None if nothing is held.
        holdings: Enriched collection groups, largest first.
        nft_count: Total NFTs held, including badges and creator cards.
    """

    source: HoldingSource | None
    holdings: tuple[NftHolding, ...]
    nft_count: int


@dataclass
class _Group:
    contract_address: str
    tokens: list[OwnedToken]
    count: int = 0


def estimate_value(floor_eth: Decimal | None, count: int, eth_price_usd: Decimal) -> Decimal | None:
    """Return floor x count x price, or None without a positive floor."""
    if floor_eth is None or floor_eth <= 0:
        return None
    return floor_eth * count * eth_price_usd


class HoldingsReconciler:
    """Chooses an inventory and turns it into per-collection holdings.

    Example:
        ```python
        reconciler = HoldingsReconciler(
            [MarketplaceResolver(marketplace), TransferLogResolver()],
            collections=CollectionDataLookup(marketplace, cache),
            explorer=explorer,
        )
        result = await reconciler.reconcile(address, history, eth_price, badge_count=3, creator_card_count=1)
        ```
    """

    def __init__(
        self,
        resolvers: Sequence[HoldingResolver],
        *,
        collections: CollectionDataLookup,
        explorer: ExplorerClient | None = None,
        excluded_contracts: frozenset[str] = SEPARATELY_TRACKED_CONTRACTS,
        max_enriched_groups: int = DEFAULT_MAX_ENRICHED_GROUPS,
    ) -> None:
        """Initialize the reconciler.

        Args:
            resolvers: Holding resolvers in preference order.
            collections: Collection data lookup used for enrichment.
            explorer: Explorer used to name transfer-log collections.
            excluded_contracts: Contracts reported separately (badges, cards).
            max_enriched_groups: Number of largest groups kept and enriched.
        """
        self._resolvers = list(resolvers)
        self._collections = collections
        self._explorer = explorer
        self._excluded = excluded_contracts
        self._max_groups = max_enriched_groups

    async def choose_inventory(self, address: str, history: TransactionHistory) -> Inventory | None:
        """Return the first non-empty inventory in resolver order."""
        for resolver in self._resolvers:
            inventory = await resolver.resolve(address, history)
            if not inventory.is_empty:
                logger.debug(
                    "Using %s inventory for %s (%d items)",
                    inventory.source.value,
                    address,
                    inventory.total_count,
                )
                return inventory
        return None

    def _group(self, inventory: Inventory) -> list[_Group]:
        groups: dict[str, _Group] = {}
        for token in inventory.tokens:
            if token.contract_address in self._excluded:
                continue
            group = groups.setdefault(token.contract_address, _Group(token.contract_address, []))
            group.tokens.append(token)
            group.count += token.quantity
        # sorted() is stable, so equal counts keep first-seen order
        return sorted(groups.values(), key=lambda g: g.count, reverse=True)

    async def _token_names(self, contracts: list[str]) -> dict[str, str]:
        if self._explorer is None or not contracts:
            return {}
        results = await asyncio.gather(*(self._explorer.get_token_name(c) for c in contracts))
        return {
            contract: name
            for contract, result in zip(contracts, results, strict=True)
            if (name := result.unwrap_or(None))
        }

    async def reconcile(
        self,
        address: str,
        history: TransactionHistory,
        eth_price_usd: Decimal,
        *,
        badge_count: int = 0,
        creator_card_count: int = 0,
    ) -> HoldingsResult:
        """Reconcile NFT holdings for an address.

        Args:
            address: Wallet address (lowercase).
            history: Crawled history (NFT transfers feed the fallback resolver).
            eth_price_usd: Current native price used for valuation.
            badge_count: Number of badges found by probing.
            creator_card_count: Total creator-card balance found by probing.

        Returns:
            HoldingsResult with grouped holdings and the total NFT count.
        """
        inventory = await self.choose_inventory(address, history)
        if inventory is None:
            return HoldingsResult(None, (), badge_count + creator_card_count)

        groups = self._group(inventory)[: self._max_groups]
        contracts = [g.contract_address for g in groups]

        collection_data = await asyncio.gather(*(self._collections.get(c) for c in contracts))

        if inventory.source is HoldingSource.MARKETPLACE:
            # The marketplace inventory already includes badges and cards
            nft_count = inventory.total_count
            token_names: dict[str, str] = {}
        else:
            nft_count = (
                sum(t.quantity for t in inventory.tokens if t.contract_address not in self._excluded)
                + badge_count
                + creator_card_count
            )
            token_names = await self._token_names(contracts)

        holdings = tuple(
            self._build_holding(group, data, inventory.source, token_names, eth_price_usd)
            for group, data in zip(groups, collection_data, strict=True)
        )
        return HoldingsResult(inventory.source, holdings, nft_count)

    @staticmethod
    def _build_holding(
        group: _Group,
        data: CollectionData,
        source: HoldingSource,
        token_names: dict[str, str],
        eth_price_usd: Decimal,
    ) -> NftHolding:
        first = group.tokens[0]
        contract = group.contract_address

        if source is HoldingSource.MARKETPLACE:
            fallback_name = first.collection_name
            image_url = first.image_url or data.image_url
        else:
            known = get_known_collection(contract)
            fallback_name = (
                (known.name if known else None) or token_names.get(contract) or first.collection_name
            )
            image_url = data.image_url

        return NftHolding(
            contract_address=contract,
            representative_token_id=first.token_id,
            name=f"{group.count} NFTs" if group.count > 1 else (first.name or f"#{first.token_id}"),
            collection_name=data.name or fallback_name or shorten_address(contract),
            owned_count=group.count,
            image_url=image_url,
            estimated_usd_value=estimate_value(data.floor_eth, group.count, eth_price_usd),
        )
