"""NFT marketplace client (OpenSea v2 API).

Provides the owned-assets inventory of an account and collection metadata
(name, image, floor price). The marketplace is optional: without an API
key the client reports itself disabled and callers skip it.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

import httpx

from wallet_analytics.models import CollectionData, OwnedNft
from wallet_analytics.sources.base import (
    DEFAULT_TIMEOUT,
    RateLimiter,
    SourceCallError,
    source_call,
)

logger = logging.getLogger(__name__)

SOURCE_NAME = "marketplace"

DEFAULT_MARKETPLACE_URL = "https://api.opensea.io/api/v2"
DEFAULT_CHAIN = "abstract"
DEFAULT_PAGE_LIMIT = 200
DEFAULT_MAX_PAGES = 10
DEFAULT_MAX_REQUESTS_PER_SECOND = 4


class MarketplaceDisabledError(SourceCallError):
    """Raised when the marketplace is queried without an API key."""


class MarketplaceClient:
    """Client for marketplace inventory and collection lookups.

    Example:
        ```python
        marketplace = MarketplaceClient(api_key="...")
        inventory = await marketplace.get_account_nfts("0x...")
        data = await marketplace.get_collection_data("0xcollection...")
        ```
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str = DEFAULT_MARKETPLACE_URL,
        chain: str = DEFAULT_CHAIN,
        http_client: httpx.AsyncClient | None = None,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        max_pages: int = DEFAULT_MAX_PAGES,
        max_requests_per_second: float = DEFAULT_MAX_REQUESTS_PER_SECOND,
    ) -> None:
        """Initialize the marketplace client.

        Args:
            api_key: Marketplace API key. The client is disabled without one.
            base_url: API base URL.
            chain: Chain slug used in account and contract paths.
            http_client: Optional shared httpx client.
            page_limit: Items per inventory page.
            max_pages: Safety limit on inventory pages.
            max_requests_per_second: Rate limit for marketplace requests.
        """
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._chain = chain
        self._http = http_client or httpx.AsyncClient()
        self._owns_http = http_client is None
        self._page_limit = page_limit
        self._max_pages = max_pages
        self._rate_limiter = RateLimiter(max_requests_per_second)

    @property
    def enabled(self) -> bool:
        """Return True if an API key is configured."""
        return bool(self._api_key)

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self._api_key:
            raise MarketplaceDisabledError("marketplace API key not configured")
        await self._rate_limiter.acquire()
        response = await self._http.get(
            f"{self._base_url}{path}",
            params=params,
            headers={"Accept": "application/json", "X-API-KEY": self._api_key},
            timeout=DEFAULT_TIMEOUT,
        )
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise SourceCallError(f"Unexpected response body from {path}")
        return body

    @staticmethod
    def _parse_nft(data: dict[str, Any]) -> OwnedNft:
        return OwnedNft(
            contract_address=(data.get("contract") or "").lower(),
            token_id=str(data.get("identifier") or ""),
            collection=data.get("collection") or "",
            name=data.get("name") or None,
            image_url=data.get("image_url") or data.get("display_image_url") or None,
            token_standard=data.get("token_standard") or "erc721",
        )

    @source_call(SOURCE_NAME, timeout=DEFAULT_TIMEOUT * 2)
    async def get_account_nfts(self, address: str) -> list[OwnedNft]:
        """Fetch all NFTs owned by an account (cursor-paginated).

        A failure on the first page fails the call. A failure on a later
        page stops pagination and keeps what was already collected.

        Args:
            address: Wallet address.

        Returns:
            Owned NFTs in API order.
        """
        path = f"/chain/{self._chain}/account/{address}/nfts"
        nfts: list[OwnedNft] = []
        cursor: str | None = None

        for page in range(self._max_pages):
            params: dict[str, Any] = {"limit": self._page_limit}
            if cursor:
                params["next"] = cursor
            try:
                body = await self._get(path, params)
            except (httpx.HTTPError, SourceCallError, ValueError) as e:
                if page == 0:
                    raise
                logger.warning(
                    "Marketplace inventory page %d failed for %s, keeping %d items: %s",
                    page + 1,
                    address,
                    len(nfts),
                    e,
                )
                break

            nfts.extend(self._parse_nft(item) for item in body.get("nfts") or [])

            cursor = body.get("next") or None
            if cursor is None:
                break

        logger.debug("Fetched %d marketplace NFTs for %s", len(nfts), address)
        return nfts

    @source_call(SOURCE_NAME, timeout=DEFAULT_TIMEOUT)
    async def get_collection_data(self, contract_address: str) -> CollectionData | None:
        """Fetch name, image and floor price for the collection of a contract.

        Args:
            contract_address: NFT contract address.

        Returns:
            CollectionData, or None if the contract has no listed items.
        """
        contract = contract_address.lower()
        sample = await self._get(f"/chain/{self._chain}/contract/{contract}/nfts", {"limit": 1})
        items = sample.get("nfts") or []
        slug = items[0].get("collection") if items else None
        if not slug:
            return None

        collection = await self._get(f"/collections/{slug}")

        floor_eth: Decimal | None = None
        try:
            stats = await self._get(f"/collections/{slug}/stats")
            floor = (stats.get("total") or {}).get("floor_price")
            if floor:
                floor_eth = Decimal(str(floor))
        except (httpx.HTTPError, SourceCallError, ValueError) as e:
            logger.debug("No stats for collection %s: %s", slug, e)

        return CollectionData(
            floor_eth=floor_eth,
            name=collection.get("name") or None,
            image_url=collection.get("image_url") or None,
        )

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()
