"""Tests for the NFT marketplace client."""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal

import httpx
import pytest

from wallet_analytics.sources.marketplace import MarketplaceClient

MARKETPLACE_URL = "https://marketplace.example/api/v2"
WALLET = "0x742d35cc6634c0532925a3b844bc9e7595f5eae2"
CONTRACT = "0x5555555555555555555555555555555555555555"


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    api_key: str | None = "key",
) -> MarketplaceClient:
    """Create a MarketplaceClient backed by a mock transport."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MarketplaceClient(
        api_key,
        base_url=MARKETPLACE_URL,
        http_client=http,
        max_requests_per_second=1000,
    )


def nft(identifier: str, collection: str = "bears") -> dict[str, str]:
    return {
        "identifier": identifier,
        "collection": collection,
        "contract": CONTRACT.upper().replace("0X", "0x"),
        "name": f"Bear #{identifier}",
        "image_url": f"https://img.example/{identifier}.png",
        "token_standard": "erc721",
    }


class TestMarketplaceDisabled:
    """Tests for the client without an API key."""

    def test_disabled_without_key(self) -> None:
        client = MarketplaceClient(None)
        assert client.enabled is False

    @pytest.mark.asyncio
    async def test_calls_fail_without_key(self) -> None:
        """Calls without a key fail without touching the network."""
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        client = make_client(handler, api_key=None)
        result = await client.get_account_nfts(WALLET)

        assert not result.ok
        assert calls == []


class TestGetAccountNfts:
    """Tests for the owned-assets inventory."""

    @pytest.mark.asyncio
    async def test_follows_cursor(self) -> None:
        """Pages are followed through the next cursor."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if "next" not in request.url.params:
                return httpx.Response(200, json={"nfts": [nft("1"), nft("2")], "next": "abc"})
            return httpx.Response(200, json={"nfts": [nft("3")]})

        client = make_client(handler)
        result = await client.get_account_nfts(WALLET)

        assert result.value is not None
        assert [item.token_id for item in result.value] == ["1", "2", "3"]
        assert result.value[0].contract_address == CONTRACT
        assert seen[0].headers["X-API-KEY"] == "key"
        assert seen[0].url.path.endswith(f"/chain/abstract/account/{WALLET}/nfts")
        assert seen[1].url.params["next"] == "abc"

    @pytest.mark.asyncio
    async def test_first_page_failure_fails(self) -> None:
        """A failure on the first page fails the whole call."""
        client = make_client(lambda request: httpx.Response(500))
        result = await client.get_account_nfts(WALLET)
        assert not result.ok

    @pytest.mark.asyncio
    async def test_later_page_failure_keeps_items(self) -> None:
        """A failure on a later page keeps what was collected."""

        def handler(request: httpx.Request) -> httpx.Response:
            if "next" not in request.url.params:
                return httpx.Response(200, json={"nfts": [nft("1")], "next": "abc"})
            return httpx.Response(503)

        client = make_client(handler)
        result = await client.get_account_nfts(WALLET)

        assert result.ok
        assert result.value is not None
        assert len(result.value) == 1


class TestGetCollectionData:
    """Tests for collection metadata lookups."""

    @pytest.mark.asyncio
    async def test_collection_with_floor(self) -> None:
        """Slug, collection and stats are combined."""

        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path.endswith(f"/contract/{CONTRACT}/nfts"):
                return httpx.Response(200, json={"nfts": [nft("1")]})
            if path.endswith("/collections/bears/stats"):
                return httpx.Response(200, json={"total": {"floor_price": 0.25}})
            if path.endswith("/collections/bears"):
                return httpx.Response(
                    200, json={"name": "Bears", "image_url": "https://img.example/bears.png"}
                )
            return httpx.Response(404)

        client = make_client(handler)
        result = await client.get_collection_data(CONTRACT)

        assert result.value is not None
        assert result.value.name == "Bears"
        assert result.value.floor_eth == Decimal("0.25")
        assert result.value.image_url == "https://img.example/bears.png"

    @pytest.mark.asyncio
    async def test_missing_stats_keeps_metadata(self) -> None:
        """A failing stats endpoint leaves the floor unknown."""

        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path.endswith("/nfts"):
                return httpx.Response(200, json={"nfts": [nft("1")]})
            if path.endswith("/stats"):
                return httpx.Response(500)
            return httpx.Response(200, json={"name": "Bears"})

        client = make_client(handler)
        result = await client.get_collection_data(CONTRACT)

        assert result.value is not None
        assert result.value.name == "Bears"
        assert result.value.floor_eth is None

    @pytest.mark.asyncio
    async def test_unlisted_contract(self) -> None:
        """A contract with no listed items has no collection data."""
        client = make_client(lambda request: httpx.Response(200, json={"nfts": []}))
        result = await client.get_collection_data(CONTRACT)
        assert result.ok
        assert result.value is None
