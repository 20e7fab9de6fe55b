"""Tests for contract name resolution."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from wallet_analytics.analytics.cache import BoundedCache
from wallet_analytics.analytics.contracts import ContractNameResolver
from wallet_analytics.models import ContractInteraction
from wallet_analytics.sources.base import SourceError, SourceResult

UNKNOWN = "0x1234567890abcdef1234567890abcdef12345678"
UNISWAP = "0x7a250d5630b4cf539739df2c5dacb4c659f2488d"

FAILURE = SourceResult.failure(SourceError(source="explorer", operation="x", message="down"))


@pytest.fixture
def mock_explorer() -> MagicMock:
    explorer = MagicMock()
    explorer.get_contract_name = AsyncMock(return_value=SourceResult.success("Vault"))
    explorer.get_token_name = AsyncMock(return_value=SourceResult.success(None))
    return explorer


class TestContractNameResolver:
    """Tests for ContractNameResolver."""

    @pytest.mark.asyncio
    async def test_known_table_first(self, mock_explorer: MagicMock) -> None:
        resolver = ContractNameResolver(mock_explorer, BoundedCache())
        assert await resolver.resolve(UNISWAP) == "Uniswap"
        mock_explorer.get_contract_name.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_verified_name_is_cached(self, mock_explorer: MagicMock) -> None:
        cache: BoundedCache[str] = BoundedCache()
        resolver = ContractNameResolver(mock_explorer, cache)

        assert await resolver.resolve(UNKNOWN) == "Vault"
        assert await resolver.resolve(UNKNOWN) == "Vault"
        assert mock_explorer.get_contract_name.await_count == 1
        assert cache.get(UNKNOWN) == "Vault"

    @pytest.mark.asyncio
    async def test_token_name_fallback(self, mock_explorer: MagicMock) -> None:
        mock_explorer.get_contract_name = AsyncMock(return_value=SourceResult.success(None))
        mock_explorer.get_token_name = AsyncMock(return_value=SourceResult.success("Pengu"))
        resolver = ContractNameResolver(mock_explorer, BoundedCache())

        assert await resolver.resolve(UNKNOWN) == "Pengu"

    @pytest.mark.asyncio
    async def test_short_address_is_not_cached(self, mock_explorer: MagicMock) -> None:
        """Failed lookups return a short address and are retried later."""
        mock_explorer.get_contract_name = AsyncMock(return_value=FAILURE)
        mock_explorer.get_token_name = AsyncMock(return_value=FAILURE)
        cache: BoundedCache[str] = BoundedCache()
        resolver = ContractNameResolver(mock_explorer, cache)

        assert await resolver.resolve(UNKNOWN) == "0x1234...5678"
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_name_interactions(self, mock_explorer: MagicMock) -> None:
        resolver = ContractNameResolver(mock_explorer, BoundedCache())
        interactions = [
            ContractInteraction(address=UNISWAP, interaction_count=3, share_percent=75),
            ContractInteraction(address=UNKNOWN, interaction_count=1, share_percent=25),
        ]

        named = await resolver.name_interactions(interactions)

        assert [i.resolved_name for i in named] == ["Uniswap", "Vault"]
        assert named[0].interaction_count == 3
