"""Display names for contracts a wallet interacts with."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import replace

from wallet_analytics.analytics.cache import BoundedCache
from wallet_analytics.analytics.known import get_known_contract_name
from wallet_analytics.models import ContractInteraction, shorten_address
from wallet_analytics.sources.explorer import ExplorerClient

logger = logging.getLogger(__name__)


class ContractNameResolver:
    """Resolves contract names: known table, verified source, token info, short address.

    Names found through the explorer are kept in a bounded cache.
    """

    def __init__(self, explorer: ExplorerClient, cache: BoundedCache[str]) -> None:
        self._explorer = explorer
        self._cache = cache

    async def resolve(self, address: str) -> str:
        """Return the best available display name for an address."""
        known = get_known_contract_name(address)
        if known:
            return known

        cached = self._cache.get(address)
        if cached is not None:
            return cached

        name = (await self._explorer.get_contract_name(address)).unwrap_or(None)
        if not name:
            name = (await self._explorer.get_token_name(address)).unwrap_or(None)
        if not name:
            # Not cached, a later lookup may succeed
            return shorten_address(address)

        self._cache.set(address, name)
        return name

    async def name_interactions(
        self,
        interactions: Sequence[ContractInteraction],
    ) -> tuple[ContractInteraction, ...]:
        """Return the interactions with resolved_name filled in."""
        names = await asyncio.gather(*(self.resolve(i.address) for i in interactions))
        return tuple(
            replace(interaction, resolved_name=name)
            for interaction, name in zip(interactions, names, strict=True)
        )
