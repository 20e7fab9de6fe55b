"""Badge and creator-card ownership probes.

Both collections are ERC-1155 contracts that cannot be enumerated per
owner, so ownership is found by probing a fixed token-id range with
batched balanceOf calls.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from wallet_analytics.analytics.known import (
    BADGE_TOKEN_IDS,
    BADGES_CONTRACT,
    CREATOR_CARD_TOKEN_IDS,
    CREATOR_CARDS_CONTRACT,
    KNOWN_BADGES,
)
from wallet_analytics.models import Badge, CreatorCard
from wallet_analytics.sources.assets import AssetMetadataClient
from wallet_analytics.sources.chain import DEFAULT_PROBE_BATCH_SIZE, ChainClient

logger = logging.getLogger(__name__)


class BadgeProber:
    """Finds the badges and creator cards an address owns."""

    def __init__(
        self,
        chain: ChainClient,
        assets: AssetMetadataClient,
        *,
        badge_contract: str = BADGES_CONTRACT,
        badge_ids: Sequence[int] = BADGE_TOKEN_IDS,
        card_contract: str = CREATOR_CARDS_CONTRACT,
        card_ids: Sequence[int] = CREATOR_CARD_TOKEN_IDS,
        batch_size: int = DEFAULT_PROBE_BATCH_SIZE,
    ) -> None:
        self._chain = chain
        self._assets = assets
        self._badge_contract = badge_contract
        self._badge_ids = badge_ids
        self._card_contract = card_contract
        self._card_ids = card_ids
        self._batch_size = batch_size

    async def _describe_badge(self, token_id: int) -> Badge:
        """Resolve badge metadata: static table, then metadata host, then generic."""
        known = KNOWN_BADGES.get(token_id)
        if known is not None:
            return Badge(
                token_id=token_id,
                label=known.name,
                description=f"Abstract Badge #{token_id}",
                image_url=known.image_url,
            )

        result = await self._assets.get_badge_metadata(token_id)
        metadata = result.unwrap_or({})
        return Badge(
            token_id=token_id,
            label=metadata.get("name") or f"Badge #{token_id}",
            description=f"Abstract Badge #{token_id}",
            image_url=metadata.get("image") or None,
        )

    async def get_badges(self, address: str) -> list[Badge]:
        """Return the badges owned by an address, ordered by token id.

        A failed probe yields no badges.
        """
        result = await self._chain.probe_erc1155_balances(
            self._badge_contract,
            address,
            self._badge_ids,
            batch_size=self._batch_size,
        )
        if not result.ok:
            logger.warning("Badge probe failed for %s: %s", address, result.error)
            return []

        owned = result.value or {}
        return list(await asyncio.gather(*(self._describe_badge(token_id) for token_id in owned)))

    async def get_creator_cards(self, address: str) -> list[CreatorCard]:
        """Return the creator cards owned by an address with their balances."""
        result = await self._chain.probe_erc1155_balances(
            self._card_contract,
            address,
            self._card_ids,
            batch_size=self._batch_size,
        )
        if not result.ok:
            logger.warning("Creator card probe failed for %s: %s", address, result.error)
            return []

        return [
            CreatorCard(token_id=token_id, name=f"Xeet Card #{token_id}", balance=balance)
            for token_id, balance in (result.value or {}).items()
        ]
