"""Badge metadata client."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from wallet_analytics.sources.base import SHORT_TIMEOUT, SourceCallError, source_call

logger = logging.getLogger(__name__)

SOURCE_NAME = "assets"

DEFAULT_BADGE_METADATA_URL = "https://abstract-assets.abs.xyz/badges"


class AssetMetadataClient:
    """Fetches token metadata documents for badge ids."""

    def __init__(
        self,
        base_url: str = DEFAULT_BADGE_METADATA_URL,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient()
        self._owns_http = http_client is None

    @source_call(SOURCE_NAME, timeout=SHORT_TIMEOUT)
    async def get_badge_metadata(self, token_id: int) -> dict[str, Any]:
        """Fetch the metadata document (name, description, image) of a badge."""
        response = await self._http.get(f"{self._base_url}/{token_id}", timeout=SHORT_TIMEOUT)
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise SourceCallError(f"Unexpected metadata for badge {token_id}")
        return body

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()
