"""Native currency price client (CoinGecko API).

Provides the current USD price and a daily USD price history. Both can be
cached in Redis; cache failures are logged and never fail a lookup.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

import httpx
from redis.asyncio import Redis

from wallet_analytics.sources.base import (
    DEFAULT_TIMEOUT,
    SHORT_TIMEOUT,
    SourceCallError,
    source_call,
)

logger = logging.getLogger(__name__)

SOURCE_NAME = "prices"

DEFAULT_PRICE_URL = "https://api.coingecko.com/api/v3"
DEFAULT_COIN_ID = "ethereum"
DEFAULT_HISTORY_DAYS = 365
DEFAULT_PRICE_CACHE_TTL = 300  # 5 minutes


class PriceClient:
    """Client for current and historical native currency prices.

    Example:
        ```python
        prices = PriceClient(redis=redis)
        current = (await prices.get_current_price()).unwrap_or(Decimal(2000))
        history = (await prices.get_price_history()).unwrap_or({})
        ```
    """

    def __init__(
        self,
        base_url: str = DEFAULT_PRICE_URL,
        *,
        coin_id: str = DEFAULT_COIN_ID,
        http_client: httpx.AsyncClient | None = None,
        redis: Redis | None = None,
        cache_ttl_seconds: int = DEFAULT_PRICE_CACHE_TTL,
    ) -> None:
        """Initialize the price client.

        Args:
            base_url: Price API base URL.
            coin_id: Coin identifier of the native currency.
            http_client: Optional shared httpx client.
            redis: Optional Redis client for caching prices.
            cache_ttl_seconds: How long to cache price data.
        """
        self._base_url = base_url.rstrip("/")
        self._coin_id = coin_id
        self._http = http_client or httpx.AsyncClient()
        self._owns_http = http_client is None
        self._redis = redis
        self._cache_ttl = cache_ttl_seconds
        self._cache_prefix = f"price:{coin_id}:"

    async def _get_cached(self, key: str) -> Any | None:
        """Get a cached JSON value if available."""
        if not self._redis:
            return None
        try:
            cached = await self._redis.get(f"{self._cache_prefix}{key}")
            if cached is None:
                return None
            return json.loads(cached if isinstance(cached, str) else cached.decode())
        except Exception as e:
            logger.warning("Failed to read cached price data %s: %s", key, e)
            return None

    async def _set_cached(self, key: str, value: Any) -> None:
        """Cache a JSON-serializable value."""
        if not self._redis:
            return
        try:
            await self._redis.set(f"{self._cache_prefix}{key}", json.dumps(value), ex=self._cache_ttl)
        except Exception as e:
            logger.warning("Failed to cache price data %s: %s", key, e)

    async def _get_json(self, path: str, params: dict[str, str], timeout: float) -> dict[str, Any]:
        response = await self._http.get(
            f"{self._base_url}{path}",
            params=params,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise SourceCallError(f"Unexpected response body from {path}")
        return body

    @source_call(SOURCE_NAME, timeout=SHORT_TIMEOUT)
    async def get_current_price(self) -> Decimal:
        """Get the current USD price of the native currency."""
        cached = await self._get_cached("current")
        if cached is not None:
            return Decimal(cached)

        body = await self._get_json(
            "/simple/price",
            {"ids": self._coin_id, "vs_currencies": "usd"},
            SHORT_TIMEOUT,
        )
        price = body[self._coin_id]["usd"]
        if price is None:
            raise SourceCallError("price missing from response")

        await self._set_cached("current", str(price))
        return Decimal(str(price))

    @source_call(SOURCE_NAME, timeout=DEFAULT_TIMEOUT)
    async def get_price_history(self, days: int = DEFAULT_HISTORY_DAYS) -> dict[date, Decimal]:
        """Get the daily USD price history.

        Points are keyed by their UTC day; when a day has several points
        the last one wins.

        Args:
            days: Number of days of history to request.

        Returns:
            Mapping of day to USD price.
        """
        cache_key = f"history:{days}"
        cached = await self._get_cached(cache_key)
        if cached is not None:
            return {date.fromisoformat(day): Decimal(price) for day, price in cached.items()}

        body = await self._get_json(
            f"/coins/{self._coin_id}/market_chart",
            {"vs_currency": "usd", "days": str(days)},
            DEFAULT_TIMEOUT,
        )
        history: dict[date, Decimal] = {}
        for timestamp_ms, price in body["prices"]:
            day = datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC).date()
            history[day] = Decimal(str(price))

        logger.debug("Fetched %d days of price history", len(history))
        await self._set_cached(cache_key, {day.isoformat(): str(price) for day, price in history.items()})
        return history

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()
