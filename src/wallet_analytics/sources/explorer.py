"""Block explorer REST client (Etherscan-compatible API).

Provides paginated list endpoints for external transactions, internal
transactions, token transfers and NFT transfers, each filtered by block
range, plus contract and token name lookups.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

import httpx

from wallet_analytics.models import Transaction, TransactionKind
from wallet_analytics.sources.base import (
    DEFAULT_TIMEOUT,
    SHORT_TIMEOUT,
    RateLimiter,
    SourceCallError,
    source_call,
)

logger = logging.getLogger(__name__)

SOURCE_NAME = "explorer"

DEFAULT_EXPLORER_URL = "https://block-explorer-api.mainnet.abs.xyz/api"
DEFAULT_MAX_REQUESTS_PER_SECOND = 5

# Messages the API uses for a successful query with no rows
EMPTY_RESULT_MESSAGES = ("no transactions found", "no records found", "no token transfers found")


class HistoryClass(str, Enum):
    """Transfer classes the explorer can list, with their API action."""

    EXTERNAL = "txlist"
    INTERNAL = "txlistinternal"
    TOKEN = "tokentx"
    NFT = "tokennfttx"

    @property
    def kind(self) -> TransactionKind:
        """Return the transaction kind produced by this class."""
        if self is HistoryClass.EXTERNAL:
            return TransactionKind.EXTERNAL
        if self is HistoryClass.INTERNAL:
            return TransactionKind.INTERNAL
        return TransactionKind.TOKEN_TRANSFER


class ExplorerError(SourceCallError):
    """Raised when the explorer answers with an error status."""


def clean_contract_name(name: str) -> str:
    """Strip source path prefixes and the .sol suffix from a contract name.

    Example:
        >>> clean_contract_name("contracts/tokens/Token.sol:Token")
        'Token'
    """
    if ":" in name:
        name = name.split(":")[-1] or name
    if "/" in name:
        name = name.split("/")[-1] or name
    return name.replace(".sol", "")


class ExplorerClient:
    """Client for the block explorer's account, contract and token modules.

    Example:
        ```python
        explorer = ExplorerClient("https://block-explorer-api.mainnet.abs.xyz/api")
        page = await explorer.get_transactions(
            HistoryClass.EXTERNAL, "0x...", start_block=0, end_block=1_999_999, page=1
        )
        if page.ok:
            for tx in page.value:
                print(tx.hash)
        ```
    """

    def __init__(
        self,
        base_url: str = DEFAULT_EXPLORER_URL,
        *,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        max_requests_per_second: float = DEFAULT_MAX_REQUESTS_PER_SECOND,
    ) -> None:
        """Initialize the explorer client.

        Args:
            base_url: Explorer API endpoint.
            api_key: Optional API key sent as the apikey parameter.
            http_client: Optional shared httpx client.
            max_requests_per_second: Rate limit for explorer requests.
        """
        self._base_url = base_url
        self._api_key = api_key
        self._http = http_client or httpx.AsyncClient()
        self._owns_http = http_client is None
        self._rate_limiter = RateLimiter(max_requests_per_second)

    async def _query(self, params: dict[str, str], timeout: float) -> dict[str, Any]:
        """Issue one explorer request and return the decoded body."""
        await self._rate_limiter.acquire()
        if self._api_key:
            params = {**params, "apikey": self._api_key}
        response = await self._http.get(
            self._base_url,
            params=params,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ExplorerError(f"Unexpected response body: {body!r}")
        return body

    @staticmethod
    def _result_list(body: dict[str, Any]) -> list[Any]:
        """Return the result array, treating 'no rows' answers as empty."""
        result = body.get("result")
        if body.get("status") == "1" and isinstance(result, list):
            return result
        message = str(body.get("message", "")).lower()
        if isinstance(result, list) and (not result or message.startswith(EMPTY_RESULT_MESSAGES)):
            return []
        raise ExplorerError(f"status={body.get('status')} message={body.get('message')}: {result}")

    @source_call(SOURCE_NAME, timeout=DEFAULT_TIMEOUT)
    async def get_transactions(
        self,
        history_class: HistoryClass,
        address: str,
        *,
        start_block: int,
        end_block: int,
        page: int,
        offset: int = 1000,
    ) -> list[Transaction]:
        """Fetch one page of a wallet's history within a block range.

        Args:
            history_class: Which transfer class to list.
            address: Wallet address.
            start_block: First block of the range (inclusive).
            end_block: Last block of the range (inclusive).
            page: 1-based page number.
            offset: Page size.

        Returns:
            Parsed transactions of the page, in API order.
        """
        body = await self._query(
            {
                "module": "account",
                "action": history_class.value,
                "address": address,
                "startblock": str(start_block),
                "endblock": str(end_block),
                "page": str(page),
                "offset": str(offset),
                "sort": "asc",
            },
            DEFAULT_TIMEOUT,
        )
        records = self._result_list(body)
        return [Transaction.from_explorer(record, history_class.kind) for record in records]

    @source_call(SOURCE_NAME, timeout=SHORT_TIMEOUT)
    async def get_contract_name(self, address: str) -> str | None:
        """Look up the verified contract name for an address.

        Returns:
            Cleaned contract name, or None if the contract is not verified.
        """
        body = await self._query(
            {"module": "contract", "action": "getsourcecode", "address": address},
            SHORT_TIMEOUT,
        )
        if body.get("status") != "1":
            return None
        result = body.get("result") or []
        name = result[0].get("ContractName") if result else None
        return clean_contract_name(name) if name else None

    @source_call(SOURCE_NAME, timeout=SHORT_TIMEOUT)
    async def get_token_name(self, address: str) -> str | None:
        """Look up the token name (or symbol) for a token contract."""
        body = await self._query(
            {"module": "token", "action": "tokeninfo", "contractaddress": address},
            SHORT_TIMEOUT,
        )
        if body.get("status") != "1":
            return None
        result = body.get("result") or []
        if not result:
            return None
        return result[0].get("name") or result[0].get("symbol") or None

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()
