"""JSON-RPC chain client with retries, failover and batched contract probes.

This module provides the chain adapter used for wallet lookups:
- Native balance, nonce and current block number via web3
- Retry logic with exponential backoff
- Failover to a secondary RPC URL
- Rate limiting to respect provider limits
- Batched ERC-1155 balanceOf probes over large token-id ranges
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Any

import aiohttp
import httpx
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception
from web3.providers import AsyncHTTPProvider

from wallet_analytics.sources.base import (
    DEFAULT_TIMEOUT,
    SHORT_TIMEOUT,
    RateLimiter,
    SourceCallError,
    SourceResult,
    source_call,
)

logger = logging.getLogger(__name__)

SOURCE_NAME = "rpc"

# Default configuration
DEFAULT_MAX_REQUESTS_PER_SECOND = 25
DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_DELAY_SECONDS = 0.5
DEFAULT_PROBE_BATCH_SIZE = 100

# balanceOf(address,uint256)
ERC1155_BALANCE_OF_SELECTOR = AsyncWeb3.to_hex(AsyncWeb3.keccak(text="balanceOf(address,uint256)")[:4])

RETRYABLE_ERRORS = (Web3Exception, aiohttp.ClientError, TimeoutError, OSError, ValueError)


class ChainClientError(Exception):
    """Base exception for chain client errors."""


class RPCError(ChainClientError):
    """Raised when an RPC call fails on every endpoint."""


def encode_erc1155_balance_of(owner: str, token_id: int) -> str:
    """Encode calldata for ERC-1155 balanceOf(owner, token_id).

    Args:
        owner: Account address.
        token_id: Token id to query.

    Returns:
        Hex-encoded calldata.
    """
    owner_padded = owner.lower().removeprefix("0x").rjust(64, "0")
    return f"{ERC1155_BALANCE_OF_SELECTOR}{owner_padded}{token_id:064x}"


class ChainClient:
    """Chain client with retries, failover and rate limiting.

    Example:
        ```python
        client = ChainClient(
            rpc_url="https://api.mainnet.abs.xyz",
            fallback_rpc_url="https://backup.example",
        )

        balance = await client.get_balance("0x...")
        if balance.ok:
            print(balance.value)

        owned = await client.probe_erc1155_balances(contract, "0x...", range(1, 901))
        ```
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        fallback_rpc_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        max_requests_per_second: float = DEFAULT_MAX_REQUESTS_PER_SECOND,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
    ) -> None:
        """Initialize the chain client.

        Args:
            rpc_url: Primary JSON-RPC endpoint URL.
            fallback_rpc_url: Optional fallback RPC URL for failover.
            http_client: Optional httpx client used for batched calls.
            max_requests_per_second: Rate limit for RPC calls.
            max_retries: Attempts per endpoint before giving up on it.
            retry_delay_seconds: Initial delay between retries.
        """
        self._rpc_url = rpc_url
        self._fallback_rpc_url = fallback_rpc_url
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds

        self._w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._w3_fallback: AsyncWeb3[AsyncHTTPProvider] | None = None
        if fallback_rpc_url:
            self._w3_fallback = AsyncWeb3(AsyncHTTPProvider(fallback_rpc_url))

        self._http = http_client or httpx.AsyncClient()
        self._owns_http = http_client is None

        self._rate_limiter = RateLimiter(max_requests_per_second)

        # Track primary RPC health
        self._primary_healthy = True
        self._last_primary_check = 0.0
        self._primary_recovery_interval = 60.0

    def _should_try_primary(self) -> bool:
        """Check if we should try the primary RPC."""
        if self._primary_healthy:
            return True
        now = time.monotonic()
        if now - self._last_primary_check > self._primary_recovery_interval:
            self._last_primary_check = now
            return True
        return False

    async def _call_eth(self, w3: AsyncWeb3[Any], name: str, *args: Any) -> Any:
        attr = getattr(w3.eth, name)
        # Properties such as block_number are awaitables, methods are callables
        if callable(attr):
            return await attr(*args)
        return await attr

    async def _execute_with_retry(self, name: str, *args: Any) -> Any:
        """Execute an RPC call with retry and failover logic.

        Args:
            name: Name of the web3 eth method or property.
            *args: Positional arguments for the method.

        Returns:
            Result from the RPC call.

        Raises:
            RPCError: If all retries and failover fail.
        """
        await self._rate_limiter.acquire()

        last_error: Exception | None = None

        endpoints: list[tuple[str, AsyncWeb3[Any]]] = []
        if self._should_try_primary():
            endpoints.append(("primary", self._w3))
        if self._w3_fallback:
            endpoints.append(("fallback", self._w3_fallback))

        for label, w3 in endpoints:
            delay = self._retry_delay
            for attempt in range(self._max_retries):
                try:
                    result = await self._call_eth(w3, name, *args)
                    if label == "primary":
                        self._primary_healthy = True
                    else:
                        logger.info("Fallback RPC succeeded for %s", name)
                    return result
                except RETRYABLE_ERRORS as e:
                    last_error = e
                    logger.warning(
                        "%s RPC %s failed (attempt %d/%d): %s",
                        label.capitalize(),
                        name,
                        attempt + 1,
                        self._max_retries,
                        e,
                    )
                    if attempt < self._max_retries - 1:
                        await asyncio.sleep(delay)
                        delay *= 2

            if label == "primary":
                self._primary_healthy = False
                self._last_primary_check = time.monotonic()

        raise RPCError(f"RPC call {name} failed after all retries: {last_error}")

    @source_call(SOURCE_NAME, timeout=DEFAULT_TIMEOUT)
    async def get_balance(self, address: str) -> int:
        """Get native balance in Wei.

        Args:
            address: Wallet address.

        Returns:
            Balance in Wei.
        """
        balance = await self._execute_with_retry(
            "get_balance",
            AsyncWeb3.to_checksum_address(address),
        )
        return int(balance)

    @source_call(SOURCE_NAME, timeout=DEFAULT_TIMEOUT)
    async def get_transaction_count(self, address: str) -> int:
        """Get wallet transaction count (nonce).

        Args:
            address: Wallet address.

        Returns:
            Number of transactions sent by the address.
        """
        count = await self._execute_with_retry(
            "get_transaction_count",
            AsyncWeb3.to_checksum_address(address),
        )
        return int(count)

    @source_call(SOURCE_NAME, timeout=SHORT_TIMEOUT)
    async def get_block_number(self) -> int:
        """Get the current block number."""
        return int(await self._execute_with_retry("block_number"))

    @source_call(SOURCE_NAME, timeout=DEFAULT_TIMEOUT)
    async def _probe_batch(
        self,
        contract: str,
        owner: str,
        token_ids: Sequence[int],
    ) -> dict[int, int]:
        """Send one JSON-RPC batch of balanceOf calls.

        Returns:
            Mapping of token id to balance for ids with a nonzero balance.
        """
        await self._rate_limiter.acquire()

        calls = [
            {
                "jsonrpc": "2.0",
                "id": token_id,
                "method": "eth_call",
                "params": [
                    {"to": contract, "data": encode_erc1155_balance_of(owner, token_id)},
                    "latest",
                ],
            }
            for token_id in token_ids
        ]
        response = await self._http.post(self._rpc_url, json=calls, timeout=DEFAULT_TIMEOUT)
        response.raise_for_status()
        payload = response.json()

        # Some nodes answer a batch with a single object
        responses = payload if isinstance(payload, list) else [payload]
        owned: dict[int, int] = {}
        for item in responses:
            if not isinstance(item, dict):
                raise SourceCallError(f"Unexpected batch item: {item!r}")
            result = item.get("result")
            if not result or result == "0x":
                continue
            balance = int(result, 16)
            if balance > 0:
                owned[int(item["id"])] = balance
        return owned

    async def probe_erc1155_balances(
        self,
        contract: str,
        owner: str,
        token_ids: Sequence[int],
        *,
        batch_size: int = DEFAULT_PROBE_BATCH_SIZE,
    ) -> SourceResult[dict[int, int]]:
        """Probe ERC-1155 balances for a range of token ids.

        Calls are packed into batches of batch_size and the batches are
        issued concurrently. A failed batch is skipped; the call only fails
        if every batch failed.

        Args:
            contract: ERC-1155 contract address.
            owner: Account address.
            token_ids: Token ids to probe.
            batch_size: Maximum calls per JSON-RPC batch.

        Returns:
            Mapping of owned token id to balance.
        """
        ids = list(token_ids)
        batches = [ids[i : i + batch_size] for i in range(0, len(ids), batch_size)]
        if not batches:
            return SourceResult.success({})

        results = await asyncio.gather(
            *(self._probe_batch(contract, owner, batch) for batch in batches)
        )

        owned: dict[int, int] = {}
        failures = [result for result in results if not result.ok]
        for result in results:
            owned.update(result.unwrap_or({}))

        if failures and len(failures) == len(batches):
            return SourceResult.failure(failures[0].error)  # type: ignore[arg-type]
        if failures:
            logger.warning(
                "%d/%d probe batches failed for contract %s",
                len(failures),
                len(batches),
                contract,
            )
        return SourceResult.success(dict(sorted(owned.items())))

    async def health_check(self) -> bool:
        """Check if the client can reach the RPC."""
        result = await self.get_block_number()
        return result.ok

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()
