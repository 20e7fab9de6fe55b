"""Data models for wallet analytics."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

WEI_PER_ETH = Decimal("1000000000000000000")
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")


class WalletAnalyticsError(Exception):
    """Base exception for wallet analytics errors."""


class InvalidAddressError(WalletAnalyticsError):
    """Raised when an address is missing or not a 20-byte hex string."""


class PrimarySourceError(WalletAnalyticsError):
    """Raised when balance or nonce cannot be fetched from the chain."""


def validate_address(address: str | None) -> str:
    """Validate an account address and return its lowercase form.

    Args:
        address: Raw address from the caller.

    Returns:
        Canonical lowercase address.

    Raises:
        InvalidAddressError: If the address is missing or malformed.
    """
    if not address:
        raise InvalidAddressError("Address required")
    if not ADDRESS_PATTERN.fullmatch(address):
        raise InvalidAddressError("Invalid address format")
    return address.lower()


def shorten_address(address: str) -> str:
    """Return a short display form of an address (0x1234...abcd)."""
    return f"{address[:6]}...{address[-4:]}"


def wei_to_eth(value: int) -> Decimal:
    """Convert an integer Wei amount to ETH."""
    return Decimal(value) / WEI_PER_ETH


class TransactionKind(str, Enum):
    """Class of a history record."""

    EXTERNAL = "external"
    INTERNAL = "internal"
    TOKEN_TRANSFER = "token_transfer"


@dataclass(frozen=True)
class Transaction:
    """A transaction or transfer retrieved from the explorer."""

    hash: str
    block_number: int
    timestamp: datetime
    from_address: str
    to_address: str | None
    value: int  # smallest unit of the native currency or token
    gas_used: int
    gas_price: int
    kind: TransactionKind = TransactionKind.EXTERNAL
    token_contract: str | None = None
    token_decimals: int | None = None
    token_symbol: str | None = None
    token_name: str | None = None
    token_id: str | None = None
    log_index: str | None = None
    trace_id: str | None = None

    @property
    def day(self) -> date:
        """Return the UTC calendar date of the transaction."""
        return self.timestamp.astimezone(UTC).date()

    @property
    def gas_cost_wei(self) -> int:
        """Return total gas cost in Wei."""
        return self.gas_used * self.gas_price

    @property
    def identity(self) -> str:
        """Return the deduplication key.

        External transactions are identified by hash alone. Internal and
        token transfers share the hash of their parent transaction, so their
        position inside it is part of the key.
        """
        if self.kind is TransactionKind.EXTERNAL:
            return self.hash
        if self.kind is TransactionKind.INTERNAL:
            position = self.trace_id or f"{self.from_address}>{self.to_address}:{self.value}"
            return f"{self.hash}#{position}"
        if self.log_index is not None:
            return f"{self.hash}#{self.log_index}"
        # Without a log position, identical transfers in one transaction
        # cannot be told apart from a row repeated across pages; keep one.
        return (
            f"{self.hash}#{self.token_contract}:{self.token_id}:"
            f"{self.from_address}>{self.to_address}:{self.value}"
        )

    @property
    def token_amount(self) -> Decimal:
        """Return the transfer value scaled by token decimals."""
        decimals = self.token_decimals if self.token_decimals is not None else 18
        return Decimal(self.value) / (Decimal(10) ** decimals)

    @classmethod
    def from_explorer(cls, data: dict[str, Any], kind: TransactionKind) -> Transaction:
        """Create a Transaction from an Etherscan-style explorer record.

        Args:
            data: Raw record from a txlist/txlistinternal/tokentx/tokennfttx result.
            kind: Class of the record.

        Returns:
            Parsed Transaction.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If a numeric field cannot be parsed.
        """
        to_address = data.get("to") or None
        decimals = data.get("tokenDecimal")
        if data.get("tokenID") is not None:
            # ERC-1155 transfers report a quantity; ERC-721 transfers move one token
            value = data.get("tokenValue") or "1"
        else:
            value = data.get("value") or "0"
        return cls(
            hash=data["hash"].lower(),
            block_number=int(data.get("blockNumber") or 0),
            timestamp=datetime.fromtimestamp(int(data["timeStamp"]), tz=UTC),
            from_address=(data.get("from") or "").lower(),
            to_address=to_address.lower() if to_address else None,
            value=int(value),
            gas_used=int(data.get("gasUsed") or 0),
            gas_price=int(data.get("gasPrice") or 0),
            kind=kind,
            token_contract=(data.get("contractAddress") or "").lower() or None,
            token_decimals=int(decimals) if decimals not in (None, "") else None,
            token_symbol=data.get("tokenSymbol") or None,
            token_name=data.get("tokenName") or None,
            token_id=data.get("tokenID"),
            log_index=data.get("logIndex") or None,
            trace_id=data.get("traceId") or None,
        )


@dataclass(frozen=True)
class TransactionHistory:
    """Deduplicated wallet history returned by the crawler.

    Attributes:
        external: External transactions sorted by timestamp ascending.
        internal: Internal value transfers.
        token_transfers: Fungible token transfers.
        nft_transfers: Non-fungible token transfers.
        degraded: True if any page request failed or a range hit the page cap.
        pages_fetched: Number of explorer pages fetched per class.
    """

    external: tuple[Transaction, ...] = ()
    internal: tuple[Transaction, ...] = ()
    token_transfers: tuple[Transaction, ...] = ()
    nft_transfers: tuple[Transaction, ...] = ()
    degraded: bool = False
    pages_fetched: dict[str, int] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        """Return True if the explorer yielded no external transactions."""
        return not self.external


@dataclass(frozen=True)
class PriceBook:
    """Daily USD prices for the native currency plus the current price."""

    current: Decimal
    history: dict[date, Decimal] = field(default_factory=dict)

    def has_price_on(self, day: date) -> bool:
        """Return True if a historical snapshot covers the day."""
        return day in self.history

    def price_on(self, day: date) -> Decimal:
        """Return the USD price on a day, falling back to the current price."""
        return self.history.get(day, self.current)


@dataclass(frozen=True)
class ContractInteraction:
    """A contract (or address) the wallet sent transactions to."""

    address: str
    interaction_count: int
    share_percent: int
    resolved_name: str | None = None


@dataclass(frozen=True)
class DailyActivity:
    """Number of transactions on one calendar day."""

    day: date
    count: int


@dataclass(frozen=True)
class CollectionData:
    """Marketplace metadata for an NFT collection."""

    floor_eth: Decimal | None = None
    name: str | None = None
    image_url: str | None = None


@dataclass(frozen=True)
class OwnedNft:
    """An NFT item reported by the marketplace inventory."""

    contract_address: str
    token_id: str
    collection: str
    name: str | None = None
    image_url: str | None = None
    token_standard: str = "erc721"


@dataclass(frozen=True)
class NftHolding:
    """Holdings of one collection, counts collapsed.

    estimated_usd_value is None when no floor price is known, which is
    distinct from a value of zero.
    """

    contract_address: str
    representative_token_id: str
    name: str
    collection_name: str
    owned_count: int
    image_url: str | None = None
    estimated_usd_value: Decimal | None = None


@dataclass(frozen=True)
class Badge:
    """An owned badge token."""

    token_id: int
    label: str
    description: str
    image_url: str | None = None

    @property
    def id(self) -> str:
        return f"badge-{self.token_id}"


@dataclass(frozen=True)
class CreatorCard:
    """An owned creator card token."""

    token_id: int
    name: str
    balance: int
    image_url: str | None = None


@dataclass(frozen=True)
class WalletMetrics:
    """Aggregate activity metrics for a wallet."""

    balance_wei: int
    transaction_count: int
    first_tx_date: date | None
    last_tx_date: date | None
    wallet_age_days: int | None
    active_days: int
    contracts_interacted: int
    token_count: int
    nft_count: int
    total_gas_wei: int
    total_gas_usd: Decimal
    trading_volume_eth: Decimal
    trading_volume_usd: Decimal
    eth_received: Decimal
    eth_received_usd: Decimal
    eth_sent: Decimal
    eth_sent_usd: Decimal
    limited_data: bool = False
    price_fallback_count: int = 0

    @property
    def balance_eth(self) -> Decimal:
        """Return balance in ETH."""
        return wei_to_eth(self.balance_wei)

    @property
    def total_gas_eth(self) -> Decimal:
        """Return gas spent in ETH."""
        return wei_to_eth(self.total_gas_wei)

    @property
    def net_pnl_usd(self) -> Decimal:
        """Return received minus sent minus gas, in USD."""
        return self.eth_received_usd - self.eth_sent_usd - self.total_gas_usd

    @property
    def is_profitable(self) -> bool:
        return self.net_pnl_usd > 0


@dataclass(frozen=True)
class WalletScore:
    """Composite activity score with its rank letter and percentile bucket."""

    score: int
    rank: str
    percentile: int


@dataclass(frozen=True)
class Personality:
    """Behavioral label for a wallet."""

    title: str
    glyph: str
    description: str


@dataclass(frozen=True)
class WalletReport:
    """Complete analytics report for one address."""

    address: str
    eth_price_usd: Decimal
    metrics: WalletMetrics
    score: WalletScore
    personality: Personality
    favorite_apps: tuple[ContractInteraction, ...] = ()
    badges: tuple[Badge, ...] = ()
    creator_cards: tuple[CreatorCard, ...] = ()
    nft_holdings: tuple[NftHolding, ...] = ()
    holdings_source: str | None = None
    daily_activity: tuple[DailyActivity, ...] = ()
    limited_data: bool = False
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def balance_usd(self) -> Decimal:
        """Return balance valued at the current price."""
        return self.metrics.balance_eth * self.eth_price_usd

    @property
    def creator_card_count(self) -> int:
        """Return the total number of creator cards held."""
        return sum(card.balance for card in self.creator_cards)
