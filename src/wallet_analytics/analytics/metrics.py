"""Activity, volume and P&L metrics from a reconciled history."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

from wallet_analytics.analytics.known import (
    CHAIN_LAUNCH_DATE,
    STABLECOIN_ADDRESSES,
    WRAPPED_NATIVE_ADDRESSES,
)
from wallet_analytics.models import (
    ZERO_ADDRESS,
    ContractInteraction,
    DailyActivity,
    PriceBook,
    Transaction,
    TransactionHistory,
    WalletMetrics,
    wei_to_eth,
)

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_TOP_INTERACTIONS = 5
MIN_TOKEN_BALANCE = Decimal("0.0001")


@dataclass(frozen=True)
class MetricsResult:
    """Metrics plus the per-contract and per-day breakdowns."""

    metrics: WalletMetrics
    top_interactions: tuple[ContractInteraction, ...] = ()
    daily_activity: tuple[DailyActivity, ...] = ()


@dataclass
class _Flows:
    """Running native-currency totals."""

    volume_eth: Decimal = Decimal(0)
    volume_usd: Decimal = Decimal(0)
    received_eth: Decimal = Decimal(0)
    received_usd: Decimal = Decimal(0)
    sent_eth: Decimal = Decimal(0)
    sent_usd: Decimal = Decimal(0)
    price_fallbacks: int = 0
    fallback_days: set[date] = field(default_factory=set)

    def add_native(self, tx: Transaction, amount: Decimal, address: str, prices: PriceBook) -> None:
        day = tx.day
        if not prices.has_price_on(day):
            self.price_fallbacks += 1
            self.fallback_days.add(day)
        price = prices.price_on(day)
        self.volume_eth += amount
        self.volume_usd += amount * price
        if tx.to_address == address:
            self.received_eth += amount
            self.received_usd += amount * price
        elif tx.from_address == address:
            self.sent_eth += amount
            self.sent_usd += amount * price

    def add_stablecoin(self, tx: Transaction, amount: Decimal, address: str, current_price: Decimal) -> None:
        self.volume_usd += amount
        if current_price > 0:
            self.volume_eth += amount / current_price
        if tx.to_address == address:
            self.received_usd += amount
        elif tx.from_address == address:
            self.sent_usd += amount


def share_percent(count: int, total: int) -> int:
    """Return count/total as a whole percentage, rounding halves up."""
    if total <= 0:
        return 0
    return (count * 200 + total) // (2 * total)


def estimate_from_nonce(nonce: int, now: datetime) -> tuple[int, int, int]:
    """Estimate (wallet age days, active days, contracts) from the nonce alone."""
    days_since_launch = (now.astimezone(UTC).date() - CHAIN_LAUNCH_DATE).days
    active_days = max(1, nonce // 10)
    wallet_age_days = min(days_since_launch, active_days)
    contracts = max(1, nonce * 3 // 10)
    return wallet_age_days, active_days, contracts


class MetricsCalculator:
    """Derives WalletMetrics from history and prices.

    Single pass over the external transactions for activity, interactions
    and gas; internal transactions and wrapped-native transfers add to
    volume; stablecoin transfers add their USD amount directly.

    When no external transactions were found the activity figures are
    estimated from the nonce and the result is marked as limited data.
    """

    def __init__(self, *, top_interactions: int = DEFAULT_TOP_INTERACTIONS) -> None:
        self._top_interactions = top_interactions

    def calculate(
        self,
        address: str,
        history: TransactionHistory,
        prices: PriceBook,
        *,
        balance_wei: int,
        nonce: int,
        nft_count: int = 0,
        now: datetime | None = None,
    ) -> MetricsResult:
        """Compute metrics for an address.

        Args:
            address: Wallet address (lowercase).
            history: Deduplicated history with external transactions sorted.
            prices: Current and historical prices.
            balance_wei: Native balance.
            nonce: Transaction count reported by the node.
            nft_count: Reconciled NFT count.
            now: Reference time for age calculations.

        Returns:
            MetricsResult with metrics, top interactions and daily activity.
        """
        now = now or datetime.now(UTC)
        flows = _Flows()

        days: dict[date, int] = {}
        interactions: Counter[str] = Counter()
        gas_wei = 0

        for tx in history.external:
            days[tx.day] = days.get(tx.day, 0) + 1
            if tx.to_address:
                interactions[tx.to_address] += 1
            # Only the sender pays gas
            if tx.from_address == address:
                gas_wei += tx.gas_cost_wei
            if tx.value:
                flows.add_native(tx, wei_to_eth(tx.value), address, prices)

        for tx in history.internal:
            if tx.value:
                flows.add_native(tx, wei_to_eth(tx.value), address, prices)

        token_balances: dict[str, Decimal] = {}
        for tx in history.token_transfers:
            contract = tx.token_contract or ""
            amount = tx.token_amount
            if contract in WRAPPED_NATIVE_ADDRESSES:
                flows.add_native(tx, amount, address, prices)
            elif contract in STABLECOIN_ADDRESSES:
                flows.add_stablecoin(tx, amount, address, prices.current)

            if tx.to_address == address:
                token_balances[contract] = token_balances.get(contract, Decimal(0)) + amount
            elif tx.from_address == address:
                token_balances[contract] = token_balances.get(contract, Decimal(0)) - amount

        token_count = sum(1 for balance in token_balances.values() if balance > MIN_TOKEN_BALANCE)

        if flows.price_fallbacks:
            logger.info(
                "Valued %d transfers on %d days at the current price (no historical snapshot)",
                flows.price_fallbacks,
                len(flows.fallback_days),
            )

        first_tx_date: date | None = None
        last_tx_date: date | None = None
        wallet_age_days: int | None = None
        active_days = len(days)
        contracts_interacted = sum(1 for to in interactions if to != ZERO_ADDRESS)

        if history.external:
            first, last = history.external[0], history.external[-1]
            first_tx_date = first.day
            last_tx_date = last.day
            wallet_age_days = (now - first.timestamp).days
            transaction_count = len(history.external)
        else:
            transaction_count = nonce
            if nonce > 0:
                wallet_age_days, active_days, contracts_interacted = estimate_from_nonce(nonce, now)
                first_tx_date = (now - timedelta(days=wallet_age_days)).astimezone(UTC).date()
                last_tx_date = now.astimezone(UTC).date()
                logger.info(
                    "No explorer history for %s, estimated activity from nonce %d",
                    address,
                    nonce,
                )

        total_gas_usd = wei_to_eth(gas_wei) * prices.current
        trading_volume_usd = (
            flows.volume_usd if flows.volume_usd > 0 else flows.volume_eth * prices.current
        )

        metrics = WalletMetrics(
            balance_wei=balance_wei,
            transaction_count=transaction_count,
            first_tx_date=first_tx_date,
            last_tx_date=last_tx_date,
            wallet_age_days=wallet_age_days,
            active_days=active_days,
            contracts_interacted=contracts_interacted,
            token_count=token_count,
            nft_count=nft_count,
            total_gas_wei=gas_wei,
            total_gas_usd=total_gas_usd,
            trading_volume_eth=flows.volume_eth,
            trading_volume_usd=trading_volume_usd,
            eth_received=flows.received_eth,
            eth_received_usd=flows.received_usd,
            eth_sent=flows.sent_eth,
            eth_sent_usd=flows.sent_usd,
            limited_data=history.is_empty or history.degraded,
            price_fallback_count=flows.price_fallbacks,
        )

        total = len(history.external)
        # most_common keeps first-seen order among equal counts
        top = tuple(
            ContractInteraction(
                address=to,
                interaction_count=count,
                share_percent=share_percent(count, total),
            )
            for to, count in interactions.most_common(self._top_interactions)
        )
        daily = tuple(DailyActivity(day=day, count=count) for day, count in days.items())

        return MetricsResult(metrics=metrics, top_interactions=top, daily_activity=daily)
