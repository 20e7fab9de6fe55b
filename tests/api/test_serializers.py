"""Tests for report serialization."""

from __future__ import annotations

import json
from datetime import UTC, date, datetime
from decimal import Decimal

from wallet_analytics.api.serializers import (
    badge_to_dict,
    format_signed_usd,
    format_usd,
    holding_to_dict,
    report_to_dict,
)
from wallet_analytics.models import (
    Badge,
    ContractInteraction,
    CreatorCard,
    DailyActivity,
    NftHolding,
    Personality,
    WalletMetrics,
    WalletReport,
    WalletScore,
)

WALLET = "0x742d35cc6634c0532925a3b844bc9e7595f5eae2"
ROUTER = "0x7a250d5630b4cf539739df2c5dacb4c659f2488d"
ONE_ETH = 10**18


def make_report() -> WalletReport:
    metrics = WalletMetrics(
        balance_wei=ONE_ETH + ONE_ETH // 4,
        transaction_count=3,
        first_tx_date=date(2025, 3, 1),
        last_tx_date=date(2025, 3, 2),
        wallet_age_days=92,
        active_days=2,
        contracts_interacted=1,
        token_count=0,
        nft_count=4,
        total_gas_wei=21_000 * 10**9,
        total_gas_usd=Decimal("0.063"),
        trading_volume_eth=Decimal("1.5"),
        trading_volume_usd=Decimal("4000"),
        eth_received=Decimal("1"),
        eth_received_usd=Decimal("3000"),
        eth_sent=Decimal("0.5"),
        eth_sent_usd=Decimal("1000"),
        price_fallback_count=1,
    )
    return WalletReport(
        address=WALLET,
        eth_price_usd=Decimal("3000"),
        metrics=metrics,
        score=WalletScore(score=42, rank="C", percentile=40),
        personality=Personality("Active Trader", "📈", "Knows their way around the markets"),
        favorite_apps=(
            ContractInteraction(ROUTER, 2, 67, resolved_name="Uniswap"),
            ContractInteraction(WALLET, 1, 33),
        ),
        badges=(Badge(token_id=1, label="Discord Verified", description="Abstract Badge #1"),),
        creator_cards=(CreatorCard(token_id=12, name="Xeet Card #12", balance=2),),
        nft_holdings=(
            NftHolding(
                contract_address="0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa",
                representative_token_id="1",
                name="Item #1",
                collection_name="Alpha",
                owned_count=1,
                estimated_usd_value=Decimal("150"),
            ),
        ),
        holdings_source="marketplace",
        daily_activity=(DailyActivity(date(2025, 3, 1), 2), DailyActivity(date(2025, 3, 2), 1)),
        generated_at=datetime(2025, 6, 1, 12, 0, tzinfo=UTC),
    )


class TestFormatUsd:
    """Tests for USD formatting."""

    def test_thousands_and_trailing_zeros(self) -> None:
        assert format_usd(Decimal("1234.5")) == "$1,234.5"
        assert format_usd(Decimal("1000")) == "$1,000"
        assert format_usd(Decimal("0")) == "$0"

    def test_rounds_half_up(self) -> None:
        assert format_usd(Decimal("0.125")) == "$0.13"
        assert format_usd(Decimal("1234.5"), 0) == "$1,235"

    def test_signed(self) -> None:
        assert format_signed_usd(Decimal("120")) == "+$120"
        assert format_signed_usd(Decimal("-45.4")) == "-$45"


class TestItemSerializers:
    """Tests for nested item serializers."""

    def test_badge(self) -> None:
        data = badge_to_dict(Badge(token_id=5, label="The Trader", description="Abstract Badge #5"))
        assert data == {
            "id": "badge-5",
            "label": "The Trader",
            "description": "Abstract Badge #5",
            "color": "#2edb84",
            "icon": "🏅",
            "tokenId": "5",
        }

    def test_holding_without_value_omits_field(self) -> None:
        """An unknown value is absent, not zero."""
        holding = NftHolding(
            contract_address="0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb",
            representative_token_id="7",
            name="2 NFTs",
            collection_name="Beta",
            owned_count=2,
        )
        data = holding_to_dict(holding)
        assert "estimatedValueUsd" not in data
        assert data["count"] == 2


class TestReportToDict:
    """Tests for report_to_dict."""

    def test_fields(self) -> None:
        data = report_to_dict(make_report())

        assert data["address"] == WALLET
        assert data["balance"] == str(ONE_ETH + ONE_ETH // 4)
        assert data["balanceFormatted"] == "1.2500 ETH"
        assert data["balanceUsd"] == "$3,750"
        assert data["firstTxDate"] == "2025-03-01"
        assert data["activeDays"] == 2
        assert data["totalGasUsed"] == "0.000021 ETH"
        assert data["tradingVolumeUsd"] == "$4,000"
        assert data["netPnlUsd"] == "+$2,000"
        assert data["isProfitable"] is True
        assert data["favoriteApps"][0] == {
            "address": ROUTER,
            "name": "Uniswap",
            "interactions": 2,
            "percentage": 67,
        }
        assert data["favoriteApps"][1]["name"] == WALLET
        assert data["abstractBadgeCount"] == 1
        assert data["xeetCardCount"] == 2
        assert data["nftHoldings"][0]["estimatedValueUsd"] == 150.0
        assert data["holdingsSource"] == "marketplace"
        assert data["walletRank"] == "C"
        assert data["personality"]["emoji"] == "📈"
        assert data["priceFallbackCount"] == 1
        assert data["dailyActivity"] == [
            {"date": "2025-03-01", "count": 2},
            {"date": "2025-03-02", "count": 1},
        ]
        assert data["generatedAt"] == "2025-06-01T12:00:00+00:00"

    def test_json_serializable(self) -> None:
        json.dumps(report_to_dict(make_report()), ensure_ascii=False)
