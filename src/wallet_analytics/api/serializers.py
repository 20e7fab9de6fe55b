"""JSON representation of wallet reports.

Field names are camelCase to match the dashboard's WalletAnalytics shape.
Optional values that are unknown are omitted rather than sent as zero.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from wallet_analytics.models import Badge, CreatorCard, NftHolding, WalletReport

BADGE_COLOR = "#2edb84"
BADGE_ICON = "🏅"


def format_usd(amount: Decimal, decimals: int = 2) -> str:
    """Format a USD amount as "$1,234.5" with at most ``decimals`` places."""
    quantized = amount.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)
    text = f"{quantized:,.{decimals}f}"
    if decimals:
        text = text.rstrip("0").rstrip(".")
    return f"${text}"


def format_signed_usd(amount: Decimal, decimals: int = 0) -> str:
    """Format a USD amount with an explicit sign, e.g. "+$120" or "-$45"."""
    sign = "+" if amount >= 0 else "-"
    return sign + format_usd(abs(amount), decimals)


def badge_to_dict(badge: Badge) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": badge.id,
        "label": badge.label,
        "description": badge.description,
        "color": BADGE_COLOR,
        "icon": BADGE_ICON,
        "tokenId": str(badge.token_id),
    }
    if badge.image_url:
        data["image"] = badge.image_url
    return data


def creator_card_to_dict(card: CreatorCard) -> dict[str, Any]:
    data: dict[str, Any] = {
        "tokenId": str(card.token_id),
        "name": card.name,
        "balance": card.balance,
    }
    if card.image_url:
        data["image"] = card.image_url
    return data


def holding_to_dict(holding: NftHolding) -> dict[str, Any]:
    data: dict[str, Any] = {
        "contractAddress": holding.contract_address,
        "tokenId": holding.representative_token_id,
        "name": holding.name,
        "collectionName": holding.collection_name,
        "count": holding.owned_count,
    }
    if holding.image_url:
        data["image"] = holding.image_url
    if holding.estimated_usd_value is not None:
        data["estimatedValueUsd"] = float(holding.estimated_usd_value)
    return data


def report_to_dict(report: WalletReport) -> dict[str, Any]:
    """Serialize a WalletReport for the HTTP API and the CLI.

    Args:
        report: Report to serialize.

    Returns:
        JSON-compatible dictionary.
    """
    m = report.metrics
    net_pnl = m.net_pnl_usd

    return {
        "address": report.address,
        "balance": str(m.balance_wei),
        "balanceFormatted": f"{m.balance_eth:.4f} ETH",
        "balanceUsd": format_usd(report.balance_usd),
        "transactionCount": m.transaction_count,
        "firstTxDate": m.first_tx_date.isoformat() if m.first_tx_date else None,
        "lastTxDate": m.last_tx_date.isoformat() if m.last_tx_date else None,
        "walletAgeDays": m.wallet_age_days,
        "activeDays": m.active_days,
        "contractsInteracted": m.contracts_interacted,
        "tokenCount": m.token_count,
        "nftCount": m.nft_count,
        "totalGasUsed": f"{m.total_gas_eth:.6f} ETH",
        "totalGasUsedEth": float(m.total_gas_eth),
        "totalGasUsedUsd": format_usd(m.total_gas_usd),
        "tradingVolume": f"{m.trading_volume_eth:.4f} ETH",
        "tradingVolumeEth": float(m.trading_volume_eth),
        "tradingVolumeUsd": format_usd(m.trading_volume_usd, 0),
        "ethReceived": float(m.eth_received),
        "ethReceivedUsd": format_usd(m.eth_received_usd, 0),
        "ethSent": float(m.eth_sent),
        "ethSentUsd": format_usd(m.eth_sent_usd, 0),
        "netPnl": float(net_pnl),
        "netPnlUsd": format_signed_usd(net_pnl),
        "isProfitable": m.is_profitable,
        "ethPriceUsd": float(report.eth_price_usd),
        "favoriteApps": [
            {
                "address": app.address,
                "name": app.resolved_name or app.address,
                "interactions": app.interaction_count,
                "percentage": app.share_percent,
            }
            for app in report.favorite_apps
        ],
        "badges": [badge_to_dict(badge) for badge in report.badges],
        "abstractBadgeCount": len(report.badges),
        "xeetCards": [creator_card_to_dict(card) for card in report.creator_cards],
        "xeetCardCount": report.creator_card_count,
        "nftHoldings": [holding_to_dict(holding) for holding in report.nft_holdings],
        "holdingsSource": report.holdings_source,
        "walletScore": report.score.score,
        "walletRank": report.score.rank,
        "walletPercentile": report.score.percentile,
        "personality": {
            "title": report.personality.title,
            "emoji": report.personality.glyph,
            "description": report.personality.description,
        },
        "limitedData": report.limited_data,
        "priceFallbackCount": m.price_fallback_count,
        "dailyActivity": [
            {"date": entry.day.isoformat(), "count": entry.count} for entry in report.daily_activity
        ],
        "generatedAt": report.generated_at.isoformat(),
    }
