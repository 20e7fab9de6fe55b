"""Composite wallet score, rank, percentile and personality.

Scoring Formula:
    Each sub-score is floored and capped independently:

    age           min(20, age_days / 18.25)        1 year = 20 points
    transactions  min(25, log10(n + 1) * 8)
    active days   min(15, days / 6.67)             ~100 days = 15 points
    contracts     min(15, contracts / 3.33)        50 contracts = 15 points
    nfts          min(10, log10(n + 1) * 5)
    volume        min(10, log10(eth + 1) * 5)
    balance       min(5, log10(eth + 1) * 2.5)

    score = min(100, sum(sub-scores))

Rank and percentile come from fixed score thresholds, so a higher score
never yields a worse rank or percentile.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass

from wallet_analytics.models import Personality, WalletMetrics, WalletScore

MAX_SCORE = 100

# (minimum score, rank), checked top to bottom
RANK_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (90, "S"),
    (75, "A+"),
    (60, "A"),
    (45, "B"),
    (30, "C"),
    (15, "D"),
)
DEFAULT_RANK = "New"

# (minimum score, top X percent)
PERCENTILE_THRESHOLDS: tuple[tuple[int, int], ...] = (
    (90, 1),
    (85, 2),
    (80, 3),
    (75, 5),
    (70, 8),
    (65, 10),
    (60, 15),
    (55, 20),
    (50, 25),
    (45, 30),
    (40, 40),
    (35, 50),
    (30, 60),
    (25, 70),
    (20, 80),
    (15, 90),
)
DEFAULT_PERCENTILE = 95


@dataclass(frozen=True)
class ScoreBreakdown:
    """Individual sub-scores of the composite score."""

    age: int
    transactions: int
    active_days: int
    contracts: int
    nfts: int
    volume: int
    balance: int

    @property
    def total(self) -> int:
        """Return the capped composite score."""
        return min(
            MAX_SCORE,
            self.age
            + self.transactions
            + self.active_days
            + self.contracts
            + self.nfts
            + self.volume
            + self.balance,
        )


def _log_points(value: float, factor: float, cap: int) -> int:
    return min(cap, math.floor(math.log10(max(value, 0.0) + 1) * factor))


def score_breakdown(metrics: WalletMetrics) -> ScoreBreakdown:
    """Compute each sub-score for a set of metrics."""
    age = 0
    if metrics.wallet_age_days is not None:
        age = min(20, math.floor(max(metrics.wallet_age_days, 0) / 18.25))

    return ScoreBreakdown(
        age=age,
        transactions=_log_points(metrics.transaction_count, 8, 25),
        active_days=min(15, math.floor(metrics.active_days / 6.67)),
        contracts=min(15, math.floor(metrics.contracts_interacted / 3.33)),
        nfts=_log_points(metrics.nft_count, 5, 10),
        volume=_log_points(float(metrics.trading_volume_eth), 5, 10),
        balance=_log_points(float(metrics.balance_eth), 2.5, 5),
    )


def rank_for(score: int) -> str:
    """Return the rank letter for a score."""
    for minimum, rank in RANK_THRESHOLDS:
        if score >= minimum:
            return rank
    return DEFAULT_RANK


def percentile_for(score: int) -> int:
    """Return the 'top X%' bucket for a score."""
    for minimum, percentile in PERCENTILE_THRESHOLDS:
        if score >= minimum:
            return percentile
    return DEFAULT_PERCENTILE


def calculate_wallet_score(metrics: WalletMetrics) -> WalletScore:
    """Calculate the composite score with its rank and percentile.

    Args:
        metrics: Wallet metrics.

    Returns:
        WalletScore with score in [0, 100].
    """
    score = score_breakdown(metrics).total
    return WalletScore(score=score, rank=rank_for(score), percentile=percentile_for(score))


@dataclass(frozen=True)
class PersonalityRule:
    """A personality and the predicate that selects it."""

    personality: Personality
    matches: Callable[[WalletMetrics], bool]


def _tx_per_day(m: WalletMetrics) -> float:
    return m.transaction_count / m.active_days if m.active_days > 0 else 0.0


def _volume_per_tx(m: WalletMetrics) -> float:
    return float(m.trading_volume_eth) / m.transaction_count if m.transaction_count > 0 else 0.0


FALLBACK_PERSONALITY = Personality(
    "Abstract Explorer", "🚀", "Just getting started on their journey"
)

# Evaluated top to bottom; the first match wins
PERSONALITY_RULES: tuple[PersonalityRule, ...] = (
    PersonalityRule(
        Personality("Master Collector", "🏆", "A true NFT connoisseur with an impressive collection"),
        lambda m: m.nft_count >= 100 and m.trading_volume_eth >= 10,
    ),
    PersonalityRule(
        Personality("Degen Trader", "🎰", "Lives and breathes the market, trading at all hours"),
        lambda m: m.trading_volume_eth >= 100 and _tx_per_day(m) >= 10,
    ),
    PersonalityRule(
        Personality("DeFi Wizard", "🧙", "Masters every protocol, optimizes every yield"),
        lambda m: m.trading_volume_eth >= 50 and m.contracts_interacted >= 30,
    ),
    PersonalityRule(
        Personality("Diamond Hands", "💎", "HODLs through thick and thin"),
        lambda m: m.balance_eth >= 10 and m.active_days >= 30,
    ),
    PersonalityRule(
        Personality("Protocol Explorer", "🧭", "Tries every new app and protocol"),
        lambda m: m.contracts_interacted >= 50,
    ),
    PersonalityRule(
        Personality("NFT Enthusiast", "🎨", "Curates digital art and collectibles"),
        lambda m: m.nft_count >= 50,
    ),
    PersonalityRule(
        Personality("Power User", "⚡", "Consistently active and engaged"),
        lambda m: m.transaction_count >= 500 and m.active_days >= 30,
    ),
    PersonalityRule(
        Personality("Speed Demon", "🏎️", "Rapid-fire transactions all day"),
        lambda m: _tx_per_day(m) >= 5,
    ),
    PersonalityRule(
        Personality("Big Mover", "🐋", "Each transaction packs a punch"),
        lambda m: _volume_per_tx(m) >= 1,
    ),
    PersonalityRule(
        Personality("Consistent Builder", "🔨", "Steady and reliable, in it for the long haul"),
        lambda m: m.active_days >= 60,
    ),
    PersonalityRule(
        Personality("Rising Star", "⭐", "On their way to greatness"),
        lambda m: m.transaction_count >= 100,
    ),
    PersonalityRule(
        Personality("Active Trader", "📈", "Knows their way around the markets"),
        lambda m: m.trading_volume_eth >= 5,
    ),
)


def classify_personality(metrics: WalletMetrics) -> Personality:
    """Return the first personality whose rule matches the metrics."""
    for rule in PERSONALITY_RULES:
        if rule.matches(metrics):
            return rule.personality
    return FALLBACK_PERSONALITY
