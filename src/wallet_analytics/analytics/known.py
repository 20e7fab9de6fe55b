"""Known addresses and reference tables for the Abstract chain.

Addresses are stored lowercase. The tables cover contracts whose names are
not available from the explorer, the badge and creator-card collections
that are probed directly, and a small set of NFT collections with a
last-known floor price used when the marketplace is unavailable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

# Mainnet launch of the chain; bounds estimated wallet ages
CHAIN_LAUNCH_DATE = date(2025, 1, 27)

# ERC-1155 badge collection, ids 1-50
BADGES_CONTRACT = "0xbc176ac2373614f9858a118917d83b139bcb3f8c"
BADGE_TOKEN_IDS = range(1, 51)

# Xeet creator cards (ERC-1155), ids 1-900
CREATOR_CARDS_CONTRACT = "0xec27d2237432d06981e1f18581494661517e1bd3"
CREATOR_CARD_TOKEN_IDS = range(1, 901)
CREATOR_CARDS_COLLECTION_IMAGE = (
    "https://i2c.seadn.io/collection/xeet-creator-cards/image_type_logo/"
    "b2b3ef6100871f21a24e968da0d24c/bcb2b3ef6100871f21a24e968da0d24c.png"
)

# Collections shown separately from regular NFT holdings
SEPARATELY_TRACKED_CONTRACTS = frozenset({BADGES_CONTRACT, CREATOR_CARDS_CONTRACT})

WRAPPED_NATIVE_ADDRESSES = frozenset(
    {
        "0x3439153eb7af838ad19d56e1571fbd09333c2809",
        "0x4200000000000000000000000000000000000006",
    }
)

STABLECOIN_ADDRESSES = frozenset(
    {
        "0x84a71ccd554cc1b02749b35d22f684cc8ec987e1",  # USDC.e
    }
)


@dataclass(frozen=True)
class KnownCollection:
    """A collection with a last-known floor price."""

    name: str
    floor_eth: Decimal


KNOWN_NFT_COLLECTIONS: dict[str, KnownCollection] = {
    "0x09bb4c785165915e66f4a645bc978a6c885a0319": KnownCollection("Web3 Playboys", Decimal("0.05")),
    "0x30072084ff8724098cbb65e07f7639ed31af5f66": KnownCollection("Dreamilio", Decimal("0.03")),
    "0xe501994195b9951413411395ed1921a88eff694e": KnownCollection("Abstract Checks", Decimal("0.01")),
    "0x100ea890ad486334c8a74c6a37e216c381ff8ddf": KnownCollection("Abstract Ordinals", Decimal("0.005")),
}

KNOWN_CONTRACTS: dict[str, str] = {
    "0x0000000000000000000000000000000000000000": "Native Transfer",
    # Abstract apps and protocols
    "0xbc176ac2373614f9858a118917d83b139bcb3f8c": "Abstract Badges",
    "0x96e1056a8814de39c8c3cd0176042d6e4a7dae92": "Abstract Portal",
    "0x8c826f795466e39acbff1bb4eeeb759609377ba1": "Abstract Bridge",
    "0x52629961f71c1c2564c5aa22372cb1b9fa9eba3e": "AGW (Global Wallet)",
    "0x7a250d5630b4cf539739df2c5dacb4c659f2488d": "Uniswap",
    "0x1231deb6f5749ef6ce6943a275a1d3e7486f4eae": "LI.FI",
    "0xe66dc11ab4f23d77a7b24de54d46b85ff1e91a27": "Relay Bridge",
    "0x6b5072a1b8c01ac41968b85744df2efa3ecf8155": "Jumper",
    "0x5c7bcd6e7de5423a257d81b442095a1a6ced35c5": "LayerZero",
    "0x19cec7dfcfda7f8254893e5ae8e09ebc18e7c89e": "Hyperlane",
    "0xfe5e5d361b2ad62c541bab87c45a0b9b018389a2": "Stargate",
    "0x5ff137d4b0fdcd49dca30c7cf57e578a026d2789": "Entry Point (AA)",
    "0x0000000071727de22e5e9d8baf0edac6f37da032": "Entry Point v0.7",
    # Wrapped ETH
    "0x3439153eb7af838ad19d56e1571fbd09333c2809": "WETH",
    "0x4200000000000000000000000000000000000006": "WETH",
    # DEXes
    "0x3fc91a3afd70395cd496c647d5a6cc9d4b2b7fad": "Uniswap Router",
    "0x68b3465833fb72a70ecdf485e0e4c7bd8665fc45": "Uniswap Router",
    "0x2626664c2603336e57b271c5c0b26f421741e481": "Uniswap V3 Router",
    "0xec7be89e9d109e7e3fec59c222cf297125fefda2": "Uniswap V4 Router",
    # Bridges
    "0x99c9fc46f92e8a1c0dec1b1747d010903e884be1": "Optimism Bridge",
    "0x32400084c286cf3e17e7b677ea9583e60a000324": "zkSync Bridge",
    # NFT marketplaces
    "0x00000000000000adc04c56bf30ac9d3c0aaf14dc": "Seaport",
    "0x00000000000001ad428e4906ae43d8f9852d0dd6": "Seaport 1.6",
    # Account abstraction
    "0x0000000000000000000000000000000000000001": "System Contract",
}


@dataclass(frozen=True)
class KnownBadge:
    """Name and artwork of a badge id."""

    name: str
    image_url: str


_BADGE_ASSETS = "https://abstract-assets.abs.xyz/badges"

KNOWN_BADGES: dict[int, KnownBadge] = {
    1: KnownBadge("Discord Verified", f"{_BADGE_ASSETS}/badge-discord.png"),
    2: KnownBadge("X Verified", f"{_BADGE_ASSETS}/badge-twitter.png"),
    3: KnownBadge("Fund your Account", f"{_BADGE_ASSETS}/badge-fund-account.png"),
    4: KnownBadge("App Voter", f"{_BADGE_ASSETS}/badge-app-voter.png"),
    5: KnownBadge("The Trader", f"{_BADGE_ASSETS}/badge-the-trader.png"),
    10: KnownBadge("You're So Early", f"{_BADGE_ASSETS}/badge-so-early.png"),
    16: KnownBadge("The Sock Master", f"{_BADGE_ASSETS}/badge-sock-master.png"),
    18: KnownBadge("Roach Racer", f"{_BADGE_ASSETS}/badge-roach-racing.png"),
    22: KnownBadge("Gacha Goat", f"{_BADGE_ASSETS}/badge-gacha-goat.png"),
    26: KnownBadge("The Big Badge", f"{_BADGE_ASSETS}/badge-bigcoin.png"),
    27: KnownBadge("Multiplier Mommy", f"{_BADGE_ASSETS}/badge-multiplier-mommy.png"),
    28: KnownBadge("Myriad Grand Master", f"{_BADGE_ASSETS}/badge-myriad-mastermind.png"),
    29: KnownBadge("Giga Juicy", f"{_BADGE_ASSETS}/badge-giga-juicy.png"),
    31: KnownBadge("Abstract Games Survivor", f"{_BADGE_ASSETS}/badge-abstract-games-survivor.png"),
    42: KnownBadge("Cambrian Artifact Hunter", f"{_BADGE_ASSETS}/badge-cambria-gold-rush.png"),
    45: KnownBadge("Email Notification", f"{_BADGE_ASSETS}/badge-email-notification.png"),
    46: KnownBadge("Speed Trader", f"{_BADGE_ASSETS}/badge-speed-trader.png"),
    48: KnownBadge("One Year Badge", f"{_BADGE_ASSETS}/badge-wrapped.png"),
}


def get_known_contract_name(address: str) -> str | None:
    """Look up a contract name from the static table."""
    return KNOWN_CONTRACTS.get(address.lower())


def get_known_collection(address: str) -> KnownCollection | None:
    """Look up a collection with a last-known floor price."""
    return KNOWN_NFT_COLLECTIONS.get(address.lower())
