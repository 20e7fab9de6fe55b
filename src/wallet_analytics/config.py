"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
wallet analytics service, loading and validating environment variables
at startup.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _validate_http_url(v: str | None) -> str | None:
    if v is None:
        return v
    if not v.startswith(("http://", "https://")):
        raise ValueError("URL must be an HTTP(S) endpoint")
    return v


class ChainSettings(BaseSettings):
    """JSON-RPC node settings."""

    model_config = SettingsConfigDict(env_prefix="ABSTRACT_")

    rpc_url: str = Field(
        default="https://api.mainnet.abs.xyz",
        alias="ABSTRACT_RPC_URL",
        description="Primary JSON-RPC endpoint",
    )
    fallback_rpc_url: str | None = Field(
        default=None,
        alias="ABSTRACT_FALLBACK_RPC_URL",
        description="Fallback JSON-RPC endpoint",
    )
    max_requests_per_second: float = Field(
        default=25,
        alias="ABSTRACT_RPC_MAX_RPS",
        description="Rate limit for RPC calls",
        gt=0,
    )

    @field_validator("rpc_url", "fallback_rpc_url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate RPC URL format."""
        return _validate_http_url(v)


class ExplorerSettings(BaseSettings):
    """Block explorer API settings."""

    model_config = SettingsConfigDict(env_prefix="EXPLORER_")

    api_url: str = Field(
        default="https://block-explorer-api.mainnet.abs.xyz/api",
        alias="EXPLORER_API_URL",
        description="Etherscan-compatible explorer API endpoint",
    )
    api_key: SecretStr | None = Field(
        default=None,
        alias="EXPLORER_API_KEY",
        description="Optional explorer API key",
    )
    max_requests_per_second: float = Field(
        default=5,
        alias="EXPLORER_MAX_RPS",
        description="Rate limit for explorer requests",
        gt=0,
    )

    @field_validator("api_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate explorer URL format."""
        _validate_http_url(v)
        return v


class MarketplaceSettings(BaseSettings):
    """NFT marketplace (OpenSea) settings."""

    model_config = SettingsConfigDict(env_prefix="OPENSEA_")

    api_key: SecretStr | None = Field(
        default=None,
        alias="OPENSEA_API_KEY",
        description="OpenSea API key; the marketplace is skipped without one",
    )
    api_url: str = Field(
        default="https://api.opensea.io/api/v2",
        alias="OPENSEA_API_URL",
        description="OpenSea API base URL",
    )
    chain: str = Field(
        default="abstract",
        alias="OPENSEA_CHAIN",
        description="Chain slug used by the marketplace",
    )

    @field_validator("api_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate marketplace URL format."""
        _validate_http_url(v)
        return v

    @property
    def enabled(self) -> bool:
        """Check if marketplace lookups are enabled."""
        return self.api_key is not None and bool(self.api_key.get_secret_value())


class PriceSettings(BaseSettings):
    """Native currency price API settings."""

    model_config = SettingsConfigDict(env_prefix="PRICE_")

    api_url: str = Field(
        default="https://api.coingecko.com/api/v3",
        alias="PRICE_API_URL",
        description="CoinGecko API base URL",
    )
    coin_id: str = Field(
        default="ethereum",
        alias="PRICE_COIN_ID",
        description="Coin identifier of the native currency",
    )
    fallback_usd: Decimal = Field(
        default=Decimal(2000),
        alias="PRICE_FALLBACK_USD",
        description="Price used when the current price is unavailable",
        gt=0,
    )
    history_days: int = Field(
        default=365,
        alias="PRICE_HISTORY_DAYS",
        description="Days of daily price history to fetch",
        ge=1,
    )
    cache_ttl_seconds: int = Field(
        default=300,
        alias="PRICE_CACHE_TTL",
        description="Redis cache lifetime for price data",
        ge=1,
    )

    @field_validator("api_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate price API URL format."""
        _validate_http_url(v)
        return v


class RedisSettings(BaseSettings):
    """Optional Redis connection settings."""

    model_config = SettingsConfigDict(env_prefix="")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string for the price cache",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is not None and not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v

    @property
    def enabled(self) -> bool:
        """Check if the Redis cache is configured."""
        return self.url is not None


class CacheSettings(BaseSettings):
    """In-process bounded cache settings."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    collection_capacity: int = Field(
        default=1000,
        alias="CACHE_COLLECTION_CAPACITY",
        description="Maximum cached collections",
        ge=1,
    )
    collection_ttl_seconds: float = Field(
        default=300,
        alias="CACHE_COLLECTION_TTL",
        description="Collection data lifetime in seconds",
        gt=0,
    )
    contract_name_capacity: int = Field(
        default=1000,
        alias="CACHE_CONTRACT_NAME_CAPACITY",
        description="Maximum cached contract names",
        ge=1,
    )
    contract_name_ttl_seconds: float = Field(
        default=3600,
        alias="CACHE_CONTRACT_NAME_TTL",
        description="Contract name lifetime in seconds",
        gt=0,
    )


class ServerSettings(BaseSettings):
    """HTTP API settings."""

    model_config = SettingsConfigDict(env_prefix="HTTP_")

    host: str = Field(
        default="0.0.0.0",
        alias="HTTP_HOST",
        description="Interface to bind",
    )
    port: int = Field(
        default=8080,
        alias="HTTP_PORT",
        description="HTTP port for the API",
        ge=1,
        le=65535,
    )
    rate_limit_requests: int = Field(
        default=20,
        alias="RATE_LIMIT_REQUESTS",
        description="Requests allowed per client per window",
        ge=1,
    )
    rate_limit_window_seconds: float = Field(
        default=60,
        alias="RATE_LIMIT_WINDOW_SECONDS",
        description="Rate limit window length",
        gt=0,
    )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from wallet_analytics.config import get_settings

        settings = get_settings()
        print(settings.chain.rpc_url)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested configuration groups
    chain: ChainSettings = Field(default_factory=ChainSettings)
    explorer: ExplorerSettings = Field(default_factory=ExplorerSettings)
    marketplace: MarketplaceSettings = Field(default_factory=MarketplaceSettings)
    prices: PriceSettings = Field(default_factory=PriceSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    # Application settings
    badge_metadata_url: str = Field(
        default="https://abstract-assets.abs.xyz/badges",
        alias="BADGE_METADATA_URL",
        description="Base URL of badge metadata documents",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    @field_validator("badge_metadata_url")
    @classmethod
    def validate_badge_url(cls, v: str) -> str:
        """Validate badge metadata URL format."""
        _validate_http_url(v)
        return v

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "chain": {
                "rpc_url": self.chain.rpc_url,
                "fallback_rpc_url": self.chain.fallback_rpc_url or "(not set)",
            },
            "explorer": {
                "api_url": self.explorer.api_url,
                "api_key": "(set)" if self.explorer.api_key else "(not set)",
            },
            "marketplace": {
                "api_url": self.marketplace.api_url,
                "api_key": "(set)" if self.marketplace.api_key else "(not set)",
            },
            "price_api_url": self.prices.api_url,
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "http_port": str(self.server.port),
            "rate_limit": f"{self.server.rate_limit_requests}/{self.server.rate_limit_window_seconds:g}s",
            "log_level": self.log_level,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            # URL has credentials - redact the password
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
