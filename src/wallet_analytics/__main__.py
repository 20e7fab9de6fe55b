"""CLI entry point for Wallet Analytics.

Usage:
    python -m wallet_analytics 0x...              Print the JSON report
    python -m wallet_analytics --serve            Run the HTTP API
    python -m wallet_analytics --config-check     Validate config and exit
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import logging.config
import sys
from typing import NoReturn

from pydantic import ValidationError

from wallet_analytics import __version__
from wallet_analytics.analytics.engine import WalletAnalyticsEngine
from wallet_analytics.api.ratelimit import SlidingWindowRateLimiter
from wallet_analytics.api.serializers import report_to_dict
from wallet_analytics.api.server import AnalyticsServer
from wallet_analytics.config import Settings, clear_settings_cache, get_settings
from wallet_analytics.models import InvalidAddressError, PrimarySourceError, validate_address
from wallet_analytics.shutdown import GracefulShutdown

# Application info
APP_NAME = "Wallet Analytics"
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_USAGE_ERROR = 64
EXIT_INTERRUPTED = 130


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="wallet-analytics",
        description="Aggregate and score the on-chain activity of a wallet.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m wallet_analytics 0xabc...                 Analyze one address
  python -m wallet_analytics --serve --port 9000      Run the HTTP API
  python -m wallet_analytics --config-check           Validate config and exit
  python -m wallet_analytics 0xabc... --log-level DEBUG
        """,
    )

    parser.add_argument(
        "address",
        nargs="?",
        help="Account address to analyze",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )

    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run the HTTP API instead of analyzing a single address",
    )

    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Override HTTP port for --serve (default: from settings)",
    )

    return parser


def print_banner() -> None:
    """Print the application banner to stderr."""
    print(f"{APP_NAME} v{APP_VERSION}", file=sys.stderr)
    print(file=sys.stderr)


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Logs go to stderr so the JSON report on stdout stays parseable.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stderr",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        # Quieter logging for noisy libraries
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
            "web3": {"level": "WARNING"},
            "aiohttp.access": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_config_summary(settings: Settings) -> None:
    """Print a summary of the configuration to stderr.

    Args:
        settings: Application settings.
    """
    summary = settings.redacted_summary()
    print("Configuration:", file=sys.stderr)
    for key, value in summary.items():
        if isinstance(value, dict):
            print(f"  {key}:", file=sys.stderr)
            for sub_key, sub_value in value.items():
                print(f"    {sub_key}: {sub_value}", file=sys.stderr)
        else:
            print(f"  {key}: {value}", file=sys.stderr)
    print(file=sys.stderr)


def validate_config() -> Settings | None:
    """Validate and load configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        # Clear cache to force reload
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            msg = error["msg"]
            print(f"  {field}: {msg}", file=sys.stderr)
        return None


def run_config_check(settings: Settings) -> int:
    """Print the validated configuration.

    Args:
        settings: Validated settings.

    Returns:
        Exit code (0 for success).
    """
    print("Configuration is valid!", file=sys.stderr)
    print(file=sys.stderr)
    print_config_summary(settings)
    print(
        f"  Marketplace: {'configured' if settings.marketplace.enabled else 'not configured'}",
        file=sys.stderr,
    )
    print(
        f"  Redis price cache: {'configured' if settings.redis.enabled else 'not configured'}",
        file=sys.stderr,
    )
    return EXIT_SUCCESS


async def run_report(settings: Settings, address: str) -> int:
    """Analyze one address and print its JSON report.

    Args:
        settings: Application settings.
        address: Validated address.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)

    async with WalletAnalyticsEngine.from_settings(settings) as engine:
        try:
            report = await engine.analyze(address)
        except PrimarySourceError as e:
            logger.error("Analysis failed: %s", e)
            return EXIT_ERROR

    print(json.dumps(report_to_dict(report), indent=2, ensure_ascii=False))
    return EXIT_SUCCESS


async def run_server(
    settings: Settings,
    port: int,
    shutdown_timeout: float = 30.0,
) -> int:
    """Run the HTTP API until a shutdown signal arrives.

    Args:
        settings: Application settings.
        port: Port to listen on.
        shutdown_timeout: Maximum time to wait for cleanup.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)
    shutdown = GracefulShutdown(timeout=shutdown_timeout)

    try:
        async with shutdown:
            engine = WalletAnalyticsEngine.from_settings(settings)
            server = AnalyticsServer(
                engine,
                rate_limiter=SlidingWindowRateLimiter(
                    settings.server.rate_limit_requests,
                    settings.server.rate_limit_window_seconds,
                ),
            )
            # Stop accepting requests before closing the adapters
            shutdown.register_cleanup(server.stop_http_server)
            shutdown.register_cleanup(engine.close)

            await server.start_http_server(settings.server.host, port)
            logger.info("Server running. Press Ctrl+C to stop.")

            await shutdown.wait()
            logger.info("Shutdown signal received, stopping server...")

        return EXIT_SUCCESS
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except OSError as e:
        logger.error("Server failed: %s", e)
        return EXIT_ERROR


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Validate configuration first
    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    # Determine effective log level
    log_level = args.log_level or settings.log_level
    configure_logging(log_level)

    if args.config_check:
        sys.exit(run_config_check(settings))

    if args.serve:
        print_banner()
        print_config_summary(settings)
        port = args.port or settings.server.port
        sys.exit(asyncio.run(run_server(settings, port)))

    try:
        address = validate_address(args.address)
    except InvalidAddressError as e:
        print(f"error: {e}", file=sys.stderr)
        parser.print_usage(sys.stderr)
        sys.exit(EXIT_USAGE_ERROR)

    sys.exit(asyncio.run(run_report(settings, address)))


if __name__ == "__main__":
    main()
