"""Wallet Analytics - On-chain activity aggregation and wallet scoring."""

__version__ = "0.1.0"
