"""Swap quote engine for THORChain-style cross-chain protocols."""

__version__ = "0.1.0"
