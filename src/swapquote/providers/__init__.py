"""Swap providers."""

from swapquote.providers.base import SwapAggregator, SwapProvider
from swapquote.providers.factory import (
    create_aggregator,
    create_mayaprotocol_provider,
    create_thorchain_provider,
)
from swapquote.providers.thorchain import ThorchainProvider, ThorchainProviderConfig

__all__ = [
    "SwapAggregator",
    "SwapProvider",
    "ThorchainProvider",
    "ThorchainProviderConfig",
    "create_aggregator",
    "create_mayaprotocol_provider",
    "create_thorchain_provider",
]
