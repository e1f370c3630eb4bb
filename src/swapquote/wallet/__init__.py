"""Wallet collaborator interface and a simulated implementation."""

from swapquote.wallet.base import CurrencyWallet
from swapquote.wallet.dry_run import SimulatedWallet

__all__ = [
    "CurrencyWallet",
    "SimulatedWallet",
]
