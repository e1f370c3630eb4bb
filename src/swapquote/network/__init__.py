"""Network helpers for unreliable third-party mirrors."""

from swapquote.network.racer import NetworkRacer, join_url

__all__ = [
    "NetworkRacer",
    "join_url",
]
