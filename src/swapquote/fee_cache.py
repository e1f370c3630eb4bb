"""Per-quote-session custom fee cache.

A single quote build may ask the wallet for several spends (trial max
quote, final quote, pre-transaction). Storing the custom network fee under
a session id keeps those estimates consistent. Entries expire after a
fixed TTL and are swept lazily on the next write (new session or fee).
"""

import itertools
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_FEE_CACHE_TTL_SECONDS = 30.0


@dataclass
class _FeeEntry:
    timestamp: float
    custom_network_fee: Optional[dict[str, str]] = None


class CustomFeeCache:
    """Time-bounded map of session id -> custom network fee."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_FEE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _FeeEntry] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, uid: object) -> bool:
        return uid in self._entries

    def create_uid(self) -> str:
        """Start a new session and return its id."""
        now = self._clock()
        self._sweep(now)
        uid = str(next(self._ids))
        self._entries[uid] = _FeeEntry(timestamp=now)
        return uid

    def get_fees(self, uid: str) -> Optional[dict[str, str]]:
        entry = self._entries.get(uid)
        if entry is None:
            return None
        return entry.custom_network_fee

    def set_fees(self, uid: str, custom_network_fee: Optional[dict[str, str]]) -> None:
        now = self._clock()
        self._sweep(now)
        self._entries[uid] = _FeeEntry(timestamp=now, custom_network_fee=custom_network_fee)

    def _sweep(self, now: float) -> None:
        expired = [uid for uid, entry in self._entries.items() if now > entry.timestamp + self.ttl_seconds]
        for uid in expired:
            del self._entries[uid]
        if expired:
            logger.debug(f"Swept {len(expired)} expired fee cache entr(ies)")
