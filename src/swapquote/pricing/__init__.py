"""Pool-based quote pricing."""

from swapquote.pricing.calculator import PoolQuoteCalculator, embed_memo_limit
from swapquote.pricing.pools import find_pool, parse_pools
from swapquote.pricing.spread import (
    DEFAULT_SPREAD_CONFIG,
    SpreadSelection,
    get_volatility_spread,
    select_spreads,
)

__all__ = [
    "DEFAULT_SPREAD_CONFIG",
    "PoolQuoteCalculator",
    "SpreadSelection",
    "embed_memo_limit",
    "find_pool",
    "get_volatility_spread",
    "parse_pools",
    "select_spreads",
]
