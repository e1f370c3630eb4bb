"""Volatility spread selection.

BTC/BCH have 10 min block times which can lead to more volatility, so
they get the highest spread of 1.5%. LTC/DOGE/DASH have ~2 min blocks
and get 1%. Everything else uses the default 0.75%, or 0.5% for like-kind
pairs. Streaming swaps carry no slippage limit per fill and use much
smaller spreads. All of these can be overridden by the exchange info
server.

Rule lists are scanned in order and the first match wins. There is no
specificity scoring.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from swapquote.models import SpreadConfig, SpreadRule, SpreadTrack, SwapRequest

logger = logging.getLogger(__name__)

VOLATILITY_SPREAD_DEFAULT = Decimal("0.0075")
LIKE_KIND_VOLATILITY_SPREAD_DEFAULT = Decimal("0.005")
VOLATILITY_SPREAD_STREAMING_DEFAULT = Decimal("0.001")
LIKE_KIND_VOLATILITY_SPREAD_STREAMING_DEFAULT = Decimal("0")

PER_ASSET_SPREAD_DEFAULT: tuple[SpreadRule, ...] = (
    SpreadRule(source_plugin_id="bitcoin", spread=Decimal("0.015")),
    SpreadRule(source_plugin_id="bitcoincash", spread=Decimal("0.015")),
    SpreadRule(source_plugin_id="dash", spread=Decimal("0.01")),
    SpreadRule(source_plugin_id="dogecoin", spread=Decimal("0.01")),
    SpreadRule(source_plugin_id="litecoin", spread=Decimal("0.01")),
)

# Economically equivalent variants of the same coin
LIKE_KIND_ASSETS: tuple[frozenset[str], ...] = (
    frozenset({"BTC", "WBTC", "SBTC", "RBTC"}),
    frozenset({"ETH", "WETH"}),
    frozenset({"USDC", "USDT", "DAI"}),
)

DEFAULT_SPREAD_CONFIG = SpreadConfig(
    atomic=SpreadTrack(
        rules=PER_ASSET_SPREAD_DEFAULT,
        default_spread=VOLATILITY_SPREAD_DEFAULT,
        like_kind_spread=LIKE_KIND_VOLATILITY_SPREAD_DEFAULT,
    ),
    streaming=SpreadTrack(
        rules=PER_ASSET_SPREAD_DEFAULT,
        default_spread=VOLATILITY_SPREAD_STREAMING_DEFAULT,
        like_kind_spread=LIKE_KIND_VOLATILITY_SPREAD_STREAMING_DEFAULT,
    ),
)


@dataclass(frozen=True)
class SpreadKey:
    """The six identifiers a spread rule can match on."""

    from_plugin_id: str
    from_token_id: Optional[str]
    from_currency_code: str
    to_plugin_id: str
    to_token_id: Optional[str]
    to_currency_code: str

    @classmethod
    def from_request(cls, request: SwapRequest) -> "SpreadKey":
        return cls(
            from_plugin_id=request.from_asset.plugin_id,
            from_token_id=request.from_asset.token_id,
            from_currency_code=request.from_asset.currency_code,
            to_plugin_id=request.to_asset.plugin_id,
            to_token_id=request.to_asset.token_id,
            to_currency_code=request.to_asset.currency_code,
        )


def is_like_kind(from_currency_code: str, to_currency_code: str) -> bool:
    """Check whether two currency codes are variants of the same coin."""
    for asset_class in LIKE_KIND_ASSETS:
        if from_currency_code in asset_class and to_currency_code in asset_class:
            return True
    return False


def rule_matches(rule: SpreadRule, key: SpreadKey) -> bool:
    """All populated matchers must equal the request's identifiers."""
    checks = (
        (rule.source_plugin_id, key.from_plugin_id),
        (rule.source_token_id, key.from_token_id),
        (rule.source_currency_code, key.from_currency_code),
        (rule.dest_plugin_id, key.to_plugin_id),
        (rule.dest_token_id, key.to_token_id),
        (rule.dest_currency_code, key.to_currency_code),
    )
    return all(expected is None or expected == actual for expected, actual in checks)


def get_volatility_spread(key: SpreadKey, track: SpreadTrack) -> Decimal:
    """Pick the spread for a pair from one track.

    Args:
        key: Identifiers of the requested pair
        track: Rules and fallbacks for atomic or streaming execution

    Returns:
        The first matching rule's spread, else the like-kind spread for
        like-kind pairs, else the default spread
    """
    for rule in track.rules:
        if rule_matches(rule, key):
            return rule.spread

    if is_like_kind(key.from_currency_code, key.to_currency_code):
        return track.like_kind_spread
    return track.default_spread


@dataclass(frozen=True)
class SpreadSelection:
    """Spreads resolved for one request, one per execution track."""

    atomic: Decimal
    streaming: Decimal

    def for_track(self, streaming: bool) -> Decimal:
        return self.streaming if streaming else self.atomic


ZERO_SPREAD = SpreadSelection(atomic=Decimal(0), streaming=Decimal(0))


def select_spreads(request: SwapRequest, config: SpreadConfig, is_estimate: bool = False) -> SpreadSelection:
    """Resolve both tracks' spreads for a request. Estimates get no spread."""
    if is_estimate:
        return ZERO_SPREAD

    key = SpreadKey.from_request(request)
    selection = SpreadSelection(
        atomic=get_volatility_spread(key, config.atomic),
        streaming=get_volatility_spread(key, config.streaming),
    )
    logger.debug(f"Volatility spread: atomic={selection.atomic} streaming={selection.streaming}")
    return selection
