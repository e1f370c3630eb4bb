"""Tests for volatility spread selection."""

from decimal import Decimal

from swapquote.models import AssetRef, QuoteDirection, SpreadConfig, SpreadRule, SpreadTrack, SwapRequest
from swapquote.pricing.spread import (
    DEFAULT_SPREAD_CONFIG,
    SpreadKey,
    get_volatility_spread,
    is_like_kind,
    select_spreads,
)

WBTC_TOKEN_ID = "2260fac5e5542a773aa44fbcfedf7c193bc2c599"


def make_key(
    from_plugin_id: str = "bitcoin",
    from_code: str = "BTC",
    to_plugin_id: str = "ethereum",
    to_code: str = "ETH",
    from_token_id=None,
    to_token_id=None,
) -> SpreadKey:
    return SpreadKey(
        from_plugin_id=from_plugin_id,
        from_token_id=from_token_id,
        from_currency_code=from_code,
        to_plugin_id=to_plugin_id,
        to_token_id=to_token_id,
        to_currency_code=to_code,
    )


class TestGetVolatilitySpread:
    """Tests for rule matching and fallbacks."""

    def test_matching_rule_beats_default(self):
        """Test a source-chain rule is chosen over the track default."""
        track = SpreadTrack(
            rules=(SpreadRule(spread=Decimal("0.003"), source_plugin_id="bitcoin"),),
            default_spread=Decimal("0.02"),
            like_kind_spread=Decimal("0.01"),
        )

        assert get_volatility_spread(make_key(), track) == Decimal("0.003")

    def test_like_kind_fallback(self):
        """Test BTC -> WBTC falls back to the like-kind spread."""
        track = SpreadTrack(
            rules=(SpreadRule(spread=Decimal("0.05"), source_plugin_id="dogecoin"),),
            default_spread=Decimal("0.002"),
            like_kind_spread=Decimal("0.001"),
        )
        key = make_key(to_code="WBTC", to_token_id=WBTC_TOKEN_ID)

        assert get_volatility_spread(key, track) == Decimal("0.001")

    def test_default_when_nothing_matches(self):
        track = SpreadTrack(rules=(), default_spread=Decimal("0.0075"), like_kind_spread=Decimal("0.005"))

        assert get_volatility_spread(make_key(), track) == Decimal("0.0075")

    def test_first_match_wins_regardless_of_specificity(self):
        """Test rules are scanned in order, with no specificity scoring."""
        track = SpreadTrack(
            rules=(
                SpreadRule(spread=Decimal("0.02")),
                SpreadRule(spread=Decimal("0.003"), source_plugin_id="bitcoin", dest_currency_code="ETH"),
            ),
            default_spread=Decimal("0.0075"),
            like_kind_spread=Decimal("0.005"),
        )

        assert get_volatility_spread(make_key(), track) == Decimal("0.02")

    def test_all_populated_matchers_must_match(self):
        track = SpreadTrack(
            rules=(SpreadRule(spread=Decimal("0.003"), source_plugin_id="bitcoin", dest_currency_code="USDT"),),
            default_spread=Decimal("0.0075"),
            like_kind_spread=Decimal("0.005"),
        )

        assert get_volatility_spread(make_key(), track) == Decimal("0.0075")

    def test_token_id_matcher(self):
        track = SpreadTrack(
            rules=(SpreadRule(spread=Decimal("0.004"), dest_token_id=WBTC_TOKEN_ID),),
            default_spread=Decimal("0.0075"),
            like_kind_spread=Decimal("0.005"),
        )
        key = make_key(from_plugin_id="ethereum", from_code="ETH", to_code="WBTC", to_token_id=WBTC_TOKEN_ID)

        assert get_volatility_spread(key, track) == Decimal("0.004")


class TestLikeKind:
    """Tests for like-kind classes."""

    def test_stablecoins(self):
        assert is_like_kind("USDC", "DAI")

    def test_wrapped_eth(self):
        assert is_like_kind("WETH", "ETH")

    def test_different_classes(self):
        assert not is_like_kind("BTC", "ETH")


class TestSelectSpreads:
    """Tests for per-request spread selection."""

    def _request(self, btc_wallet, eth_wallet) -> SwapRequest:
        return SwapRequest(
            from_wallet=btc_wallet,
            to_wallet=eth_wallet,
            from_asset=AssetRef("bitcoin", "BTC"),
            to_asset=AssetRef("ethereum", "ETH"),
            native_amount="100000000",
            direction=QuoteDirection.FROM,
        )

    def test_default_tables(self, btc_wallet, eth_wallet):
        """Test bitcoin sources get the per-asset 1.5% on both tracks."""
        selection = select_spreads(self._request(btc_wallet, eth_wallet), DEFAULT_SPREAD_CONFIG)

        assert selection.atomic == Decimal("0.015")
        assert selection.streaming == Decimal("0.015")

    def test_tracks_are_independent(self, btc_wallet, eth_wallet):
        config = SpreadConfig(
            atomic=SpreadTrack(rules=(), default_spread=Decimal("0.0075"), like_kind_spread=Decimal("0.005")),
            streaming=SpreadTrack(rules=(), default_spread=Decimal("0.001"), like_kind_spread=Decimal("0")),
        )

        selection = select_spreads(self._request(btc_wallet, eth_wallet), config)

        assert selection.for_track(streaming=False) == Decimal("0.0075")
        assert selection.for_track(streaming=True) == Decimal("0.001")

    def test_estimates_have_no_spread(self, btc_wallet, eth_wallet):
        selection = select_spreads(self._request(btc_wallet, eth_wallet), DEFAULT_SPREAD_CONFIG, is_estimate=True)

        assert selection.atomic == Decimal(0)
        assert selection.streaming == Decimal(0)
