"""Tests for the exchange info cache."""

from decimal import Decimal

import pytest

from swapquote.exchange_info import ExchangeInfoCache, ExchangeSettings
from swapquote.pricing.spread import DEFAULT_SPREAD_CONFIG, PER_ASSET_SPREAD_DEFAULT

from conftest import INFO, MIDGARD, THORNODE

DEFAULTS = ExchangeSettings(
    spread_config=DEFAULT_SPREAD_CONFIG,
    midgard_servers=("https://midgard.default",),
    node_servers=(THORNODE,),
    affiliate_fee_basis="50",
    streaming_interval=10,
    streaming_quantity=10,
)


def exchange_info_payload(**overrides) -> dict:
    plugin = {
        "perAssetSpread": [{"sourcePluginId": "bitcoin", "volatilitySpread": 0.02}],
        "volatilitySpread": 0.009,
        "likeKindVolatilitySpread": 0.004,
        "midgardServers": [MIDGARD],
        "affiliateFeeBasis": "75",
        "streamingInterval": 5,
    }
    plugin.update(overrides)
    return {"swap": {"plugins": {"thorchain": plugin, "changenow": None}}}


@pytest.fixture
def info_cache(racer, clock) -> ExchangeInfoCache:
    return ExchangeInfoCache(racer, [INFO], app_id="edge", plugin_id="thorchain", ttl_seconds=60, clock=clock)


def info_requests(fake_network) -> int:
    return sum(1 for r in fake_network.requests if r.url.path == "/v1/exchangeInfo/edge")


class TestExchangeInfoCache:
    """Tests for poll-if-stale refresh and fallbacks."""

    @pytest.mark.asyncio
    async def test_unreachable_uses_defaults(self, info_cache):
        """Test a failing info server silently yields the defaults."""
        assert await info_cache.get() is None
        assert await info_cache.resolve(DEFAULTS) == DEFAULTS

    @pytest.mark.asyncio
    async def test_cached_within_ttl(self, info_cache, fake_network, clock):
        fake_network.exchange_info = exchange_info_payload()

        await info_cache.get()
        clock.advance(30)
        await info_cache.get()

        assert info_requests(fake_network) == 1

    @pytest.mark.asyncio
    async def test_refetch_when_stale(self, info_cache, fake_network, clock):
        fake_network.exchange_info = exchange_info_payload()

        await info_cache.get()
        clock.advance(61)
        await info_cache.get()

        assert info_requests(fake_network) == 2

    @pytest.mark.asyncio
    async def test_keeps_last_good_value(self, info_cache, fake_network, clock):
        """Test a failed refresh keeps serving the previous info."""
        fake_network.exchange_info = exchange_info_payload()
        first = await info_cache.get()

        fake_network.exchange_info = None
        clock.advance(61)

        assert await info_cache.get() is first

    @pytest.mark.asyncio
    async def test_invalid_payload_ignored(self, info_cache, fake_network):
        payload = exchange_info_payload()
        del payload["swap"]["plugins"]["thorchain"]["midgardServers"]
        fake_network.exchange_info = payload

        assert await info_cache.get() is None

    @pytest.mark.asyncio
    async def test_missing_plugin_entry(self, racer, clock, fake_network):
        fake_network.exchange_info = exchange_info_payload()
        cache = ExchangeInfoCache(racer, [INFO], app_id="edge", plugin_id="mayaprotocol", clock=clock)

        assert await cache.get() is None

    @pytest.mark.asyncio
    async def test_resolve_overlays_remote_values(self, info_cache, fake_network):
        fake_network.exchange_info = exchange_info_payload()

        settings = await info_cache.resolve(DEFAULTS)

        atomic = settings.spread_config.atomic
        assert atomic.rules[0].source_plugin_id == "bitcoin"
        assert atomic.rules[0].spread == Decimal("0.02")
        assert atomic.default_spread == Decimal("0.009")
        assert atomic.like_kind_spread == Decimal("0.004")
        assert settings.midgard_servers == (MIDGARD,)
        assert settings.affiliate_fee_basis == "75"
        assert settings.streaming_interval == 5

        # Unset remote values keep the defaults
        streaming = settings.spread_config.streaming
        assert streaming.rules == PER_ASSET_SPREAD_DEFAULT
        assert streaming.default_spread == Decimal("0.001")
        assert streaming.like_kind_spread == Decimal("0")
        assert settings.node_servers == (THORNODE,)
        assert settings.streaming_quantity == 10

    @pytest.mark.asyncio
    async def test_resolve_streaming_overrides(self, info_cache, fake_network):
        fake_network.exchange_info = exchange_info_payload(
            perAssetSpreadStreaming=[],
            volatilitySpreadStreaming=0.002,
            likeKindVolatilitySpreadStreaming=0.0005,
            thornodeServersWithPath=["https://node.remote/thorchain"],
        )

        settings = await info_cache.resolve(DEFAULTS)

        streaming = settings.spread_config.streaming
        assert streaming.rules == ()
        assert streaming.default_spread == Decimal("0.002")
        assert streaming.like_kind_spread == Decimal("0.0005")
        assert settings.node_servers == ("https://node.remote/thorchain",)

    @pytest.mark.asyncio
    async def test_resolve_keeps_zero_and_empty_values(self, info_cache, fake_network):
        """Test only absent remote values fall back to the defaults."""
        fake_network.exchange_info = exchange_info_payload(
            streamingInterval=0,
            streamingQuantity=None,
            thornodeServersWithPath=[],
        )

        settings = await info_cache.resolve(DEFAULTS)

        assert settings.streaming_interval == 0
        assert settings.streaming_quantity == 10
        assert settings.node_servers == ()
