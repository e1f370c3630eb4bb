"""Remote exchange configuration with poll-if-stale caching.

The info server publishes spread tables, mirror lists and streaming
parameters per provider. It is optional: when it is unreachable or
returns something unexpected, the last good value (or the hardcoded
defaults) is used and the failure is only logged.
"""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Optional, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from swapquote.errors import SwapError
from swapquote.models import SpreadConfig, SpreadRule, SpreadTrack
from swapquote.network.racer import NetworkRacer

logger = logging.getLogger(__name__)

DEFAULT_EXCHANGE_INFO_TTL_SECONDS = 60.0


class AssetSpreadPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    source_plugin_id: Optional[str] = Field(default=None, alias="sourcePluginId")
    source_token_id: Optional[str] = Field(default=None, alias="sourceTokenId")
    source_currency_code: Optional[str] = Field(default=None, alias="sourceCurrencyCode")
    dest_plugin_id: Optional[str] = Field(default=None, alias="destPluginId")
    dest_token_id: Optional[str] = Field(default=None, alias="destTokenId")
    dest_currency_code: Optional[str] = Field(default=None, alias="destCurrencyCode")
    volatility_spread: Decimal = Field(..., alias="volatilitySpread", ge=0)

    def to_rule(self) -> SpreadRule:
        return SpreadRule(
            spread=self.volatility_spread,
            source_plugin_id=self.source_plugin_id,
            source_token_id=self.source_token_id,
            source_currency_code=self.source_currency_code,
            dest_plugin_id=self.dest_plugin_id,
            dest_token_id=self.dest_token_id,
            dest_currency_code=self.dest_currency_code,
        )


class ExchangeInfo(BaseModel):
    """One provider's entry under ``swap.plugins``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    per_asset_spread: list[AssetSpreadPayload] = Field(..., alias="perAssetSpread")
    per_asset_spread_streaming: Optional[list[AssetSpreadPayload]] = Field(
        default=None, alias="perAssetSpreadStreaming"
    )
    volatility_spread: Decimal = Field(..., alias="volatilitySpread", ge=0)
    volatility_spread_streaming: Optional[Decimal] = Field(default=None, alias="volatilitySpreadStreaming", ge=0)
    like_kind_volatility_spread: Decimal = Field(..., alias="likeKindVolatilitySpread", ge=0)
    like_kind_volatility_spread_streaming: Optional[Decimal] = Field(
        default=None, alias="likeKindVolatilitySpreadStreaming", ge=0
    )
    midgard_servers: list[str] = Field(..., alias="midgardServers")
    affiliate_fee_basis: Optional[str] = Field(default=None, alias="affiliateFeeBasis")
    streaming_interval: Optional[int] = Field(default=None, alias="streamingInterval")
    streaming_quantity: Optional[int] = Field(default=None, alias="streamingQuantity")
    thornode_servers_with_path: Optional[list[str]] = Field(default=None, alias="thornodeServersWithPath")


class _SwapSection(BaseModel):
    plugins: dict[str, Optional[Any]] = Field(default_factory=dict)


class ExchangeInfoMap(BaseModel):
    model_config = ConfigDict(extra="ignore")

    swap: _SwapSection


@dataclass(frozen=True)
class ExchangeSettings:
    """Effective per-quote settings after applying remote overrides."""

    spread_config: SpreadConfig
    midgard_servers: tuple[str, ...]
    node_servers: tuple[str, ...]
    affiliate_fee_basis: str
    streaming_interval: int
    streaming_quantity: int


async def fetch_info(racer: NetworkRacer, servers: Sequence[str], path: str) -> httpx.Response:
    """Fetch a path from the info servers, in random order."""
    return await racer.race_fetch_shuffled(servers, path)


class ExchangeInfoCache:
    """Holds the last good ExchangeInfo for one provider and refreshes it when stale."""

    def __init__(
        self,
        racer: NetworkRacer,
        servers: Sequence[str],
        app_id: str,
        plugin_id: str,
        ttl_seconds: float = DEFAULT_EXCHANGE_INFO_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize cache.

        Args:
            racer: Fetcher for the info servers
            servers: Info server base URLs
            app_id: Application id used in the request path
            plugin_id: Provider entry to read under ``swap.plugins``
            ttl_seconds: Age after which the next get() refetches
            clock: Monotonic time source
        """
        self.racer = racer
        self.servers = list(servers)
        self.app_id = app_id
        self.plugin_id = plugin_id
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._info: Optional[ExchangeInfo] = None
        self._last_update: Optional[float] = None

    @property
    def path(self) -> str:
        return f"v1/exchangeInfo/{self.app_id}"

    def is_stale(self) -> bool:
        if self._info is None or self._last_update is None:
            return True
        return self._clock() - self._last_update > self.ttl_seconds

    async def get(self) -> Optional[ExchangeInfo]:
        """Return the current info, refetching when stale. Never raises."""
        if not self.is_stale():
            return self._info

        try:
            response = await fetch_info(self.racer, self.servers, self.path)
            if not response.is_success:
                logger.warning(
                    f"Error getting info server exchangeInfo (HTTP {response.status_code}). Using defaults..."
                )
                return self._info

            info_map = ExchangeInfoMap.model_validate(response.json())
            self._info = ExchangeInfo.model_validate(info_map.swap.plugins.get(self.plugin_id))
            self._last_update = self._clock()
            logger.debug(f"Refreshed exchange info for {self.plugin_id}")

        except (SwapError, ValidationError, ValueError) as e:
            logger.warning(f"Error getting info server exchangeInfo. Using defaults... {e}")

        return self._info

    async def resolve(self, defaults: ExchangeSettings) -> ExchangeSettings:
        """Overlay the remote info (if any) on top of the defaults."""
        info = await self.get()
        if info is None:
            return defaults
        return apply_exchange_info(info, defaults)


def apply_exchange_info(info: ExchangeInfo, defaults: ExchangeSettings) -> ExchangeSettings:
    atomic_rules = tuple(spread.to_rule() for spread in info.per_asset_spread)
    if info.per_asset_spread_streaming is not None:
        streaming_rules = tuple(spread.to_rule() for spread in info.per_asset_spread_streaming)
    else:
        streaming_rules = defaults.spread_config.streaming.rules

    default_streaming = defaults.spread_config.streaming
    spread_config = SpreadConfig(
        atomic=SpreadTrack(
            rules=atomic_rules,
            default_spread=info.volatility_spread,
            like_kind_spread=info.like_kind_volatility_spread,
        ),
        streaming=SpreadTrack(
            rules=streaming_rules,
            default_spread=(
                info.volatility_spread_streaming
                if info.volatility_spread_streaming is not None
                else default_streaming.default_spread
            ),
            like_kind_spread=(
                info.like_kind_volatility_spread_streaming
                if info.like_kind_volatility_spread_streaming is not None
                else default_streaming.like_kind_spread
            ),
        ),
    )

    return ExchangeSettings(
        spread_config=spread_config,
        midgard_servers=tuple(info.midgard_servers),
        node_servers=(
            tuple(info.thornode_servers_with_path)
            if info.thornode_servers_with_path is not None
            else defaults.node_servers
        ),
        affiliate_fee_basis=(
            info.affiliate_fee_basis if info.affiliate_fee_basis is not None else defaults.affiliate_fee_basis
        ),
        streaming_interval=(
            info.streaming_interval if info.streaming_interval is not None else defaults.streaming_interval
        ),
        streaming_quantity=(
            info.streaming_quantity if info.streaming_quantity is not None else defaults.streaming_quantity
        ),
    )
