"""Factory for creating swap providers and aggregators from settings."""

import logging
from typing import Optional

from swapquote.config import Settings, get_settings
from swapquote.exchange_info import ExchangeInfoCache
from swapquote.fee_cache import CustomFeeCache
from swapquote.network.racer import NetworkRacer
from swapquote.providers.base import SwapAggregator, SwapProvider
from swapquote.providers.thorchain import (
    ThorchainProvider,
    ThorchainProviderConfig,
    mayaprotocol_config,
    thorchain_config,
)

logger = logging.getLogger(__name__)


def _create_provider(
    config: ThorchainProviderConfig,
    settings: Settings,
    racer: NetworkRacer,
    fee_cache: CustomFeeCache,
) -> ThorchainProvider:
    exchange_info = ExchangeInfoCache(
        racer=racer,
        servers=settings.info_server_list,
        app_id=settings.app_id,
        plugin_id=config.swap_info.plugin_id,
        ttl_seconds=settings.exchange_info_ttl_seconds,
    )
    return ThorchainProvider(
        config=config,
        racer=racer,
        exchange_info=exchange_info,
        fee_cache=fee_cache,
        thorname=settings.thorname,
        affiliate_fee_basis=settings.affiliate_fee_basis,
        streaming_interval=settings.streaming_interval,
        streaming_quantity=settings.streaming_quantity,
        expiration_seconds=settings.quote_expiration_seconds,
    )


def create_thorchain_provider(
    settings: Optional[Settings] = None,
    racer: Optional[NetworkRacer] = None,
    fee_cache: Optional[CustomFeeCache] = None,
) -> SwapProvider:
    """Create THORChain provider. THORChain needs no API key."""
    settings = settings or get_settings()
    racer = racer or NetworkRacer(timeout=settings.fetch_timeout_seconds)
    if fee_cache is None:
        fee_cache = CustomFeeCache(ttl_seconds=settings.fee_cache_ttl_seconds)

    config = thorchain_config(
        node_servers=settings.thornode_server_list,
        midgard_servers=settings.thorchain_midgard_server_list,
        client_id=settings.ninerealms_client_id,
    )
    return _create_provider(config, settings, racer, fee_cache)


def create_mayaprotocol_provider(
    settings: Optional[Settings] = None,
    racer: Optional[NetworkRacer] = None,
    fee_cache: Optional[CustomFeeCache] = None,
) -> SwapProvider:
    """Create Maya Protocol provider."""
    settings = settings or get_settings()
    racer = racer or NetworkRacer(timeout=settings.fetch_timeout_seconds)
    if fee_cache is None:
        fee_cache = CustomFeeCache(ttl_seconds=settings.fee_cache_ttl_seconds)

    config = mayaprotocol_config(
        node_servers=settings.mayanode_server_list,
        midgard_servers=settings.maya_midgard_server_list,
    )
    return _create_provider(config, settings, racer, fee_cache)


def create_aggregator(
    settings: Optional[Settings] = None,
    racer: Optional[NetworkRacer] = None,
) -> SwapAggregator:
    """Create an aggregator with every available provider.

    Providers share one racer (and its HTTP client) and one fee cache.
    """
    settings = settings or get_settings()
    racer = racer or NetworkRacer(timeout=settings.fetch_timeout_seconds)
    fee_cache = CustomFeeCache(ttl_seconds=settings.fee_cache_ttl_seconds)

    aggregator = SwapAggregator()
    aggregator.add_provider(create_thorchain_provider(settings, racer, fee_cache))
    aggregator.add_provider(create_mayaprotocol_provider(settings, racer, fee_cache))

    logger.info(f"Created aggregator with {len(aggregator.providers)} providers")
    return aggregator
