"""THORChain-family swap provider (THORChain and Maya Protocol).

Flow:
1. Reject same-asset and blacklisted pairs
2. Refresh exchange info if stale (spreads, mirrors, streaming params)
3. Fetch pools from Midgard and look up both sides
4. Resolve "max" requests (RUNE sources size their own deposit)
5. Run the pool quote calculator and wrap the Order for execution

API Docs: https://dev.thorchain.org/thorchain-dev/
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Optional, Union

from swapquote.errors import SwapCurrencyError, SwapError, UpstreamHTTPError
from swapquote.exchange_info import ExchangeInfoCache, ExchangeSettings
from swapquote.fee_cache import CustomFeeCache
from swapquote.max_amount import resolve_max
from swapquote.models import MakeTxParams, Order, QuoteDirection, SwapInfo, SwapRequest
from swapquote.network.racer import NetworkRacer
from swapquote.pricing.calculator import EVM_CHAIN_CODES, PoolQuoteCalculator
from swapquote.pricing.pools import find_pool, parse_pools
from swapquote.pricing.spread import DEFAULT_SPREAD_CONFIG
from swapquote.providers.base import SwapProvider
from swapquote.quote import ExecutableQuote

logger = logging.getLogger(__name__)

RUNE_PLUGIN_ID = "thorchainrune"
# Max RUNE quotes start from a 10 RUNE trial deposit
RUNE_MAX_TRIAL_AMOUNT = "1000000000"

# "allCodes" blocks a whole chain, "allTokens" blocks every token on it
InvalidCodes = dict[str, dict[str, Union[str, tuple[str, ...]]]]

INVALID_CURRENCY_CODES: InvalidCodes = {
    "from": {
        "ethereum": ("REP",),
        "optimism": ("VELO",),
    },
    "to": {
        "ethereum": ("REP",),
        "zcash": ("ZEC",),
    },
}

THORCHAIN_MAINNET_CODES = {
    "avalanche": "AVAX",
    "base": "BASE",
    "binancechain": "BNB",
    "binancesmartchain": "BSC",
    "bitcoin": "BTC",
    "bitcoincash": "BCH",
    "dogecoin": "DOGE",
    "ethereum": "ETH",
    "litecoin": "LTC",
    "thorchainrune": "THOR",
}

MAYA_MAINNET_CODES = {
    "arbitrum": "ARB",
    "bitcoin": "BTC",
    "dash": "DASH",
    "ethereum": "ETH",
    "litecoin": "LTC",
    "thorchainrune": "THOR",
}


@dataclass
class ThorchainProviderConfig:
    """Per-protocol constants for a THORChain-style provider."""

    swap_info: SwapInfo
    mainnet_codes: dict[str, str]
    midgard_servers: list[str]
    node_servers: list[str]
    order_uri: str
    node_headers: dict[str, str] = field(default_factory=dict)
    add_txid_to_order_uri: bool = False
    invalid_codes: InvalidCodes = field(default_factory=lambda: INVALID_CURRENCY_CODES)


THORCHAIN_SWAP_INFO = SwapInfo(
    plugin_id="thorchain",
    display_name="Thorchain",
    is_dex=True,
    support_email="support@edge.app",
)

MAYA_SWAP_INFO = SwapInfo(
    plugin_id="mayaprotocol",
    display_name="Maya Protocol",
    is_dex=True,
    support_email="support@edge.app",
)


def thorchain_config(
    node_servers: Optional[list[str]] = None,
    midgard_servers: Optional[list[str]] = None,
    client_id: str = "",
) -> ThorchainProviderConfig:
    return ThorchainProviderConfig(
        swap_info=THORCHAIN_SWAP_INFO,
        mainnet_codes=THORCHAIN_MAINNET_CODES,
        midgard_servers=midgard_servers or ["https://midgard.thorchain.info"],
        node_servers=node_servers or ["https://thornode.ninerealms.com/thorchain"],
        order_uri="https://track.ninerealms.com/{{TXID}}",
        node_headers={"Content-Type": "application/json", "x-client-id": client_id},
    )


def mayaprotocol_config(
    node_servers: Optional[list[str]] = None,
    midgard_servers: Optional[list[str]] = None,
) -> ThorchainProviderConfig:
    return ThorchainProviderConfig(
        swap_info=MAYA_SWAP_INFO,
        mainnet_codes=MAYA_MAINNET_CODES,
        midgard_servers=midgard_servers or ["https://midgard.mayachain.info"],
        node_servers=node_servers or ["https://mayanode.mayachain.info/mayachain"],
        order_uri="https://www.mayascan.org/tx/",
        add_txid_to_order_uri=True,
    )


def is_invalid_code(invalid_codes: InvalidCodes, direction: str, plugin_id: str, main_code: str, code: str) -> bool:
    rule = invalid_codes.get(direction, {}).get(plugin_id)
    if rule is None:
        return False
    if rule == "allCodes":
        return True
    if rule == "allTokens":
        return main_code != code
    return code in rule


class ThorchainProvider(SwapProvider):
    """Cross-chain swaps through a THORChain-style protocol."""

    def __init__(
        self,
        config: ThorchainProviderConfig,
        racer: NetworkRacer,
        exchange_info: ExchangeInfoCache,
        fee_cache: Optional[CustomFeeCache] = None,
        thorname: str = "ej",
        affiliate_fee_basis: str = "50",
        streaming_interval: int = 10,
        streaming_quantity: int = 10,
        expiration_seconds: int = 60,
        estimate_quotes: bool = False,
    ):
        """Initialize provider.

        Args:
            config: Protocol constants (servers, chain codes, order URI)
            racer: Shared racing fetcher
            exchange_info: Remote settings cache for this provider
            fee_cache: Session fee cache
            thorname: Affiliate name
            affiliate_fee_basis: Default affiliate fee in basis points
            streaming_interval: Default streaming interval
            streaming_quantity: Default streaming quantity
            expiration_seconds: Quote validity
            estimate_quotes: Quote without spread and memo limit
        """
        self.config = config
        self.racer = racer
        self.exchange_info = exchange_info
        self.fee_cache = fee_cache if fee_cache is not None else CustomFeeCache()
        self.thorname = thorname
        self.affiliate_fee_basis = affiliate_fee_basis
        self.streaming_interval = streaming_interval
        self.streaming_quantity = streaming_quantity
        self.expiration_seconds = expiration_seconds
        self.estimate_quotes = estimate_quotes

    @property
    def swap_info(self) -> SwapInfo:
        return self.config.swap_info

    def default_settings(self) -> ExchangeSettings:
        return ExchangeSettings(
            spread_config=DEFAULT_SPREAD_CONFIG,
            midgard_servers=tuple(self.config.midgard_servers),
            node_servers=tuple(self.config.node_servers),
            affiliate_fee_basis=self.affiliate_fee_basis,
            streaming_interval=self.streaming_interval,
            streaming_quantity=self.streaming_quantity,
        )

    async def fetch_swap_quote(self, request: SwapRequest) -> ExecutableQuote:
        fee_session = self.fee_cache.create_uid()

        if request.direction == QuoteDirection.MAX and request.from_wallet.plugin_id == RUNE_PLUGIN_ID:
            order = await self._fetch_rune_max_order(request, fee_session)
        else:

            async def quote_fn(trial_request: SwapRequest) -> Order:
                return await self._fetch_order(trial_request, fee_session)

            resolved = await resolve_max(request, quote_fn)
            order = await self._fetch_order(resolved, fee_session)

        return await ExecutableQuote.create(order)

    async def _fetch_rune_max_order(self, request: SwapRequest, fee_session: str) -> Order:
        trial = await self._fetch_order(
            request.with_amount(RUNE_MAX_TRIAL_AMOUNT, QuoteDirection.FROM), fee_session
        )
        if not isinstance(trial.settlement, MakeTxParams):
            raise SwapError(f"{self.name}: max quote from RUNE expected a deposit transaction")

        max_amount = await request.from_wallet.get_max_tx(trial.settlement)
        logger.debug(f"Max RUNE deposit: {max_amount}")
        return await self._fetch_order(request.with_amount(max_amount, QuoteDirection.FROM), fee_session)

    def _check_pair(self, request: SwapRequest) -> tuple[str, str]:
        from_asset = request.from_asset
        to_asset = request.to_asset
        currency_error = SwapCurrencyError(self.name, from_asset.currency_code, to_asset.currency_code)

        # Do not support transfer between same assets
        if from_asset.plugin_id == to_asset.plugin_id and from_asset.currency_code == to_asset.currency_code:
            raise currency_error

        from_mainnet_code = self.config.mainnet_codes.get(from_asset.plugin_id)
        to_mainnet_code = self.config.mainnet_codes.get(to_asset.plugin_id)
        if from_mainnet_code is None or to_mainnet_code is None:
            raise currency_error

        from_main = request.from_wallet.currency_code
        to_main = request.to_wallet.currency_code
        if is_invalid_code(
            self.config.invalid_codes, "from", from_asset.plugin_id, from_main, from_asset.currency_code
        ) or is_invalid_code(self.config.invalid_codes, "to", to_asset.plugin_id, to_main, to_asset.currency_code):
            raise currency_error

        return from_mainnet_code, to_mainnet_code

    async def _fetch_order(self, request: SwapRequest, fee_session: str) -> Order:
        from_mainnet_code, to_mainnet_code = self._check_pair(request)
        destination_address = await request.to_wallet.get_receive_address(request.to_asset.token_id)

        settings = await self.exchange_info.resolve(self.default_settings())

        response = await self.racer.race_fetch(
            settings.midgard_servers, "v2/pools", headers=self.config.node_headers or None
        )
        if not response.is_success:
            raise UpstreamHTTPError(response.status_code, str(response.url), response.text)
        pools = parse_pools(response.json())

        currency_error = SwapCurrencyError(
            self.name, request.from_asset.currency_code, request.to_asset.currency_code
        )
        source_pool = find_pool(pools, from_mainnet_code, request.from_asset.currency_code)
        dest_pool = find_pool(pools, to_mainnet_code, request.to_asset.currency_code)
        if source_pool is None or dest_pool is None:
            raise currency_error
        logger.debug(f"fromAsset: {source_pool.chain_asset} toAsset: {dest_pool.chain_asset}")

        calculator = PoolQuoteCalculator(
            swap_info=self.swap_info,
            racer=self.racer,
            node_servers=settings.node_servers,
            node_headers=self.config.node_headers,
            affiliate=self.thorname,
            streaming_interval=settings.streaming_interval,
            streaming_quantity=settings.streaming_quantity,
            fee_cache=self.fee_cache,
            order_uri=self.config.order_uri,
            expiration_seconds=self.expiration_seconds,
            evm_chain_codes=EVM_CHAIN_CODES,
        )
        order = await calculator.quote(
            source_pool=source_pool,
            dest_pool=dest_pool,
            request=request,
            spread_config=settings.spread_config,
            affiliate_bps=settings.affiliate_fee_basis,
            destination_address=destination_address,
            is_estimate=self.estimate_quotes,
            fee_session=fee_session,
        )
        if self.config.add_txid_to_order_uri:
            order = replace(order, add_txid_to_order_uri=True)
        return order
