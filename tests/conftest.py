"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone
from decimal import ROUND_DOWN, Decimal
from typing import Optional

import httpx
import pytest
import pytest_asyncio

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"

from swapquote.fee_cache import CustomFeeCache
from swapquote.models import (
    AssetAmount,
    AssetRef,
    MakeTxParams,
    Memo,
    Order,
    QuoteDirection,
    SpendInstruction,
    SpendTarget,
    SwapAction,
    SwapInfo,
    SwapRequest,
    Transaction,
)
from swapquote.network.racer import NetworkRacer
from swapquote.pricing.calculator import PoolQuoteCalculator
from swapquote.wallet.dry_run import SimulatedWallet

THORNODE = "https://thornode.test/thorchain"
MIDGARD = "https://midgard.test"
INFO = "https://info.test"

VAULT_EVM = "0x88e8def37dc9d2acd67f1c1574ad09ca49827374"
ROUTER_EVM = "0xd37bbe5744d730a1d98d8dc97c42f0ca46ad7146"
VAULT_BTC = "bc1qthorvaultaddress0000000000000000000000"

USDT_TOKEN_ID = "dac17f958d2ee523a2206206994597c13d831ec7"
USDT_POOL = "ETH.USDT-0XDAC17F958D2EE523A2206206994597C13D831EC7"

TEST_SWAP_INFO = SwapInfo(
    plugin_id="thorchain",
    display_name="Thorchain",
    is_dex=True,
    support_email="support@edge.app",
)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeThorNetwork:
    """In-memory Midgard + THORNode + info server.

    Quotes are linear in pool prices: out = amount * src / dst * (1 - fee).
    Streaming quotes use their own fee so tests can pick the winner.
    """

    def __init__(self):
        self.prices: dict[str, Decimal] = {
            "BTC.BTC": Decimal("20000"),
            "ETH.ETH": Decimal("1000"),
            USDT_POOL: Decimal("0.33333333"),
            "DOGE.DOGE": Decimal("0.03"),
        }
        self.prices_usd: dict[str, Decimal] = {
            "BTC.BTC": Decimal("60000"),
            "ETH.ETH": Decimal("3000"),
            USDT_POOL: Decimal("1"),
            "DOGE.DOGE": Decimal("0.09"),
        }
        self.atomic_fee = Decimal("0.01")
        self.streaming_fee = Decimal("0.005")
        self.min_amount = Decimal("0")
        self.exchange_info: Optional[dict] = None
        self.quote_status: Optional[int] = None
        self.requests: list[httpx.Request] = []

    def price(self, asset: str) -> Decimal:
        if asset == "THOR.RUNE":
            return Decimal(1)
        return self.prices[asset]

    def quote_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/quote/swap")]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/v2/pools"):
            return httpx.Response(
                200,
                json=[
                    {
                        "asset": asset,
                        "assetPrice": str(price),
                        "assetPriceUSD": str(self.prices_usd[asset]),
                        "status": "available",
                    }
                    for asset, price in self.prices.items()
                ],
            )

        if path.endswith("/quote/swap"):
            return self._quote(request)

        if "/v1/exchangeInfo/" in path:
            if self.exchange_info is None:
                return httpx.Response(404, text="not found")
            return httpx.Response(200, json=self.exchange_info)

        return httpx.Response(404, text=f"unknown path {path}")

    def _quote(self, request: httpx.Request) -> httpx.Response:
        if self.quote_status is not None:
            return httpx.Response(self.quote_status, text="node unavailable")

        params = request.url.params
        amount = Decimal(params["amount"])
        if amount < self.min_amount:
            return httpx.Response(
                400,
                json={"code": 3, "message": "failed to simulate swap: swap too small", "details": []},
            )

        from_asset = params["from_asset"]
        to_asset = params["to_asset"]
        streaming = int(params["streaming_quantity"]) > 1
        fee = self.streaming_fee if streaming else self.atomic_fee

        out = amount * self.price(from_asset) / self.price(to_asset) * (1 - fee)
        out = out.quantize(Decimal(1), rounding=ROUND_DOWN)

        chain = from_asset.split(".")[0]
        is_evm = chain in ("ETH", "AVAX", "BSC", "ARB", "BASE")
        memo = (
            f"=:{to_asset.split('-')[0]}:{params['destination']}:0/"
            f"{params['streaming_interval']}/{params['streaming_quantity']}:"
            f"{params.get('affiliate', '')}:{params.get('affiliate_bps', '0')}"
        )
        body = {
            "expected_amount_out": str(out),
            "expiry": 1700000000,
            "inbound_address": VAULT_EVM if is_evm else VAULT_BTC,
            "memo": memo,
            "recommended_min_amount_in": str(self.min_amount),
            "streaming_swap_blocks": 10 if streaming else 1,
            "total_swap_seconds": 600 if streaming else 12,
            "fees": {"affiliate": "0", "outbound": "1000"},
        }
        if chain == "THOR":
            del body["inbound_address"]
        if is_evm:
            body["router"] = ROUTER_EVM
        return httpx.Response(200, json=body)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def fake_network() -> FakeThorNetwork:
    return FakeThorNetwork()


@pytest_asyncio.fixture
async def racer(fake_network):
    """Racer whose HTTP client is served by the fake network."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_network.handle))
    racer = NetworkRacer(client=client, timeout=1.0)
    yield racer
    await client.aclose()


@pytest.fixture
def fee_cache(clock) -> CustomFeeCache:
    return CustomFeeCache(ttl_seconds=30, clock=clock)


@pytest.fixture
def calculator(racer, fee_cache) -> PoolQuoteCalculator:
    return PoolQuoteCalculator(
        swap_info=TEST_SWAP_INFO,
        racer=racer,
        node_servers=[THORNODE],
        node_headers={"x-client-id": "test"},
        affiliate="ej",
        fee_cache=fee_cache,
        order_uri="https://track.test/",
    )


@pytest.fixture
def btc_wallet() -> SimulatedWallet:
    return SimulatedWallet(
        wallet_id="btc-wallet",
        plugin_id="bitcoin",
        currency_code="BTC",
        decimals=8,
        balances={None: "100000000"},
        address="bc1quserbtcaddress",
        base_fee="1000",
    )


@pytest.fixture
def eth_wallet() -> SimulatedWallet:
    return SimulatedWallet(
        wallet_id="eth-wallet",
        plugin_id="ethereum",
        currency_code="ETH",
        decimals=18,
        tokens={USDT_TOKEN_ID: ("USDT", 6)},
        balances={None: "5000000000000000000", USDT_TOKEN_ID: "250000000"},
        address="0x04c5998ded94f89263370444ce64a99b7dbc9f46",
        base_fee="21000000000000",
    )


@pytest.fixture
def rune_wallet() -> SimulatedWallet:
    return SimulatedWallet(
        wallet_id="rune-wallet",
        plugin_id="thorchainrune",
        currency_code="RUNE",
        decimals=8,
        balances={None: "50000000000"},
        address="thor1userruneaddress",
        base_fee="2000000",
    )


@pytest.fixture
def make_request():
    """Build a SwapRequest between two wallets."""

    def _make(
        from_wallet,
        to_wallet,
        native_amount: str,
        direction: QuoteDirection = QuoteDirection.FROM,
        from_token_id: Optional[str] = None,
        to_token_id: Optional[str] = None,
    ) -> SwapRequest:
        return SwapRequest(
            from_wallet=from_wallet,
            to_wallet=to_wallet,
            from_asset=AssetRef(
                from_wallet.plugin_id, from_wallet.get_currency_code(from_token_id), from_token_id
            ),
            to_asset=AssetRef(to_wallet.plugin_id, to_wallet.get_currency_code(to_token_id), to_token_id),
            native_amount=native_amount,
            direction=direction,
        )

    return _make


@pytest.fixture
def make_order():
    """Build an Order by hand, bypassing the calculator."""

    def _make(
        request: SwapRequest,
        from_amount: Optional[str] = "100000000",
        to_amount: str = "1960150000000000000",
        destination: str = "0xdestination",
        pre_tx: Optional[Transaction] = None,
        settlement=None,
        swap_info: SwapInfo = TEST_SWAP_INFO,
        **kwargs,
    ) -> Order:
        saved_action = SwapAction(
            swap_info=swap_info,
            from_asset=AssetAmount(request.from_asset.plugin_id, request.from_asset.token_id, from_amount or "0"),
            to_asset=AssetAmount(request.to_asset.plugin_id, request.to_asset.token_id, to_amount),
            payout_address=destination,
            payout_wallet_id=request.to_wallet.wallet_id,
            order_uri=kwargs.pop("order_uri", None),
        )
        if settlement is None:
            settlement = SpendInstruction(
                spend_targets=(SpendTarget(public_address=VAULT_BTC, native_amount=from_amount),),
                token_id=request.from_asset.token_id,
                memos=(Memo(type="text", value="=:ETH.ETH:0xdestination:1/10/10"),),
                saved_action=saved_action,
            )
        elif isinstance(settlement, str) and settlement == "make_tx":
            settlement = MakeTxParams(type="MakeTxDeposit", assets=(), memo="=:BTC.BTC:bc1q:0", saved_action=saved_action)

        return Order(
            request=request,
            swap_info=swap_info,
            settlement=settlement,
            from_amount=from_amount,
            to_amount=to_amount,
            destination_address=destination,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=60),
            pre_tx=pre_tx,
            **kwargs,
        )

    return _make
