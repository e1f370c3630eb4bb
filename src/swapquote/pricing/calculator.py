"""Pool-price cross-rate quote calculator for THORChain-style protocols.

Flow:
1. Convert the request amount to reference units (8 decimals)
2. Ask the node for an atomic and a streaming quote concurrently
3. Keep the quote with the larger expected output (first wins ties)
4. Apply the volatility spread for the chosen track in the safe direction
5. Embed the guaranteed limit in the memo and build the settlement payload

For "to" quotes the send amount is first estimated from pool prices,
quoted, then corrected by the ratio of desired to actual output.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict

from swapquote.amounts import (
    add,
    div18,
    format_amount,
    mul,
    round_half_up,
    sub,
    to_native_string,
)
from swapquote.errors import (
    SwapBelowLimitError,
    SwapCurrencyError,
    SwapError,
    TransientFetchError,
    UpstreamHTTPError,
)
from swapquote.evm import (
    EVM_NATIVE_ASSET_ADDRESS,
    get_deposit_with_expiry_data,
    get_evm_approval_data,
)
from swapquote.fee_cache import CustomFeeCache
from swapquote.models import (
    AssetAmount,
    DepositAsset,
    MakeTxParams,
    Memo,
    Order,
    Pool,
    SpendInstruction,
    SpendTarget,
    SpreadConfig,
    SwapAction,
    SwapInfo,
    SwapRequest,
    QuoteDirection,
    TokenApprovalAction,
    Transaction,
    expiration_from_now,
)
from swapquote.network.racer import NetworkRacer
from swapquote.pricing.spread import SpreadSelection, select_spreads

logger = logging.getLogger(__name__)

THOR_LIMIT_UNITS = Decimal("100000000")
EXPIRATION_SECONDS = 60
EVM_SEND_GAS = "80000"
STREAMING_INTERVAL_DEFAULT = 10
STREAMING_QUANTITY_DEFAULT = 10
STREAMING_INTERVAL_NOSTREAM = 1
STREAMING_QUANTITY_NOSTREAM = 1
MIN_DISCOVERY_MULTIPLIER = 10

SWAP_TOO_SMALL = "swap too small"

# Chain codes whose inbound goes through a router contract
EVM_CHAIN_CODES = frozenset({"ARB", "AVAX", "BASE", "BSC", "ETC", "ETH", "FTM"})


class QuoteSwapPayload(BaseModel):
    """Successful ``quote/swap`` response (only the fields we use)."""

    model_config = ConfigDict(extra="ignore")

    expected_amount_out: Optional[str] = None
    expected_amount_out_streaming: Optional[str] = None  # deprecated by the node
    expiry: int
    inbound_address: Optional[str] = None
    memo: str
    recommended_min_amount_in: str
    router: Optional[str] = None
    streaming_swap_blocks: int = 0
    total_swap_seconds: Optional[int] = None

    def expected_amount(self) -> Decimal:
        amount = self.expected_amount_out or self.expected_amount_out_streaming
        if amount is None:
            raise SwapError("Missing expected amount out from quote response")
        return Decimal(amount)


@dataclass(frozen=True)
class SwapMinError:
    """A sub-quote rejected as too small, with the discovered minimum."""

    min_thor_amount: Decimal


@dataclass(frozen=True)
class QuoteFailure:
    """A sub-quote that failed for any other reason."""

    error: SwapError


SubQuote = Union[QuoteSwapPayload, SwapMinError, QuoteFailure]


@dataclass(frozen=True)
class CalcSwapResult:
    from_native_amount: str
    to_native_amount: str
    memo: str
    expected_thor_amount: Decimal  # pre-spread output of the chosen sub-quote
    expiry: int
    can_be_partial: bool
    max_fulfillment_seconds: Optional[int] = None
    thor_address: Optional[str] = None
    router: Optional[str] = None


class PoolQuoteCalculator:
    """Turns two pool snapshots and a request into an Order."""

    def __init__(
        self,
        swap_info: SwapInfo,
        racer: NetworkRacer,
        node_servers: Sequence[str],
        node_headers: Optional[dict[str, str]] = None,
        affiliate: str = "",
        streaming_interval: int = STREAMING_INTERVAL_DEFAULT,
        streaming_quantity: int = STREAMING_QUANTITY_DEFAULT,
        fee_cache: Optional[CustomFeeCache] = None,
        order_uri: Optional[str] = None,
        expiration_seconds: int = EXPIRATION_SECONDS,
        evm_chain_codes: frozenset[str] = EVM_CHAIN_CODES,
    ):
        """Initialize calculator.

        Args:
            swap_info: Provider description stamped on every Order
            racer: Racing fetcher used for every node call
            node_servers: Node mirror base URLs (ending in ``/thorchain`` or similar)
            node_headers: Extra headers for node calls (client id)
            affiliate: Affiliate name registered on the protocol
            streaming_interval: Blocks between streaming sub-swaps
            streaming_quantity: Number of streaming sub-swaps
            fee_cache: Session fee cache for consistent custom fees
            order_uri: Order tracking URI stored on the saved action
            expiration_seconds: Order validity
            evm_chain_codes: Chain codes that settle through a router contract
        """
        self.swap_info = swap_info
        self.racer = racer
        self.node_servers = list(node_servers)
        self.node_headers = node_headers or {}
        self.affiliate = affiliate
        self.streaming_interval = streaming_interval
        self.streaming_quantity = streaming_quantity
        self.fee_cache = fee_cache if fee_cache is not None else CustomFeeCache()
        self.order_uri = order_uri
        self.expiration_seconds = expiration_seconds
        self.evm_chain_codes = evm_chain_codes

    @property
    def provider(self) -> str:
        return self.swap_info.plugin_id

    async def quote(
        self,
        source_pool: Pool,
        dest_pool: Pool,
        request: SwapRequest,
        spread_config: SpreadConfig,
        affiliate_bps: str,
        destination_address: str,
        is_estimate: bool = False,
        fee_session: Optional[str] = None,
    ) -> Order:
        """Compute an Order for the request.

        Raises:
            SwapBelowLimitError: if the node rejects the amount as too small
            SwapCurrencyError: if the source asset cannot be settled
            UpstreamHTTPError / TransientFetchError: if no sub-quote succeeded
        """
        spreads = select_spreads(request, spread_config, is_estimate)

        if request.direction == QuoteDirection.TO:
            calc = await self._calc_swap_to(
                request, source_pool, dest_pool, spreads, affiliate_bps, destination_address, is_estimate
            )
        else:
            calc = await self._calc_swap_from(
                request, source_pool, dest_pool, spreads, affiliate_bps, destination_address, is_estimate
            )

        logger.info(
            f"{self.provider} quote: {calc.from_native_amount} {request.from_asset.currency_code} -> "
            f"{calc.to_native_amount} {request.to_asset.currency_code} "
            f"(partial={calc.can_be_partial})"
        )
        return await self._build_order(request, calc, source_pool, destination_address, is_estimate, fee_session)

    # ------------------------------------------------------------------
    # Amount calculation
    # ------------------------------------------------------------------

    async def _calc_swap_from(
        self,
        request: SwapRequest,
        source_pool: Pool,
        dest_pool: Pool,
        spreads: SpreadSelection,
        affiliate_bps: str,
        destination_address: str,
        is_estimate: bool,
    ) -> CalcSwapResult:
        from_native_amount = request.native_amount
        from_exchange_amount = await request.from_wallet.native_to_denomination(
            from_native_amount, request.from_asset.currency_code
        )
        logger.debug(f"fromExchangeAmount: {from_exchange_amount}")

        from_thor_amount = round_half_up(mul(from_exchange_amount, THOR_LIMIT_UNITS))
        best = await self._get_best_quote(
            request,
            self._sub_quote_params(from_thor_amount, source_pool, dest_pool, destination_address, affiliate_bps),
        )

        to_thor_amount = best.expected_amount()
        can_be_partial = best.streaming_swap_blocks > 1
        spread = spreads.for_track(can_be_partial)

        to_thor_with_spread = round_half_up(mul(sub(1, spread), to_thor_amount))
        logger.debug(f"spread={spread} toThorAmountWithSpread = limit: {to_thor_with_spread}")

        to_exchange_amount = div18(to_thor_with_spread, THOR_LIMIT_UNITS)
        to_native_amount = to_native_string(
            await request.to_wallet.denomination_to_native(
                format_amount(to_exchange_amount), request.to_asset.currency_code
            )
        )
        logger.debug(f"toNativeAmount: {to_native_amount}")

        memo = best.memo if is_estimate else embed_memo_limit(best.memo, to_thor_with_spread)

        return CalcSwapResult(
            from_native_amount=from_native_amount,
            to_native_amount=to_native_amount,
            memo=memo,
            expected_thor_amount=to_thor_amount,
            expiry=best.expiry,
            can_be_partial=can_be_partial,
            max_fulfillment_seconds=best.total_swap_seconds,
            thor_address=best.inbound_address,
            router=best.router,
        )

    async def _calc_swap_to(
        self,
        request: SwapRequest,
        source_pool: Pool,
        dest_pool: Pool,
        spreads: SpreadSelection,
        affiliate_bps: str,
        destination_address: str,
        is_estimate: bool,
    ) -> CalcSwapResult:
        to_native_amount = request.native_amount
        to_exchange_amount = await request.to_wallet.native_to_denomination(
            to_native_amount, request.to_asset.currency_code
        )
        requested_to_thor_amount = round_half_up(mul(to_exchange_amount, THOR_LIMIT_UNITS))
        logger.debug(f"toExchangeAmount: {to_exchange_amount}")

        # Naive cross-rate estimate from pool prices
        requested_from_exchange_amount = mul(to_exchange_amount, div18(dest_pool.price, source_pool.price))
        requested_from_thor_amount = round_half_up(mul(requested_from_exchange_amount, THOR_LIMIT_UNITS))

        best = await self._get_best_quote(
            request,
            self._sub_quote_params(
                requested_from_thor_amount, source_pool, dest_pool, destination_address, affiliate_bps
            ),
        )

        to_thor_amount = best.expected_amount()
        if to_thor_amount <= 0:
            raise SwapError(f"{self.provider}: quote returned no output")
        can_be_partial = best.streaming_swap_blocks > 1

        # Scale the send amount by how far short of the desired output the
        # estimate fell. Never scale below the naive estimate.
        fee_ratio = max(div18(requested_to_thor_amount, to_thor_amount), Decimal(1))
        logger.debug(f"feeRatio: {fee_ratio}")
        from_thor_amount = mul(requested_from_thor_amount, fee_ratio)

        spread = spreads.for_track(can_be_partial)
        from_thor_with_spread = round_half_up(mul(add(1, spread), from_thor_amount))
        logger.debug(f"spread={spread} fromThorAmountWithSpread: {from_thor_with_spread}")

        from_exchange_amount = div18(from_thor_with_spread, THOR_LIMIT_UNITS)
        from_native_amount = to_native_string(
            await request.from_wallet.denomination_to_native(
                format_amount(from_exchange_amount), request.from_asset.currency_code
            )
        )
        logger.debug(f"fromNativeAmount: {from_native_amount}")

        memo = best.memo if is_estimate else embed_memo_limit(best.memo, requested_to_thor_amount)

        return CalcSwapResult(
            from_native_amount=from_native_amount,
            to_native_amount=to_native_amount,
            memo=memo,
            expected_thor_amount=to_thor_amount,
            expiry=best.expiry,
            can_be_partial=can_be_partial,
            max_fulfillment_seconds=best.total_swap_seconds,
            thor_address=best.inbound_address,
            router=best.router,
        )

    def _sub_quote_params(
        self,
        thor_amount: Decimal,
        source_pool: Pool,
        dest_pool: Pool,
        destination_address: str,
        affiliate_bps: str,
    ) -> list[dict[str, Any]]:
        """Atomic then streaming query parameters. Order is the tie-break."""
        atomic: dict[str, Any] = {
            "amount": format_amount(thor_amount),
            "from_asset": source_pool.asset,
            "to_asset": dest_pool.asset,
            "destination": destination_address,
            "streaming_interval": STREAMING_INTERVAL_NOSTREAM,
            "streaming_quantity": STREAMING_QUANTITY_NOSTREAM,
        }
        if self.affiliate:
            atomic["affiliate"] = self.affiliate
            atomic["affiliate_bps"] = affiliate_bps

        streaming = {
            **atomic,
            "streaming_interval": self.streaming_interval,
            "streaming_quantity": self.streaming_quantity,
        }
        return [atomic, streaming]

    # ------------------------------------------------------------------
    # Node sub-quotes
    # ------------------------------------------------------------------

    async def _get_best_quote(self, request: SwapRequest, params_list: list[dict[str, Any]]) -> QuoteSwapPayload:
        results = await asyncio.gather(*(self._get_quote(params) for params in params_list))

        best_quote: Optional[QuoteSwapPayload] = None
        best_min_error: Optional[SwapMinError] = None
        first_failure: Optional[QuoteFailure] = None

        for result in results:
            if isinstance(result, QuoteSwapPayload):
                if best_quote is None or result.expected_amount() > best_quote.expected_amount():
                    best_quote = result
            elif isinstance(result, SwapMinError):
                if best_min_error is None or result.min_thor_amount > best_min_error.min_thor_amount:
                    best_min_error = result
            elif isinstance(result, QuoteFailure):
                if first_failure is None:
                    first_failure = result

        if best_quote is not None:
            return best_quote

        if best_min_error is not None:
            min_exchange_amount = div18(best_min_error.min_thor_amount, THOR_LIMIT_UNITS)
            min_native_amount = to_native_string(
                await request.from_wallet.denomination_to_native(
                    format_amount(min_exchange_amount), request.from_asset.currency_code
                )
            )
            logger.warning(f"{self.provider}: amount below minimum {min_native_amount}")
            raise SwapBelowLimitError(self.provider, min_native_amount, "from")

        if first_failure is not None:
            raise first_failure.error

        raise SwapError(f"{self.provider}: could not get quote")

    async def _get_quote(self, params: dict[str, Any], discover_min: bool = True) -> SubQuote:
        """Fetch one sub-quote. Never raises; failures are returned as values."""
        try:
            response = await self.racer.race_fetch(
                self.node_servers, "quote/swap", params=params, headers=self.node_headers
            )
        except TransientFetchError as e:
            return QuoteFailure(e)

        endpoint = str(response.url)
        error_text: Optional[str] = None
        data: Any = None

        if not response.is_success:
            error_text = response.text
        else:
            try:
                data = response.json()
            except ValueError as e:
                return QuoteFailure(SwapError(f"Invalid JSON from {endpoint}: {e}"))
            if isinstance(data, dict) and "error" in data:
                error_text = str(data["error"])

        if error_text is not None:
            if discover_min and SWAP_TOO_SMALL in error_text:
                # Re-quote a larger amount only to read back the minimum
                inflated = {**params, "amount": format_amount(mul(params["amount"], MIN_DISCOVERY_MULTIPLIER))}
                retry = await self._get_quote(inflated, discover_min=False)
                if isinstance(retry, QuoteSwapPayload):
                    return SwapMinError(Decimal(retry.recommended_min_amount_in))
                return retry
            logger.warning(f"{self.provider} quote error from {endpoint}: {error_text[:200]}")
            return QuoteFailure(UpstreamHTTPError(response.status_code, endpoint, error_text))

        try:
            return QuoteSwapPayload.model_validate(data)
        except ValueError as e:
            return QuoteFailure(SwapError(f"Invalid quote response from {endpoint}: {e}"))

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    async def _build_order(
        self,
        request: SwapRequest,
        calc: CalcSwapResult,
        source_pool: Pool,
        destination_address: str,
        is_estimate: bool,
        fee_session: Optional[str],
    ) -> Order:
        from_asset = request.from_asset
        from_mainnet_code = source_pool.chain_code

        saved_action = SwapAction(
            swap_info=self.swap_info,
            from_asset=AssetAmount(from_asset.plugin_id, from_asset.token_id, calc.from_native_amount),
            to_asset=AssetAmount(request.to_asset.plugin_id, request.to_asset.token_id, calc.to_native_amount),
            payout_address=destination_address,
            payout_wallet_id=request.to_wallet.wallet_id,
            order_uri=self.order_uri,
            is_estimate=is_estimate,
        )

        order_fields: dict[str, Any] = dict(
            request=request,
            swap_info=self.swap_info,
            from_amount=calc.from_native_amount,
            to_amount=calc.to_native_amount,
            destination_address=destination_address,
            expires_at=expiration_from_now(self.expiration_seconds),
            max_fulfillment_seconds=calc.max_fulfillment_seconds,
            can_be_partial=calc.can_be_partial,
            min_receive_amount=None if is_estimate else calc.to_native_amount,
            is_estimate=is_estimate,
        )

        if from_mainnet_code == "THOR":
            params = MakeTxParams(
                type="MakeTxDeposit",
                assets=(DepositAsset(calc.from_native_amount, "THOR.RUNE", format_amount(THOR_LIMIT_UNITS)),),
                memo=calc.memo,
                saved_action=saved_action,
            )
            return Order(settlement=params, **order_fields)

        pre_tx: Optional[Transaction] = None
        network_fee_option: Optional[str] = None
        custom_network_fee: Optional[dict[str, str]] = None

        if from_mainnet_code in self.evm_chain_codes:
            if calc.router is None:
                raise SwapError(f"Missing router address for {from_mainnet_code}")
            if calc.thor_address is None:
                raise SwapError("Invalid vault address")

            public_address = calc.router
            send_amount = calc.from_native_amount
            asset_address = EVM_NATIVE_ASSET_ADDRESS

            if from_asset.is_token:
                token_contract = source_pool.contract_address
                if token_contract is None:
                    raise SwapError(f"Missing token contract address for {from_mainnet_code}")
                asset_address = token_contract
                # Token deposits send no native coin
                send_amount = "0"
                pre_tx = await self._make_approval_tx(request, calc, token_contract)
            else:
                # The wallet cannot estimate gas for a native send with call data
                network_fee_option = "custom"
                custom_network_fee = self._session_fee(fee_session, {"gasLimit": EVM_SEND_GAS})

            call_data = get_deposit_with_expiry_data(
                vault_address=calc.thor_address,
                asset_address=asset_address,
                native_amount=calc.from_native_amount,
                memo=calc.memo,
                expiry=calc.expiry,
            )
            memo = Memo(type="hex", value=call_data)
        else:
            # UTXO chains carry the memo as text (OP_RETURN)
            if from_asset.is_token:
                raise SwapCurrencyError(
                    self.provider, from_asset.currency_code, request.to_asset.currency_code
                )
            if calc.thor_address is None:
                raise SwapError("Invalid public address")
            public_address = calc.thor_address
            send_amount = calc.from_native_amount
            memo = Memo(type="text", value=calc.memo)

        spend = SpendInstruction(
            spend_targets=(SpendTarget(public_address=public_address, native_amount=send_amount),),
            token_id=from_asset.token_id,
            memos=(memo,),
            saved_action=saved_action,
            network_fee_option=network_fee_option,
            custom_network_fee=custom_network_fee,
            other_params={"outputSort": "targets"},
        )
        return Order(settlement=spend, pre_tx=pre_tx, **order_fields)

    async def _make_approval_tx(self, request: SwapRequest, calc: CalcSwapResult, token_contract: str) -> Transaction:
        """ERC-20 approve(router, amount), sent from the parent coin."""
        approval = SpendInstruction(
            spend_targets=(SpendTarget(public_address=token_contract, native_amount="0"),),
            token_id=None,
            memos=(Memo(type="hex", value=get_evm_approval_data(calc.router, calc.from_native_amount)),),
            asset_action="tokenApproval",
            saved_action=TokenApprovalAction(
                token_approved=AssetAmount(
                    request.from_asset.plugin_id, request.from_asset.token_id, calc.from_native_amount
                ),
                token_contract_address=token_contract,
                contract_address=calc.router or "",
            ),
        )
        return await request.from_wallet.make_spend(approval)

    def _session_fee(self, fee_session: Optional[str], default: dict[str, str]) -> dict[str, str]:
        if fee_session is None:
            return default
        cached = self.fee_cache.get_fees(fee_session)
        if cached is not None:
            return cached
        self.fee_cache.set_fees(fee_session, default)
        return default


def embed_memo_limit(memo: str, limit: Decimal) -> str:
    """Replace the first zero trade limit (``:0/``) with a concrete one."""
    return memo.replace(":0/", f":{format_amount(limit)}/", 1)
