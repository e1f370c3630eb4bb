"""Resolve "max" quote requests into concrete "from" requests.

The maximum spendable amount depends on the settlement payload (a memo
changes the fee), which is only known after a quote. So:
1. Trial quote with the full balance
2. Ask the wallet how much of that settlement it can actually spend
3. Subtract any native-coin pre-transaction fee
4. Return a "from" request for that amount
"""

import logging
from decimal import Decimal
from typing import Awaitable, Callable

from swapquote.amounts import sub, to_native_string
from swapquote.models import MakeTxParams, Order, QuoteDirection, SpendInstruction, SwapRequest

logger = logging.getLogger(__name__)

QuoteFn = Callable[[SwapRequest], Awaitable[Order]]


async def resolve_max(request: SwapRequest, quote_fn: QuoteFn) -> SwapRequest:
    """Turn a max request into a from request. Other requests pass through.

    Args:
        request: The caller's request
        quote_fn: Computes an Order for a from request

    Returns:
        A request with direction FROM, or the original request when the
        settlement is opaque to this resolver

    Raises:
        TypeError: if the trial Order carries an unknown settlement type
    """
    if request.direction != QuoteDirection.MAX:
        return request

    balance = await request.from_wallet.get_balance(request.from_asset.token_id)
    trial = await quote_fn(request.with_amount(balance, QuoteDirection.FROM))
    settlement = trial.settlement

    if isinstance(settlement, MakeTxParams):
        # Opaque builder parameters are sized by the provider itself
        return request

    if not isinstance(settlement, SpendInstruction):
        raise TypeError(f"Unknown settlement payload: {type(settlement).__name__}")

    max_amount = await request.from_wallet.get_max_spendable(settlement.without_amounts())
    logger.debug(f"Max spendable for {request.from_asset.currency_code}: {max_amount}")

    if trial.pre_tx is not None and not request.from_asset.is_token:
        # The pre-transaction's fee comes out of the same native balance
        pre_tx_fee = trial.pre_tx.parent_network_fee or trial.pre_tx.network_fee
        max_amount = to_native_string(max(sub(max_amount, pre_tx_fee), Decimal(0)))

    return request.with_amount(max_amount, QuoteDirection.FROM)
