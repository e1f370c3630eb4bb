"""Executable quote: an Order plus its unsigned transaction, ready to approve."""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Optional

from swapquote.amounts import add, to_native_string
from swapquote.errors import InvalidOrderError, PartialExecutionError
from swapquote.models import (
    MakeTxParams,
    NetworkFee,
    Order,
    QuoteState,
    SpendInstruction,
    SwapAction,
    SwapResult,
    Transaction,
    ensure_in_future,
)

logger = logging.getLogger(__name__)


class ExecutableQuote:
    """Lifecycle wrapper around an Order exposing approve/close.

    Use ``await ExecutableQuote.create(order)``; the constructor expects an
    already-built main transaction.
    """

    def __init__(self, order: Order, tx: Transaction):
        self.order = order
        self.tx = tx
        self._state = QuoteState.NOT_APPROVED
        self._lock = asyncio.Lock()
        self._result: Optional[SwapResult] = None
        # Metadata as built by the wallet, merged afresh on every attempt
        self._tx_metadata = dict(tx.metadata)

        action = tx.saved_action
        if not isinstance(action, SwapAction):
            raise InvalidOrderError(f"Invalid swap action type from {order.swap_info.plugin_id}")

        self.from_amount = order.from_amount
        self.to_amount = action.to_asset.native_amount
        self.destination_address = action.payout_address
        self.is_estimate = action.is_estimate
        self.order_id = action.order_id or order.order_id

        if self.from_amount is None or self.to_amount is None or not self.destination_address:
            raise InvalidOrderError(f"Invalid quote args from {order.swap_info.plugin_id}")

        self.expiration_date: Optional[datetime] = ensure_in_future(order.expires_at)
        self.network_fee = self._aggregate_fees()

    @classmethod
    async def create(cls, order: Order) -> "ExecutableQuote":
        """Build the main transaction through the source wallet and wrap it."""
        wallet = order.request.from_wallet
        settlement = order.settlement

        if isinstance(settlement, SpendInstruction):
            tx = await wallet.make_spend(settlement)
        elif isinstance(settlement, MakeTxParams):
            tx = await wallet.make_tx(settlement)
            if tx.token_id is None:
                tx.token_id = order.request.from_asset.token_id
            if not tx.currency_code:
                tx.currency_code = order.request.from_asset.currency_code
            if tx.saved_action is None:
                tx.saved_action = settlement.saved_action
            if tx.asset_action is None:
                tx.asset_action = settlement.asset_action
        else:
            raise InvalidOrderError(f"Unknown settlement payload: {type(settlement).__name__}")

        return cls(order, tx)

    @property
    def state(self) -> QuoteState:
        return self._state

    @property
    def plugin_id(self) -> str:
        return self.order.swap_info.plugin_id

    @property
    def can_be_partial(self) -> bool:
        return self.order.can_be_partial

    @property
    def max_fulfillment_seconds(self) -> Optional[int]:
        return self.order.max_fulfillment_seconds

    @property
    def min_receive_amount(self) -> Optional[str]:
        return self.order.min_receive_amount

    def _aggregate_fees(self) -> NetworkFee:
        """Main tx fee, plus the pre-tx fee when paid in the same currency."""
        fee_amount = self.tx.fee_amount
        fee_code = self.tx.fee_currency_code
        pre_tx = self.order.pre_tx

        if pre_tx is not None:
            if pre_tx.fee_currency_code == fee_code:
                fee_amount = to_native_string(add(fee_amount, pre_tx.fee_amount))
            else:
                logger.debug(
                    f"Not adding pre-tx fee: {pre_tx.fee_currency_code} differs from {fee_code}"
                )

        return NetworkFee(currency_code=fee_code, native_amount=fee_amount)

    async def approve(self, metadata: Optional[dict[str, Any]] = None) -> SwapResult:
        """Broadcast the pre-transaction (once) and the main transaction.

        Args:
            metadata: Caller metadata merged under the transaction's own

        Returns:
            SwapResult with the broadcast transaction, order id and payout address

        Raises:
            PartialExecutionError: if the pre-transaction went out but the
                main transaction failed. A retry only re-attempts the main one.
        """
        async with self._lock:
            if self._result is not None:
                return self._result

            wallet = self.order.request.from_wallet
            pre_tx = self.order.pre_tx

            if pre_tx is not None and self._state == QuoteState.NOT_APPROVED:
                signed_pre_tx = await wallet.sign_tx(pre_tx)
                broadcast_pre_tx = await wallet.broadcast_tx(signed_pre_tx)
                # The approval is on chain now; never broadcast it again
                self._state = QuoteState.PRE_TX_BROADCAST
                logger.info(f"{self.plugin_id} pre-transaction broadcast: {broadcast_pre_tx.txid}")
                await wallet.save_tx(broadcast_pre_tx)

            try:
                result = await self._broadcast_main(metadata)
            except Exception as e:
                if self._state == QuoteState.PRE_TX_BROADCAST:
                    logger.error(f"{self.plugin_id} swap transaction failed after pre-transaction: {e}")
                    raise PartialExecutionError(self.plugin_id, pre_tx.txid if pre_tx else None, str(e)) from e
                logger.error(f"{self.plugin_id} swap transaction failed: {e}")
                raise

            self._state = QuoteState.BROADCAST
            self._result = result
            return result

    async def _broadcast_main(self, metadata: Optional[dict[str, Any]]) -> SwapResult:
        wallet = self.order.request.from_wallet
        request = self.order.request
        swap_info = self.order.swap_info
        tx = self.tx

        tx.metadata = {**(metadata or {}), **self._tx_metadata}
        if self.order.metadata_notes is not None:
            notes = tx.metadata.get("notes")
            tx.metadata["notes"] = self.order.metadata_notes + (f"\n\n{notes}" if notes is not None else "")

        signed_tx = await wallet.sign_tx(tx)
        broadcast_tx = await wallet.broadcast_tx(signed_tx)
        logger.info(f"{self.plugin_id} swap broadcast: {broadcast_tx.txid}")

        saved_action = signed_tx.saved_action
        if (
            self.order.add_txid_to_order_uri
            and isinstance(saved_action, SwapAction)
            and saved_action.order_uri is not None
        ):
            saved_action = replace(saved_action, order_uri=f"{saved_action.order_uri}{tx.txid}")
            signed_tx.saved_action = saved_action

        order_id = self.order_id
        if order_id is None and swap_info.is_dex:
            order_id = tx.txid

        await wallet.save_tx(signed_tx)

        # Token transactions paying parent-chain gas get a fee action
        if (
            signed_tx.token_id is not None
            and signed_tx.parent_network_fee is not None
            and signed_tx.asset_action is not None
            and saved_action is not None
        ):
            if (
                not swap_info.is_dex
                or request.from_wallet.wallet_id != request.to_wallet.wallet_id
                or (request.from_asset.is_token and request.to_asset.is_token)
            ):
                asset_action = (
                    "swapNetworkFee" if signed_tx.asset_action.startswith("swap") else "transferNetworkFee"
                )
                await wallet.save_tx_action(signed_tx.txid, None, asset_action, saved_action)

        return SwapResult(
            transaction=broadcast_tx,
            destination_address=self.destination_address,
            order_id=order_id,
        )

    async def close(self) -> None:
        """Nothing to release. Safe in any state."""
        pass
