"""Simulated wallet for dry runs and tests.

Keeps balances in memory, charges a flat fee plus a per-memo-byte fee,
and records every sign/broadcast/save call instead of touching a chain.
"""

import logging
import secrets
from decimal import Decimal
from typing import Callable, Optional

from swapquote.amounts import div18, format_amount, mul, sub, to_native_string
from swapquote.models import MakeTxParams, SpendInstruction, Transaction
from swapquote.wallet.base import CurrencyWallet

logger = logging.getLogger(__name__)


class SimulatedWallet(CurrencyWallet):
    """In-memory wallet. Nothing is ever sent anywhere."""

    def __init__(
        self,
        wallet_id: str,
        plugin_id: str,
        currency_code: str,
        decimals: int = 8,
        tokens: Optional[dict[str, tuple[str, int]]] = None,
        balances: Optional[dict[Optional[str], str]] = None,
        address: Optional[str] = None,
        base_fee: str = "1000",
        fee_per_memo_byte: str = "0",
        fail_broadcast: Optional[Callable[[Transaction], bool]] = None,
    ):
        """Initialize simulated wallet.

        Args:
            wallet_id: Wallet identifier
            plugin_id: Chain identifier
            currency_code: Native coin code
            decimals: Native coin decimals
            tokens: token_id -> (currency_code, decimals)
            balances: token_id (None for native) -> native balance
            address: Receive address
            base_fee: Flat network fee in native units of the parent coin
            fee_per_memo_byte: Extra fee per memo byte
            fail_broadcast: Predicate selecting transactions whose broadcast fails
        """
        super().__init__(wallet_id, plugin_id, currency_code)
        self.decimals = decimals
        self.tokens = tokens or {}
        self.balances = balances or {}
        self.address = address or f"{plugin_id}_sim_{wallet_id}"
        self.base_fee = base_fee
        self.fee_per_memo_byte = fee_per_memo_byte
        self.fail_broadcast = fail_broadcast

        self.signed: list[Transaction] = []
        self.broadcasted: list[Transaction] = []
        self.saved: list[Transaction] = []
        self.saved_actions: list[dict] = []

    def get_currency_code(self, token_id: Optional[str]) -> str:
        if token_id is None:
            return self.currency_code
        return self.tokens[token_id][0]

    def _decimals_for(self, currency_code: str) -> int:
        if currency_code.upper() == self.currency_code:
            return self.decimals
        for code, decimals in self.tokens.values():
            if code.upper() == currency_code.upper():
                return decimals
        raise ValueError(f"Unknown currency {currency_code} in {self.plugin_id} wallet")

    def _fee_for(self, memo_bytes: int) -> str:
        return to_native_string(Decimal(self.base_fee) + mul(self.fee_per_memo_byte, memo_bytes))

    async def get_receive_address(self, token_id: Optional[str] = None) -> str:
        return self.address

    async def get_balance(self, token_id: Optional[str] = None) -> str:
        return self.balances.get(token_id, "0")

    async def native_to_denomination(self, native_amount: str, currency_code: str) -> str:
        multiplier = Decimal(10) ** self._decimals_for(currency_code)
        return format_amount(div18(native_amount, multiplier))

    async def denomination_to_native(self, exchange_amount: str, currency_code: str) -> str:
        multiplier = Decimal(10) ** self._decimals_for(currency_code)
        return format_amount(mul(exchange_amount, multiplier))

    def _spend_fee(self, spend: SpendInstruction) -> str:
        memo_bytes = sum(len(memo.value.encode()) for memo in spend.memos)
        if spend.custom_network_fee and "fee" in spend.custom_network_fee:
            return spend.custom_network_fee["fee"]
        return self._fee_for(memo_bytes)

    async def get_max_spendable(self, spend: SpendInstruction) -> str:
        balance = await self.get_balance(spend.token_id)
        if spend.token_id is not None:
            return balance
        max_amount = sub(balance, self._spend_fee(spend))
        return to_native_string(max(max_amount, Decimal(0)))

    async def make_spend(self, spend: SpendInstruction) -> Transaction:
        fee = self._spend_fee(spend)
        amount = sum((Decimal(t.native_amount or "0") for t in spend.spend_targets), Decimal(0))
        tx = Transaction(
            txid=f"sim_tx_{secrets.token_hex(16)}",
            currency_code=self.get_currency_code(spend.token_id),
            token_id=spend.token_id,
            native_amount=to_native_string(amount),
            network_fee=fee if spend.token_id is None else "0",
            saved_action=spend.saved_action,
            asset_action=spend.asset_action,
        )
        if spend.token_id is not None:
            tx.parent_network_fee = fee
            tx.parent_currency_code = self.currency_code
        return tx

    async def make_tx(self, params: MakeTxParams) -> Transaction:
        amount = sum((Decimal(a.amount) for a in params.assets), Decimal(0))
        return Transaction(
            txid=f"sim_tx_{secrets.token_hex(16)}",
            currency_code=self.currency_code,
            native_amount=to_native_string(amount),
            network_fee=self._fee_for(len(params.memo.encode())),
            saved_action=params.saved_action,
            asset_action=params.asset_action,
        )

    async def get_max_tx(self, params: MakeTxParams) -> str:
        balance = await self.get_balance(None)
        max_amount = sub(balance, self._fee_for(len(params.memo.encode())))
        return to_native_string(max(max_amount, Decimal(0)))

    async def sign_tx(self, tx: Transaction) -> Transaction:
        tx.signed_tx = f"signed:{tx.txid}"
        self.signed.append(tx)
        return tx

    async def broadcast_tx(self, tx: Transaction) -> Transaction:
        if self.fail_broadcast is not None and self.fail_broadcast(tx):
            raise RuntimeError(f"Simulated broadcast failure for {tx.txid}")
        logger.info(f"[SIMULATED] Broadcast {tx.native_amount} {tx.currency_code}: {tx.txid}")
        self.broadcasted.append(tx)
        return tx

    async def save_tx(self, tx: Transaction) -> None:
        self.saved.append(tx)

    async def save_tx_action(
        self,
        txid: str,
        token_id: Optional[str],
        asset_action: str,
        saved_action: object,
    ) -> None:
        self.saved_actions.append(
            {
                "txid": txid,
                "token_id": token_id,
                "asset_action": asset_action,
                "saved_action": saved_action,
            }
        )
