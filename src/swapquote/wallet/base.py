"""Wallet collaborator interface.

The quote engine never signs or broadcasts on its own. Everything that
touches keys, balances or fee estimation goes through this interface:
1. Address lookup for the payout side
2. Native <-> reference unit conversion
3. Balance and max-spendable lookup
4. Unsigned transaction construction from a settlement payload
5. Sign, broadcast and persist
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from swapquote.models import MakeTxParams, SpendInstruction, Transaction

logger = logging.getLogger(__name__)


class CurrencyWallet(ABC):
    """Abstract wallet for one chain (and the tokens on it)."""

    def __init__(self, wallet_id: str, plugin_id: str, currency_code: str):
        """Initialize wallet.

        Args:
            wallet_id: Unique wallet identifier
            plugin_id: Chain identifier (bitcoin, ethereum, ...)
            currency_code: Code of the chain's native coin
        """
        self.wallet_id = wallet_id
        self.plugin_id = plugin_id
        self.currency_code = currency_code.upper()

    @abstractmethod
    def get_currency_code(self, token_id: Optional[str]) -> str:
        """Currency code for a token on this chain (native coin if None)."""
        pass

    @abstractmethod
    async def get_receive_address(self, token_id: Optional[str] = None) -> str:
        """Address that receives funds for this wallet."""
        pass

    @abstractmethod
    async def get_balance(self, token_id: Optional[str] = None) -> str:
        """Available balance in native units."""
        pass

    @abstractmethod
    async def native_to_denomination(self, native_amount: str, currency_code: str) -> str:
        """Convert native (smallest) units to the reference denomination."""
        pass

    @abstractmethod
    async def denomination_to_native(self, exchange_amount: str, currency_code: str) -> str:
        """Convert reference-denomination units to native units.

        May return a fractional string; callers round.
        """
        pass

    @abstractmethod
    async def get_max_spendable(self, spend: SpendInstruction) -> str:
        """Maximum amount spendable to the targets, net of network fee.

        Args:
            spend: Spend instruction whose target amounts are unset

        Returns:
            Native amount
        """
        pass

    @abstractmethod
    async def make_spend(self, spend: SpendInstruction) -> Transaction:
        """Build an unsigned transaction from a spend instruction."""
        pass

    @abstractmethod
    async def make_tx(self, params: MakeTxParams) -> Transaction:
        """Build an unsigned transaction from opaque builder parameters."""
        pass

    async def get_max_tx(self, params: MakeTxParams) -> str:
        """Maximum amount for an opaque deposit transaction.

        Only chains with builder-parameter settlement implement this.
        """
        raise NotImplementedError(f"{self.plugin_id} wallet cannot size opaque transactions")

    @abstractmethod
    async def sign_tx(self, tx: Transaction) -> Transaction:
        pass

    @abstractmethod
    async def broadcast_tx(self, tx: Transaction) -> Transaction:
        pass

    @abstractmethod
    async def save_tx(self, tx: Transaction) -> None:
        """Persist the transaction record."""
        pass

    async def save_tx_action(
        self,
        txid: str,
        token_id: Optional[str],
        asset_action: str,
        saved_action: object,
    ) -> None:
        """Attach an extra action (e.g. a network fee tag) to a saved tx."""
        logger.debug(f"{self.plugin_id}: no action store, dropping {asset_action} for {txid}")
