"""Core data model shared by the calculator, resolver and quote lifecycle."""

import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Union

if TYPE_CHECKING:
    from swapquote.wallet.base import CurrencyWallet


class QuoteDirection(str, Enum):
    """Which side of the swap the request amount refers to."""
    FROM = "from"
    TO = "to"
    MAX = "max"


class QuoteState(str, Enum):
    """ExecutableQuote lifecycle. Transitions only move forward."""
    NOT_APPROVED = "not-approved"
    PRE_TX_BROADCAST = "pre-tx-broadcast"
    BROADCAST = "broadcast"


@dataclass(frozen=True)
class AssetRef:
    """One tradeable asset: a chain plus an optional token on it."""

    plugin_id: str  # e.g., "bitcoin", "ethereum"
    currency_code: str  # e.g., "BTC", "USDC"
    token_id: Optional[str] = None  # None for the chain's native coin

    @property
    def is_token(self) -> bool:
        return self.token_id is not None


@dataclass(frozen=True)
class SwapInfo:
    """Static description of a swap provider."""

    plugin_id: str
    display_name: str
    is_dex: bool = False
    support_email: str = ""


@dataclass(frozen=True)
class Pool:
    """A provider's published price snapshot for one asset.

    ``asset`` is the provider's pool identifier, e.g. ``BTC.BTC`` or
    ``ETH.USDT-0XDAC17F958D2EE523A2206206994597C13D831EC7``.
    It maps onto an AssetRef through the provider's chain-code table:
    the chain code selects the plugin id, the symbol is the currency code
    and the contract suffix (lower-cased, without ``0x``) is the token id.
    """

    asset: str
    price: Decimal  # price in the provider's reference asset
    price_usd: Decimal

    @property
    def chain_asset(self) -> str:
        """Pool identifier without the contract suffix (``ETH.USDT``)."""
        return self.asset.split("-")[0]

    @property
    def chain_code(self) -> str:
        return self.chain_asset.split(".")[0]

    @property
    def contract_address(self) -> Optional[str]:
        """Lower-cased token contract address, if the pool is a token pool."""
        parts = self.asset.split("-", 1)
        if len(parts) < 2:
            return None
        return parts[1].lower()


@dataclass(frozen=True)
class SpreadRule:
    """Volatility spread override. Unset matchers match anything."""

    spread: Decimal
    source_plugin_id: Optional[str] = None
    source_token_id: Optional[str] = None
    source_currency_code: Optional[str] = None
    dest_plugin_id: Optional[str] = None
    dest_token_id: Optional[str] = None
    dest_currency_code: Optional[str] = None


@dataclass(frozen=True)
class SpreadTrack:
    """Ordered rules plus fallbacks for one execution track."""

    rules: tuple[SpreadRule, ...]
    default_spread: Decimal
    like_kind_spread: Decimal


@dataclass(frozen=True)
class SpreadConfig:
    """Spread tables for atomic and streaming execution."""

    atomic: SpreadTrack
    streaming: SpreadTrack

    def track(self, streaming: bool) -> SpreadTrack:
        return self.streaming if streaming else self.atomic


@dataclass(frozen=True)
class SwapRequest:
    """A caller's request for a quote."""

    from_wallet: "CurrencyWallet"
    to_wallet: "CurrencyWallet"
    from_asset: AssetRef
    to_asset: AssetRef
    native_amount: str
    direction: QuoteDirection = QuoteDirection.FROM

    def with_amount(self, native_amount: str, direction: QuoteDirection) -> "SwapRequest":
        return replace(self, native_amount=native_amount, direction=direction)


@dataclass(frozen=True)
class Memo:
    type: str  # "text" or "hex"
    value: str


@dataclass(frozen=True)
class SpendTarget:
    public_address: str
    native_amount: Optional[str] = None  # None lets the wallet fill in a max amount


@dataclass(frozen=True)
class AssetAmount:
    plugin_id: str
    token_id: Optional[str]
    native_amount: str


@dataclass(frozen=True)
class SwapAction:
    """Saved action describing a swap, attached to the transaction record."""

    swap_info: SwapInfo
    from_asset: AssetAmount
    to_asset: AssetAmount
    payout_address: str
    payout_wallet_id: str
    order_uri: Optional[str] = None
    order_id: Optional[str] = None
    is_estimate: bool = False
    action_type: str = "swap"


@dataclass(frozen=True)
class TokenApprovalAction:
    """Saved action for an ERC-20 spending approval."""

    token_approved: AssetAmount
    token_contract_address: str
    contract_address: str
    action_type: str = "tokenApproval"


@dataclass(frozen=True)
class SpendInstruction:
    """Generic settlement: send an amount to an address with optional memos."""

    spend_targets: tuple[SpendTarget, ...]
    token_id: Optional[str] = None
    memos: tuple[Memo, ...] = ()
    asset_action: str = "swap"
    saved_action: Optional[Union[SwapAction, TokenApprovalAction]] = None
    network_fee_option: Optional[str] = None
    custom_network_fee: Optional[dict[str, str]] = None
    other_params: dict[str, Any] = field(default_factory=dict)

    def without_amounts(self) -> "SpendInstruction":
        """Copy with target amounts removed, for max-spendable estimation."""
        targets = tuple(replace(t, native_amount=None) for t in self.spend_targets)
        return replace(self, spend_targets=targets)


@dataclass(frozen=True)
class DepositAsset:
    amount: str
    asset: str
    decimals: str


@dataclass(frozen=True)
class MakeTxParams:
    """Opaque transaction-builder parameters understood only by the wallet."""

    type: str  # e.g. "MakeTxDeposit"
    assets: tuple[DepositAsset, ...]
    memo: str
    saved_action: SwapAction
    asset_action: str = "swap"


SettlementPayload = Union[SpendInstruction, MakeTxParams]


@dataclass
class Transaction:
    """A wallet transaction record, unsigned until signed by the wallet."""

    txid: str
    currency_code: str
    native_amount: str
    network_fee: str
    token_id: Optional[str] = None
    parent_network_fee: Optional[str] = None
    parent_currency_code: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    saved_action: Optional[Union[SwapAction, TokenApprovalAction]] = None
    asset_action: Optional[str] = None
    signed_tx: Optional[str] = None

    @property
    def fee_amount(self) -> str:
        """Fee actually spent, in ``fee_currency_code`` units."""
        if self.parent_network_fee is not None:
            return self.parent_network_fee
        return self.network_fee

    @property
    def fee_currency_code(self) -> str:
        if self.parent_network_fee is not None and self.parent_currency_code:
            return self.parent_currency_code
        return self.currency_code


@dataclass(frozen=True)
class Order:
    """Computed, unsigned result of a quote calculation. Immutable."""

    request: SwapRequest
    swap_info: SwapInfo
    settlement: SettlementPayload
    from_amount: Optional[str]
    to_amount: Optional[str]
    destination_address: Optional[str]
    expires_at: datetime
    max_fulfillment_seconds: Optional[int] = None
    can_be_partial: bool = False
    pre_tx: Optional[Transaction] = None
    min_receive_amount: Optional[str] = None
    metadata_notes: Optional[str] = None
    add_txid_to_order_uri: bool = False
    is_estimate: bool = False
    order_id: Optional[str] = None


@dataclass(frozen=True)
class NetworkFee:
    currency_code: str
    native_amount: str
    token_id: Optional[str] = None


@dataclass
class SwapResult:
    """Outcome of ``ExecutableQuote.approve``."""

    transaction: Transaction
    destination_address: str
    order_id: Optional[str] = None


def ensure_in_future(date: Optional[datetime], margin_seconds: int = 30) -> Optional[datetime]:
    """Ensure a date is in the future by at least ``margin_seconds``."""
    if date is None:
        return None
    target = datetime.now(timezone.utc) + timedelta(seconds=margin_seconds)
    return date if target < date else target


def expiration_from_now(seconds: int) -> datetime:
    return datetime.fromtimestamp(time.time() + seconds, tz=timezone.utc)
