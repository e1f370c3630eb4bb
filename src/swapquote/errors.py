"""Error taxonomy for quoting and execution.

Limit errors always carry a concrete native amount so a UI can show
"minimum is X". Integration errors (InvalidOrderError) and partial
execution are raised to the caller and never retried.
"""

from typing import Optional, Sequence


class SwapError(Exception):
    """Base class for all quote and execution errors."""

    pass


class SwapLimitError(SwapError):
    """Requested amount falls outside a provider's limits.

    Attributes:
        provider: Provider plugin id that reported the limit
        limit_native_amount: Limit in native units of the side it applies to
        direction: "from" if the limit applies to the send side, "to" otherwise
    """

    kind = "limit"

    def __init__(self, provider: str, limit_native_amount: str, direction: str = "from"):
        self.provider = provider
        self.limit_native_amount = limit_native_amount
        self.direction = direction
        super().__init__(
            f"{provider}: amount {self.kind} limit is {limit_native_amount} "
            f"(applies to '{direction}' side)"
        )


class SwapBelowLimitError(SwapLimitError):
    """Amount is below the provider's minimum."""

    kind = "below minimum"


class SwapAboveLimitError(SwapLimitError):
    """Amount is above the provider's maximum."""

    kind = "above maximum"


class SwapCurrencyError(SwapError):
    """The requested asset pair or route cannot be serviced."""

    def __init__(self, provider: str, from_code: str, to_code: str):
        self.provider = provider
        self.from_code = from_code
        self.to_code = to_code
        super().__init__(f"{provider} does not support {from_code} -> {to_code}")


class TransientFetchError(SwapError):
    """Every mirror in a racing fetch failed or timed out."""

    def __init__(
        self,
        endpoints: Sequence[str],
        path: str,
        last_error: Optional[BaseException] = None,
    ):
        self.endpoints = list(endpoints)
        self.path = path
        self.last_error = last_error
        detail = f"{type(last_error).__name__}: {last_error}" if last_error else "no endpoints"
        super().__init__(
            f"All {len(self.endpoints)} endpoint(s) failed for '{path}'. Last error: {detail}"
        )


class UpstreamHTTPError(SwapError):
    """A mirror answered with a non-success HTTP status."""

    def __init__(self, status_code: int, endpoint: str, body: str = ""):
        self.status_code = status_code
        self.endpoint = endpoint
        self.body = body
        snippet = body[:200]
        super().__init__(f"HTTP {status_code} from {endpoint}: {snippet}")


class InvalidOrderError(SwapError):
    """An Order is missing fields the execution layer requires.

    This is an integration bug, not a user-facing condition.
    """

    pass


class PartialExecutionError(SwapError):
    """The pre-transaction was broadcast but the main transaction failed.

    The pre-transaction cannot be rolled back. The original failure is
    chained as ``__cause__``.
    """

    def __init__(self, provider: str, pre_tx_id: Optional[str], message: str):
        self.provider = provider
        self.pre_tx_id = pre_tx_id
        super().__init__(
            f"{provider}: pre-transaction {pre_tx_id} broadcast but swap transaction failed: {message}"
        )
