"""Provider interface and best-quote aggregation."""

import asyncio
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from swapquote.errors import SwapCurrencyError, SwapError, SwapLimitError
from swapquote.models import SwapInfo, SwapRequest
from swapquote.quote import ExecutableQuote

logger = logging.getLogger(__name__)


class SwapProvider(ABC):
    """Abstract base class for swap providers."""

    @property
    @abstractmethod
    def swap_info(self) -> SwapInfo:
        """Static provider description."""
        pass

    @property
    def name(self) -> str:
        return self.swap_info.plugin_id

    @abstractmethod
    async def fetch_swap_quote(self, request: SwapRequest) -> ExecutableQuote:
        """
        Get an executable quote.

        Args:
            request: Source/destination wallets and assets, amount and direction

        Returns:
            ExecutableQuote ready to approve

        Raises:
            SwapCurrencyError: if the pair is not supported
            SwapLimitError: if the amount is outside the provider's limits
        """
        pass

    async def close(self) -> None:
        """Release provider resources."""
        pass


class SwapAggregator:
    """Queries every provider and keeps the quote with the best output."""

    def __init__(self, providers: Optional[list[SwapProvider]] = None):
        self.providers: list[SwapProvider] = providers or []

    def add_provider(self, provider: SwapProvider) -> None:
        """Add a swap provider."""
        self.providers.append(provider)

    async def fetch_all_quotes(self, request: SwapRequest) -> tuple[list[ExecutableQuote], list[SwapError]]:
        """Fetch quotes from all providers concurrently.

        Returns:
            Successful quotes and the errors of the providers that failed
        """
        logger.debug(
            f"Getting quotes for {request.native_amount} {request.from_asset.currency_code} -> "
            f"{request.to_asset.currency_code} ({request.direction.value})"
        )
        results = await asyncio.gather(
            *(provider.fetch_swap_quote(request) for provider in self.providers),
            return_exceptions=True,
        )

        quotes: list[ExecutableQuote] = []
        errors: list[SwapError] = []
        for provider, result in zip(self.providers, results):
            if isinstance(result, ExecutableQuote):
                logger.info(
                    f"Quote from {provider.name}: {result.from_amount} {request.from_asset.currency_code} -> "
                    f"{result.to_amount} {request.to_asset.currency_code}"
                )
                quotes.append(result)
            elif isinstance(result, SwapError):
                logger.warning(f"{provider.name} quote failed: {type(result).__name__}: {result}")
                errors.append(result)
            elif isinstance(result, BaseException):
                raise result

        return quotes, errors

    async def fetch_best_quote(self, request: SwapRequest) -> ExecutableQuote:
        """
        Get the best quote across all providers.

        Returns the quote with the highest to_amount. The others are closed.

        Raises:
            SwapLimitError: if no provider succeeded and one reported a limit
            SwapError: the first provider error otherwise
        """
        quotes, errors = await self.fetch_all_quotes(request)

        if not quotes:
            if not errors:
                raise SwapCurrencyError(
                    "aggregator", request.from_asset.currency_code, request.to_asset.currency_code
                )
            for error in errors:
                if isinstance(error, SwapLimitError):
                    raise error
            raise errors[0]

        best = max(quotes, key=lambda q: Decimal(q.to_amount))
        for quote in quotes:
            if quote is not best:
                await quote.close()

        logger.info(f"Selected best quote: {best.plugin_id} - {best.to_amount}")
        return best
