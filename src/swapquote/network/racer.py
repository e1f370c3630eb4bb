"""Racing fetch across equivalent mirrors.

Flow:
1. Try endpoints in the given order
2. Each attempt gets its own timeout; a timed-out attempt is cancelled
3. A transport failure moves on to the next endpoint immediately
4. The first endpoint that answers (any HTTP status) wins
5. If every endpoint fails, raise one aggregated TransientFetchError

There is no retry beyond the endpoint list and no backoff.
"""

import asyncio
import logging
import random
from typing import Any, Optional, Sequence

import httpx

from swapquote.errors import TransientFetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


def join_url(base: str, path: str) -> str:
    """Join a mirror base URL and a relative path."""
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


class NetworkRacer:
    """Fetches a path from the first responsive mirror."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """Initialize racer.

        Args:
            client: Shared HTTP client (a private one is created if omitted)
            timeout: Default per-attempt timeout in seconds
        """
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def race_fetch(
        self,
        endpoints: Sequence[str],
        path: str,
        *,
        method: str = "GET",
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json: Any = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """Return the response of the first endpoint that answers.

        Args:
            endpoints: Equivalent mirror base URLs, tried in order
            path: Path relative to each base URL
            method: HTTP method
            params: Query parameters
            headers: Extra request headers
            json: JSON body
            timeout: Per-attempt timeout (defaults to the racer's)

        Returns:
            The winning httpx.Response. Non-2xx responses are returned as-is.

        Raises:
            TransientFetchError: if every endpoint failed or timed out
        """
        attempt_timeout = self.timeout if timeout is None else timeout
        last_error: Optional[BaseException] = None

        for base in endpoints:
            url = join_url(base, path)
            try:
                response = await asyncio.wait_for(
                    self.client.request(method, url, params=params, headers=headers, json=json),
                    timeout=attempt_timeout,
                )
                logger.debug(f"{method} {url} -> {response.status_code}")
                return response

            except asyncio.TimeoutError as e:
                logger.warning(f"Timed out after {attempt_timeout}s: {url}")
                last_error = e

            except httpx.HTTPError as e:
                logger.warning(f"Request failed for {url}: {type(e).__name__}: {e}")
                last_error = e

        raise TransientFetchError(endpoints, path, last_error)

    async def race_fetch_shuffled(
        self,
        endpoints: Sequence[str],
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Like race_fetch, but spreads load by trying mirrors in random order."""
        shuffled = list(endpoints)
        random.shuffle(shuffled)
        return await self.race_fetch(shuffled, path, **kwargs)
