"""Tests for the racing fetcher."""

import asyncio
import time

import httpx
import pytest

from swapquote.errors import TransientFetchError
from swapquote.network.racer import NetworkRacer, join_url

TIMEOUT = 0.3


async def mirror_handler(request: httpx.Request) -> httpx.Response:
    host = request.url.host
    if host == "slow.test":
        await asyncio.sleep(10)
        return httpx.Response(200, json={"mirror": "slow"})
    if host == "broken.test":
        raise httpx.ConnectError("connection refused", request=request)
    if host == "error.test":
        return httpx.Response(503, text="maintenance")
    return httpx.Response(200, json={"mirror": host})


class TestJoinUrl:
    """Tests for URL joining."""

    def test_join_strips_duplicate_slashes(self):
        assert join_url("https://a.test/thorchain/", "/quote/swap") == "https://a.test/thorchain/quote/swap"

    def test_join_plain(self):
        assert join_url("https://a.test", "v2/pools") == "https://a.test/v2/pools"


class TestNetworkRacer:
    """Tests for NetworkRacer.race_fetch."""

    @pytest.mark.asyncio
    async def test_first_healthy_endpoint_wins(self):
        """Test the first endpoint that answers is returned."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(mirror_handler))
        racer = NetworkRacer(client=client, timeout=TIMEOUT)

        response = await racer.race_fetch(["https://a.test", "https://b.test"], "v2/pools")

        assert response.json() == {"mirror": "a.test"}
        await client.aclose()

    @pytest.mark.asyncio
    async def test_timeout_then_failure_then_success(self):
        """Test only the timeout consumes its full budget; the failure moves on at once."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(mirror_handler))
        racer = NetworkRacer(client=client, timeout=TIMEOUT)

        start = time.monotonic()
        response = await racer.race_fetch(
            ["https://slow.test", "https://broken.test", "https://ok.test"], "quote/swap"
        )
        elapsed = time.monotonic() - start

        assert response.json() == {"mirror": "ok.test"}
        assert elapsed < 2 * TIMEOUT
        await client.aclose()

    @pytest.mark.asyncio
    async def test_non_success_status_is_returned(self):
        """Test an HTTP error status still counts as an answer."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(mirror_handler))
        racer = NetworkRacer(client=client, timeout=TIMEOUT)

        response = await racer.race_fetch(["https://error.test", "https://ok.test"], "v2/pools")

        assert response.status_code == 503
        await client.aclose()

    @pytest.mark.asyncio
    async def test_all_endpoints_fail(self):
        """Test exhaustion raises one aggregated error."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(mirror_handler))
        racer = NetworkRacer(client=client, timeout=TIMEOUT)
        endpoints = ["https://slow.test", "https://broken.test"]

        with pytest.raises(TransientFetchError) as exc_info:
            await racer.race_fetch(endpoints, "v2/pools")

        assert exc_info.value.endpoints == endpoints
        assert exc_info.value.path == "v2/pools"
        assert isinstance(exc_info.value.last_error, httpx.ConnectError)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_empty_endpoint_list(self):
        """Test an empty mirror list fails without any request."""
        racer = NetworkRacer(timeout=TIMEOUT)

        with pytest.raises(TransientFetchError):
            await racer.race_fetch([], "v2/pools")
        await racer.aclose()

    @pytest.mark.asyncio
    async def test_params_and_headers_are_forwarded(self):
        """Test query parameters and headers reach the mirror."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        racer = NetworkRacer(client=client, timeout=TIMEOUT)

        await racer.race_fetch(
            ["https://a.test/thorchain"], "quote/swap", params={"amount": "100"}, headers={"x-client-id": "abc"}
        )

        assert seen[0].url.path == "/thorchain/quote/swap"
        assert seen[0].url.params["amount"] == "100"
        assert seen[0].headers["x-client-id"] == "abc"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_shuffled_tries_every_endpoint(self):
        """Test the shuffled variant still falls through to a healthy mirror."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(mirror_handler))
        racer = NetworkRacer(client=client, timeout=TIMEOUT)

        response = await racer.race_fetch_shuffled(["https://broken.test", "https://ok.test"], "v1/info")

        assert response.json() == {"mirror": "ok.test"}
        await client.aclose()
