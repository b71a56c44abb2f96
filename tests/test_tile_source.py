"""Tests for chuk_mcp_viewshed.core.tile_source."""

import httpx
import pytest

from chuk_mcp_viewshed.core.errors import TileFetchError
from chuk_mcp_viewshed.core.tile_source import CallableTileSource, HttpTileSource

TEMPLATE = "https://tiles.example.test/{z}/{x}/{y}.png?access_token={token}"


def _http_source(handler, retries=3):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpTileSource(
        url_template=TEMPLATE,
        access_token="secret",
        retries=retries,
        wait_min=0,
        wait_max=0,
        client=client,
    )


class TestHttpTileSource:
    """Tests for HttpTileSource."""

    def test_url_for(self):
        source = HttpTileSource(url_template=TEMPLATE, access_token="abc")
        assert source.url_for(14, 2700, 5720) == (
            "https://tiles.example.test/14/2700/5720.png?access_token=abc"
        )

    async def test_success(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, content=b"tile-bytes")

        source = _http_source(handler)
        assert await source.fetch(14, 1, 2) == b"tile-bytes"
        assert requests[0].url.path == "/14/1/2.png"
        assert requests[0].url.params["access_token"] == "secret"

    async def test_not_found_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        source = _http_source(handler)
        with pytest.raises(TileFetchError, match="404"):
            await source.fetch(14, 1, 2)
        assert len(calls) == 1

    async def test_server_error_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, content=b"ok")

        source = _http_source(handler, retries=3)
        assert await source.fetch(14, 1, 2) == b"ok"
        assert len(calls) == 3

    async def test_throttled_exhausts_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429)

        source = _http_source(handler, retries=2)
        with pytest.raises(TileFetchError, match="429"):
            await source.fetch(14, 1, 2)
        assert len(calls) == 2

    async def test_transport_error_wrapped(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        source = _http_source(handler, retries=2)
        with pytest.raises(TileFetchError, match="after 2 attempts") as exc_info:
            await source.fetch(14, 1, 2)
        assert len(calls) == 2
        assert "secret" not in str(exc_info.value)

    async def test_aclose_leaves_injected_client_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        source = HttpTileSource(url_template=TEMPLATE, client=client)
        await source.aclose()
        assert not client.is_closed
        await client.aclose()


class TestCallableTileSource:
    """Tests for CallableTileSource."""

    async def test_passthrough(self):
        async def fn(z, x, y):
            return f"{z}/{x}/{y}".encode()

        assert await CallableTileSource(fn).fetch(3, 4, 5) == b"3/4/5"

    async def test_wraps_errors(self):
        async def fn(z, x, y):
            raise ValueError("boom")

        with pytest.raises(TileFetchError, match="boom"):
            await CallableTileSource(fn).fetch(3, 4, 5)

    async def test_fetch_error_unchanged(self):
        original = TileFetchError("gone")

        async def fn(z, x, y):
            raise original

        with pytest.raises(TileFetchError) as exc_info:
            await CallableTileSource(fn).fetch(3, 4, 5)
        assert exc_info.value is original
