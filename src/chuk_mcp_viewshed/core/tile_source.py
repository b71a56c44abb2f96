"""
Tile byte sources.

A tile source answers fetch(zoom, x, y) with compressed tile bytes or raises
TileFetchError. HttpTileSource talks to a templated HTTP endpoint through
httpx with a request timeout and a small tenacity retry budget.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..constants import (
    REQUEST_TIMEOUT_S,
    RETRY_ATTEMPTS,
    RETRY_WAIT_MAX,
    RETRY_WAIT_MIN,
    TERRAIN_RGB_URL_TEMPLATE,
    ErrorMessages,
)
from .errors import TileFetchError

logger = logging.getLogger(__name__)

# httpx logs every request at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)


class TileSource(Protocol):
    async def fetch(self, zoom: int, x: int, y: int) -> bytes: ...


class _TransientStatus(TileFetchError):
    """Server-side or throttling status worth retrying."""


class HttpTileSource:
    """Fetch tiles from an HTTP URL template with {z}, {x}, {y} and {token} fields."""

    def __init__(
        self,
        url_template: str = TERRAIN_RGB_URL_TEMPLATE,
        access_token: str | None = None,
        timeout_s: float = REQUEST_TIMEOUT_S,
        retries: int = RETRY_ATTEMPTS,
        wait_min: float = RETRY_WAIT_MIN,
        wait_max: float = RETRY_WAIT_MAX,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url_template = url_template
        self.access_token = access_token or ""
        self.timeout_s = timeout_s
        self.retries = max(1, retries)
        self.wait_min = wait_min
        self.wait_max = wait_max
        self._client = client
        self._owns_client = client is None

    def url_for(self, zoom: int, x: int, y: int) -> str:
        return self.url_template.format(z=zoom, x=x, y=y, token=self.access_token)

    def _tile_label(self, zoom: int, x: int, y: int) -> str:
        # Never log the URL itself: it carries the access token
        return f"{zoom}/{x}/{y}"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s, follow_redirects=True)
        return self._client

    async def fetch(self, zoom: int, x: int, y: int) -> bytes:
        label = self._tile_label(zoom, x, y)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries),
            wait=wait_exponential(multiplier=1, min=self.wait_min, max=self.wait_max),
            retry=retry_if_exception_type((httpx.TransportError, _TransientStatus)),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._fetch_once(zoom, x, y)
        except httpx.TransportError as e:
            raise TileFetchError(ErrorMessages.NETWORK_ERROR.format(label, self.retries, e)) from e
        raise TileFetchError(ErrorMessages.NETWORK_ERROR.format(label, self.retries, "no attempt"))

    async def _fetch_once(self, zoom: int, x: int, y: int) -> bytes:
        response = await self._get_client().get(self.url_for(zoom, x, y))
        label = self._tile_label(zoom, x, y)
        if response.status_code == 200:
            return response.content
        if response.status_code == 429 or response.status_code >= 500:
            logger.warning(f"Tile {label} returned HTTP {response.status_code}, retrying")
            raise _TransientStatus(ErrorMessages.HTTP_STATUS.format(label, response.status_code))
        raise TileFetchError(ErrorMessages.HTTP_STATUS.format(label, response.status_code))

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


class CallableTileSource:
    """Adapt an async callable (zoom, x, y) -> bytes into a tile source."""

    def __init__(self, fn: Callable[[int, int, int], Awaitable[bytes]]) -> None:
        self._fn = fn

    async def fetch(self, zoom: int, x: int, y: int) -> bytes:
        try:
            return await self._fn(zoom, x, y)
        except TileFetchError:
            raise
        except Exception as e:
            raise TileFetchError(str(e)) from e
