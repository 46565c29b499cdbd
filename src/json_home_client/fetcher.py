"""
HTTP directory fetcher using httpx.
"""
import logging
from typing import Dict, Optional

import httpx

from .config import JsonHomeSettings, get_settings
from .errors import FetchError
from .parser import parse_json_home
from .types import DirectoryFetcher, JsonHomeHost, Snapshot

logger = logging.getLogger(__name__)


class HttpxDirectoryFetcher(DirectoryFetcher):
    """
    Fetches json-home documents with an httpx.AsyncClient.

    A client passed in is shared and left open on close(); a client created
    here is owned and closed with the fetcher.

    Example:
        fetcher = HttpxDirectoryFetcher(timeout_seconds=5.0)
        snapshot = await fetcher.fetch(JsonHomeHost.of("https://api.example.com/"))
    """

    def __init__(
        self,
        httpx_client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        settings: Optional[JsonHomeSettings] = None,
    ) -> None:
        settings = settings or get_settings()
        self._timeout = (
            timeout_seconds if timeout_seconds is not None else settings.request_timeout_seconds
        )
        self._headers = {"accept": settings.accept_header}
        self._headers.update(headers or {})

        self._owns_client = httpx_client is None
        self._client = httpx_client or httpx.AsyncClient(timeout=self._timeout)
        self._closed = False

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    async def fetch(self, host: JsonHomeHost) -> Snapshot:
        """GET the host's json-home document and parse it"""
        if self._closed:
            raise FetchError("Fetcher has been closed", url=host.url)

        logger.debug(f"HttpxDirectoryFetcher.fetch: GET {host.url}")
        try:
            response = await self._client.get(
                host.url,
                headers=self._headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise FetchError(f"Request to {host.url} failed: {e!r}", url=host.url) from e

        if not (200 <= response.status_code < 300):
            raise FetchError(
                f"HTTP {response.status_code} {response.reason_phrase or ''}".strip()
                + f" from {host.url}",
                url=host.url,
                status_code=response.status_code,
            )

        return parse_json_home(response.content, url=host.url)

    async def close(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._closed:
            return
        self._closed = True
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpxDirectoryFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
