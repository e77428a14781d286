"""Height prober — reads the latest block height from a node's /status."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from heightwatch.probe.exceptions import ProtocolError, TransportError

logger = structlog.get_logger(__name__)


def status_url(endpoint: str) -> str:
    return f"{endpoint.rstrip('/')}/status"


def parse_status_height(body: Any) -> int:
    """Extract ``result.sync_info.latest_block_height`` from a /status body.

    Expected structure::

        {
            "result": {
                "sync_info": {"latest_block_height": "19283746", ...},
                ...
            }
        }

    The height is normally a decimal string; a JSON integer is accepted too.

    Raises:
        ProtocolError: if any level is missing or the height is not a
            non-negative integer.
    """
    if not isinstance(body, dict):
        raise ProtocolError("status response is not an object")
    result = body.get("result")
    if not isinstance(result, dict):
        raise ProtocolError("status response has no 'result' object")
    sync_info = result.get("sync_info")
    if not isinstance(sync_info, dict):
        raise ProtocolError("status response has no 'result.sync_info' object")

    raw = sync_info.get("latest_block_height")
    if isinstance(raw, bool) or not isinstance(raw, (str, int)):
        raise ProtocolError(f"latest_block_height has unexpected type: {raw!r}")
    try:
        height = int(raw)
    except ValueError as exc:
        raise ProtocolError(f"latest_block_height is not an integer: {raw!r}") from exc
    if height < 0:
        raise ProtocolError(f"latest_block_height is negative: {height}")
    return height


class HeightProber:
    """Queries endpoints for their current chain height.

    Stateless apart from the shared HTTP client, so concurrent calls for
    different endpoints are safe.

    Usage::

        prober = HeightProber(timeout_secs=5.0)
        async with prober:
            height = await prober.fetch_height("https://rpc.example.com")
    """

    def __init__(self, timeout_secs: float = 5.0) -> None:
        self._timeout_secs = timeout_secs
        self._http: httpx.AsyncClient | None = None

    @property
    def connected(self) -> bool:
        """Whether the HTTP client is active."""
        return self._http is not None and not self._http.is_closed

    async def connect(self) -> None:
        """Create the httpx async client."""
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout_secs))

    async def close(self) -> None:
        """Close the httpx async client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def fetch_height(self, endpoint: str) -> int:
        """Return the latest block height reported by *endpoint*.

        The whole request, body included, must finish within the configured
        timeout; httpx's own timeouts only bound each read.

        Raises:
            TransportError: connection failure or timeout.
            ProtocolError: non-2xx status, invalid JSON or schema mismatch.
        """
        if self._http is None:
            raise TransportError("HTTP client not connected")

        url = status_url(endpoint)
        try:
            async with asyncio.timeout(self._timeout_secs):
                response = await self._http.get(url)
        except TimeoutError as exc:
            raise TransportError(
                f"request to {url} timed out after {self._timeout_secs}s"
            ) from exc
        except (httpx.TransportError, httpx.InvalidURL) as exc:
            raise TransportError(f"request to {url} failed: {exc!r}") from exc
        except httpx.RequestError as exc:
            raise ProtocolError(f"bad response from {url}: {exc!r}") from exc

        if not response.is_success:
            raise ProtocolError(
                f"unexpected status code {response.status_code} from {url}"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ProtocolError(f"invalid JSON from {url}") from exc

        height = parse_status_height(body)
        logger.debug("height_probed", endpoint=endpoint, height=height)
        return height

    async def __aenter__(self) -> HeightProber:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
