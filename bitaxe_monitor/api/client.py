"""HTTP access to the miner status endpoint."""

from __future__ import annotations

from typing import Optional, Protocol

import httpx

from bitaxe_monitor.telemetry.stats import DeviceStats

STATUS_PATH = "/api/system/info"


class UnexpectedPayloadError(ValueError):
    """Raised when a status response parses but is not a JSON object."""


def build_status_url(address: str) -> str:
    """Status URL for a host, ``host:port`` or full URL.

    An address that already carries a scheme is used verbatim.
    """
    address = address.strip()
    if "://" in address:
        return address
    return f"http://{address.rstrip('/')}{STATUS_PATH}"


class MinerClient(Protocol):
    """Minimal interface the fetch coordinator needs from a miner client."""

    async def fetch_status(self, address: str) -> DeviceStats:
        ...

    async def aclose(self) -> None:
        ...


class HttpMinerClient:
    """Shared ``httpx.AsyncClient`` reused across devices and cycles."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        # No timeout by default: cancellation is what bounds a request.
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def fetch_status(self, address: str) -> DeviceStats:
        response = await self._client.get(build_status_url(address))
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise UnexpectedPayloadError(f"expected a JSON object, got {type(data).__name__}")
        return data

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def closed(self) -> bool:
        return self._client.is_closed
