"""HTTP request/response capability used by backend adapters."""

import asyncio
import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import aiohttp

log = logging.getLogger(__name__)


class TransportError(Exception):
    """Raised when a request could not be completed."""


@dataclass(frozen=True, kw_only=True)
class TransportResponse:
    """Status and decoded body of a completed request."""

    status: int
    body: Any = None

    @property
    def ok(self) -> bool:
        """Whether the response has a 2xx status."""
        return 200 <= self.status < 300


class Transport(Protocol):
    """Send a request, get a response or a TransportError."""

    async def send(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Mapping[str, str] | None = None,
    ) -> TransportResponse:
        """Send a request relative to the transport's base URL."""
        ...

    async def close(self) -> None:
        """Release the underlying connection pool."""
        ...


type TransportFactory = Callable[[str, Mapping[str, str], float], Transport]


def _decode(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


@dataclass(frozen=True, kw_only=True)
class AiohttpTransport:
    """Transport over an aiohttp client session."""

    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    def open(
        cls, base_url: str, headers: Mapping[str, str], timeout: float
    ) -> "AiohttpTransport":
        """Create a transport with its own client session.

        Must be called from within a running event loop.
        """
        session = aiohttp.ClientSession(
            base_url=base_url,
            headers=dict(headers),
            timeout=aiohttp.ClientTimeout(total=timeout),
        )
        return cls(session=session)

    async def send(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Mapping[str, str] | None = None,
    ) -> TransportResponse:
        """Send a JSON request and decode the response body."""
        try:
            async with self.session.request(
                method, path, json=body, params=params
            ) as response:
                text = await response.text()
                return TransportResponse(status=response.status, body=_decode(text))
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"{method} {path} failed: {exc!r}") from exc

    async def close(self) -> None:
        """Close the client session."""
        if not self.session.closed:
            await self.session.close()
