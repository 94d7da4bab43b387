"""
HTTP transport to the schema registry.

The registry client only needs plain GET/POST returning status and body; any
object with the Transport shape can be plugged in. AiohttpTransport is the
default implementation.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import aiohttp

from kafka_schema_registry.common.exceptions import TransportError
from kafka_schema_registry.common.logging import LoggedClass

REGISTRY_CONTENT_TYPE = "application/vnd.schemaregistry.v1+json"


@dataclass(frozen=True)
class TransportResponse:
    status: int
    body: bytes


class Transport(Protocol):
    """What the registry client needs from an HTTP stack.

    Implementations raise TransportError when the registry cannot be reached;
    any HTTP status, including errors, is returned as a TransportResponse.
    """

    async def get(self, url: str) -> TransportResponse: ...

    async def post(self, url: str, body: bytes) -> TransportResponse: ...

    async def close(self) -> None: ...


class AiohttpTransport(LoggedClass):
    """
    Transport backed by an aiohttp ClientSession.

    The session is created lazily on first use, so instances can be built
    outside a running event loop.

    Usage:
        async with AiohttpTransport(timeout_seconds=10) as transport:
            response = await transport.get("http://registry:8081/schemas/ids/1")
    """

    log_component = "transport"

    def __init__(
        self,
        timeout_seconds: float = 30,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self._auth = (
            aiohttp.BasicAuth(username, password or "") if username else None
        )
        self._session: Optional[aiohttp.ClientSession] = None
        super().__init__()

    async def __aenter__(self) -> "AiohttpTransport":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Create aiohttp session if not exists."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                auth=self._auth,
                headers={"Accept": REGISTRY_CONTENT_TYPE},
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def get(self, url: str) -> TransportResponse:
        return await self._request("GET", url)

    async def post(self, url: str, body: bytes) -> TransportResponse:
        return await self._request(
            "POST",
            url,
            body=body,
            headers={
                "Content-Type": REGISTRY_CONTENT_TYPE,
                "Accept": REGISTRY_CONTENT_TYPE,
            },
        )

    async def _request(
        self,
        method: str,
        url: str,
        body: Optional[bytes] = None,
        headers: Optional[dict] = None,
    ) -> TransportResponse:
        session = await self._ensure_session()
        try:
            async with session.request(
                method,
                url,
                data=body,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as response:
                payload = await response.read()
                return TransportResponse(status=response.status, body=payload)

        except asyncio.TimeoutError as e:
            self._log(
                logging.WARNING,
                "Schema registry request timeout",
                http_method=method,
                url=url,
            )
            raise TransportError(
                f"error performing {method.lower()} to schema registry",
                cause=f"timeout after {self.timeout_seconds}s",
            ) from e

        except aiohttp.ClientError as e:
            self._log(
                logging.WARNING,
                "Schema registry connection error",
                http_method=method,
                url=url,
                error_message=str(e),
            )
            raise TransportError(
                f"error performing {method.lower()} to schema registry",
                cause=str(e),
            ) from e
