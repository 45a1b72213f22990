"""
transport.py: default transports for generated client stubs.

    HttpTransport   POSTs request bytes to a serving endpoint (httpx)
    LocalTransport  calls a dispatch coroutine in-process
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

import httpx

from .errors import TransportError

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/octet-stream"


class HttpTransport:
    def __init__(self, url: str, timeout: float = 30.0, headers: dict[str, str] | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self.headers = {"Content-Type": CONTENT_TYPE, **(headers or {})}
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self.headers,
                timeout=httpx.Timeout(self.timeout),
            )
        return self._client

    async def send(self, payload: bytes) -> bytes:
        try:
            response = await self.client.post(self.url, content=payload)
        except httpx.HTTPError as err:
            logger.warning("request to %s failed: %s", self.url, err)
            raise TransportError(f"request to {self.url} failed: {err}") from err

        if response.status_code != 200:
            detail = _detail(response)
            raise TransportError(f"{self.url} answered {response.status_code}: {detail}")
        return response.content

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class LocalTransport:
    """Hands requests straight to a dispatch coroutine; used for tests and embedding."""

    def __init__(self, dispatch: Callable[[bytes], Awaitable[bytes]]) -> None:
        self.dispatch = dispatch

    async def send(self, payload: bytes) -> bytes:
        return await self.dispatch(payload)


def _detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and "detail" in data:
        return str(data["detail"])
    return response.text
