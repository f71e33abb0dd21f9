"""
Outbound side of the proxy.

The engine only depends on the ``UpstreamTransport`` protocol, so tests can
swap in a fake upstream; ``HttpxTransport`` is the real implementation.
"""

from typing import AsyncIterator, Optional, Protocol

import httpx

from embed_proxy.proxy.messages import OutboundRequest, UpstreamResponse


class UpstreamTransportError(Exception):
    """The outbound call failed before a response was received."""

    def __init__(self, cause: BaseException):
        super().__init__(str(cause))
        self.cause = cause


class UpstreamTransport(Protocol):
    async def send(self, request: OutboundRequest) -> UpstreamResponse: ...

    async def aclose(self) -> None: ...


def build_client(
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create the shared client used for every outbound call.

    Redirects are relayed to the caller instead of being followed, and a
    timeout of ``None`` or ``0`` disables the outbound deadline.
    """
    client = httpx.AsyncClient(
        timeout=httpx.Timeout(timeout or None),
        follow_redirects=False,
        transport=transport,
    )
    # Only the caller's own headers go upstream; an injected Accept-Encoding
    # would hand back compressed bodies the caller never asked for.
    for name in ("accept", "accept-encoding", "user-agent"):
        if name in client.headers:
            del client.headers[name]
    return client


class HttpxTransport:
    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def send(self, request: OutboundRequest) -> UpstreamResponse:
        upstream_request = self.client.build_request(
            request.method,
            request.url,
            headers=request.headers,
            content=request.body,
        )
        try:
            response = await self.client.send(upstream_request, stream=True)
        except httpx.TransportError as e:
            raise UpstreamTransportError(e) from e

        try:
            # copy() keeps the raw header bytes and their detected encoding
            return UpstreamResponse(
                status_code=response.status_code,
                headers=response.headers.copy(),
                stream=self._iter_raw(response),
                close=response.aclose,
            )
        except BaseException:
            await response.aclose()
            raise

    @staticmethod
    async def _iter_raw(response: httpx.Response) -> AsyncIterator[bytes]:
        # Raw bytes keep Content-Encoding and Content-Length valid for the caller
        try:
            async for chunk in response.aiter_raw():
                yield chunk
        except httpx.TransportError as e:
            raise UpstreamTransportError(e) from e

    async def aclose(self) -> None:
        await self.client.aclose()
