import asyncio
from typing import Iterable, List, Optional

import httpx

from embed_proxy.proxy import (
    ForwardingEngine,
    OutboundRequest,
    ProxyTarget,
    UpstreamResponse,
    UpstreamTransportError,
    build_header_policy,
)

TEST_TARGET_URL = "https://web.telegram.org/k/"


class FakeUpstream:
    """Stands in for the outbound transport and records what it was asked to send."""

    def __init__(
        self,
        status_code: int = 200,
        headers=None,
        chunks: Iterable[bytes] = (b"upstream body",),
        error: Optional[BaseException] = None,
        stream_error: Optional[BaseException] = None,
        delay: float = 0,
        stream_delay: float = 0,
    ):
        self.status_code = status_code
        self.headers = headers or [("content-type", "text/plain")]
        self.chunks = list(chunks)
        self.error = error
        self.stream_error = stream_error
        # Seconds to wait before answering, and before the end of the body
        self.delay = delay
        self.stream_delay = stream_delay
        self.requests: List[OutboundRequest] = []
        self.bodies: List[bytes] = []
        self.closed_responses = 0
        self.closed = False
        self.send_cancelled = False
        self.stream_cancelled = False

    async def send(self, request: OutboundRequest) -> UpstreamResponse:
        self.requests.append(request)
        body = b""
        if request.body is not None:
            async for chunk in request.body:
                body += chunk
        self.bodies.append(body)

        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.send_cancelled = True
                raise

        if self.error is not None:
            raise UpstreamTransportError(self.error)

        async def stream():
            for chunk in self.chunks:
                yield chunk
            if self.stream_delay:
                try:
                    await asyncio.sleep(self.stream_delay)
                except asyncio.CancelledError:
                    self.stream_cancelled = True
                    raise
            if self.stream_error is not None:
                raise UpstreamTransportError(self.stream_error)

        async def close():
            self.closed_responses += 1

        return UpstreamResponse(
            status_code=self.status_code,
            headers=httpx.Headers(self.headers),
            stream=stream(),
            close=close,
        )

    async def aclose(self) -> None:
        self.closed = True

    @property
    def last_request(self) -> OutboundRequest:
        return self.requests[-1]


def make_engine(upstream: FakeUpstream, target_url: str = TEST_TARGET_URL):
    target = ProxyTarget.parse(target_url)
    return ForwardingEngine(target, build_header_policy(target), upstream)
