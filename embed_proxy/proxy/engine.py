import logging

from opentelemetry import trace

from embed_proxy.proxy.director import direct
from embed_proxy.proxy.header_policy import HeaderPolicy
from embed_proxy.proxy.messages import InboundRequest, UpstreamResponse
from embed_proxy.proxy.sanitizer import sanitize
from embed_proxy.proxy.target import ProxyTarget
from embed_proxy.proxy.transport import UpstreamTransport, UpstreamTransportError
from embed_proxy.utils import describe_exception, log_exception_with_details
from embed_proxy.utils.traced_requests import traced_request

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")


class ProxyError(Exception):
    """A single proxy transaction failed to reach the upstream."""

    status_code = 502

    def __init__(self, cause: BaseException, method: str, path: str):
        self.cause = cause
        self.method = method
        self.path = path
        super().__init__(
            f"Proxy error: {describe_exception(cause)} ({method} {path})"
        )


class ForwardingEngine:
    """
    Runs one proxy transaction per call: direct, send once, sanitize.

    The engine holds only immutable configuration and the shared transport,
    so a single instance serves any number of concurrent requests.
    """

    def __init__(
        self,
        target: ProxyTarget,
        policy: HeaderPolicy,
        transport: UpstreamTransport,
    ):
        self.target = target
        self.policy = policy
        self.transport = transport

    async def forward(self, inbound: InboundRequest) -> UpstreamResponse:
        """
        Forward ``inbound`` to the target and return the sanitized response.

        The response body is still an unconsumed stream; the caller must
        drain it and await ``close()``. Transport failures raise
        ``ProxyError`` and are never retried.
        """
        outbound = direct(inbound, self.target, self.policy)

        with traced_request(
            tracer,
            operation="proxy_request",
            start_message=f"[Proxy] {inbound.method} {inbound.path} -> {outbound.url}",
            extra_attrs={
                "proxy.method": inbound.method,
                "proxy.target_url": outbound.url,
            },
        ) as span:
            try:
                response = await self.transport.send(outbound)
            except UpstreamTransportError as e:
                error = ProxyError(e.cause, inbound.method, inbound.path)
                span.set_attribute("proxy.error", describe_exception(e.cause))
                log_exception_with_details(
                    logger, f"[Proxy] {inbound.method} {inbound.path} failed:", e.cause
                )
                raise error from e

            span.set_attribute("proxy.status_code", response.status_code)
            return sanitize(response, self.policy)

    async def aclose(self) -> None:
        await self.transport.aclose()
