from .target import ConfigurationError, ProxyTarget
from .header_policy import HeaderPolicy, build_header_policy
from .messages import InboundRequest, OutboundRequest, UpstreamResponse
from .director import direct
from .sanitizer import sanitize
from .transport import (
    HttpxTransport,
    UpstreamTransport,
    UpstreamTransportError,
    build_client,
)
from .engine import ForwardingEngine, ProxyError

__all__ = [
    "ConfigurationError",
    "ProxyTarget",
    "HeaderPolicy",
    "build_header_policy",
    "InboundRequest",
    "OutboundRequest",
    "UpstreamResponse",
    "direct",
    "sanitize",
    "HttpxTransport",
    "UpstreamTransport",
    "UpstreamTransportError",
    "build_client",
    "ForwardingEngine",
    "ProxyError",
]
