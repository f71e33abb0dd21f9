from dataclasses import dataclass
from typing import Tuple

from embed_proxy.proxy.target import ProxyTarget

# Headers that stop browsers from embedding the upstream page in an iframe
FRAMING_HEADERS = (
    "X-Frame-Options",
    "Frame-Options",
    "Content-Security-Policy",
    "Content-Security-Policy-Report-Only",
    "Strict-Transport-Security",
)

CORS_HEADERS = (
    ("Access-Control-Allow-Origin", "*"),
    ("Access-Control-Allow-Methods", "GET, POST, PUT, DELETE, OPTIONS"),
    ("Access-Control-Allow-Headers", "*"),
)

# Hop-by-hop headers that should NOT be forwarded (RFC 9110)
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)


@dataclass(frozen=True)
class HeaderPolicy:
    request_overrides: Tuple[Tuple[str, str], ...]
    response_strip: Tuple[str, ...]
    response_overrides: Tuple[Tuple[str, str], ...]


def build_header_policy(target: ProxyTarget) -> HeaderPolicy:
    """Make the upstream see its own origin and let the caller embed the result."""
    return HeaderPolicy(
        request_overrides=(
            ("Origin", target.origin),
            ("Referer", target.origin + target.base_path),
            ("Host", target.host),
        ),
        response_strip=FRAMING_HEADERS,
        response_overrides=CORS_HEADERS,
    )
