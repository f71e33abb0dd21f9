import httpx

from embed_proxy.proxy.header_policy import HOP_BY_HOP_HEADERS, HeaderPolicy
from embed_proxy.proxy.messages import InboundRequest, OutboundRequest
from embed_proxy.proxy.target import ProxyTarget


def join_path(base_path: str, path: str) -> str:
    """Join two URL paths with exactly one slash between them."""
    base_slash = base_path.endswith("/")
    path_slash = path.startswith("/")
    if base_slash and path_slash:
        return base_path + path[1:]
    if not base_slash and not path_slash:
        return f"{base_path}/{path}"
    return base_path + path


def get_target_url(inbound_path: str, target: ProxyTarget) -> str:
    """
    Build the upstream URL for an inbound path.

    The inbound path and query are kept verbatim; only scheme and host are
    replaced, and the path is mounted under the target's base path.
    """
    path, _, query = inbound_path.partition("?")
    path = join_path(target.base_path, path or "/")

    if target.query and query:
        query = f"{target.query}&{query}"
    else:
        query = target.query or query

    url = f"{target.origin}{path}"
    return f"{url}?{query}" if query else url


def has_body(headers: httpx.Headers) -> bool:
    if "transfer-encoding" in headers:
        return True
    return headers.get("content-length", "0").strip() not in ("", "0")


def prepare_headers(inbound: InboundRequest, policy: HeaderPolicy) -> httpx.Headers:
    """
    Prepare headers for forwarding to the upstream.
    Removes hop-by-hop headers and applies the policy's overrides.
    """
    headers = inbound.headers.copy()

    # Headers named in Connection are hop-by-hop for this message too
    dropped = set(HOP_BY_HOP_HEADERS)
    for value in inbound.headers.get_list("connection", split_commas=True):
        dropped.add(value.strip().lower())
    for name in dropped:
        if name and name in headers:
            del headers[name]

    if inbound.client_host:
        prior = headers.get("x-forwarded-for", "")
        headers["X-Forwarded-For"] = (
            f"{prior}, {inbound.client_host}" if prior else inbound.client_host
        )

    for name, value in policy.request_overrides:
        headers[name] = value

    return headers


def direct(
    inbound: InboundRequest, target: ProxyTarget, policy: HeaderPolicy
) -> OutboundRequest:
    return OutboundRequest(
        method=inbound.method,
        url=get_target_url(inbound.path, target),
        headers=prepare_headers(inbound, policy),
        body=inbound.body if has_body(inbound.headers) else None,
    )
