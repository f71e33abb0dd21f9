import httpx

from embed_proxy.proxy.header_policy import HOP_BY_HOP_HEADERS, HeaderPolicy
from embed_proxy.proxy.messages import UpstreamResponse


def sanitize(resp: UpstreamResponse, policy: HeaderPolicy) -> UpstreamResponse:
    """
    Strip the framing headers and force the CORS headers on an upstream response.

    ``httpx.Headers`` matches names case-insensitively, so ``x-frame-options``
    and ``X-FRAME-OPTIONS`` are removed alike, and assignment replaces every
    existing value of a name rather than adding another one.
    """
    for name in policy.response_strip:
        if name in resp.headers:
            del resp.headers[name]

    for name, value in policy.response_overrides:
        resp.headers[name] = value

    return resp


def relay_headers(headers: httpx.Headers) -> list[tuple[str, str]]:
    """Header pairs safe to hand back to the caller, duplicates preserved."""
    dropped = set(HOP_BY_HOP_HEADERS)
    for value in headers.get_list("connection", split_commas=True):
        dropped.add(value.strip().lower())
    return [
        (name, value)
        for name, value in headers.multi_items()
        if name.lower() not in dropped
    ]
