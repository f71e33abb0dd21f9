import httpx
import pytest

from embed_proxy.proxy.header_policy import FRAMING_HEADERS, build_header_policy
from embed_proxy.proxy.messages import UpstreamResponse
from embed_proxy.proxy.sanitizer import relay_headers, sanitize
from embed_proxy.proxy.target import ProxyTarget


@pytest.fixture
def policy():
    return build_header_policy(ProxyTarget.parse("https://web.telegram.org/k/"))


def make_response(headers, status_code=200):
    async def stream():
        yield b"<html></html>"

    return UpstreamResponse(
        status_code=status_code, headers=httpx.Headers(headers), stream=stream()
    )


class TestSanitize:
    def test_csp_removed_and_cors_added(self, policy):
        resp = make_response(
            [
                ("content-type", "text/html"),
                ("Content-Security-Policy", "default-src 'self'"),
            ]
        )

        sanitize(resp, policy)

        assert "content-security-policy" not in resp.headers
        assert resp.headers["access-control-allow-origin"] == "*"
        assert resp.headers["content-type"] == "text/html"
        assert resp.status_code == 200

    @pytest.mark.parametrize(
        "name",
        [
            "X-Frame-Options",
            "x-frame-options",
            "X-FRAME-OPTIONS",
            "frame-options",
            "content-security-policy",
            "CONTENT-SECURITY-POLICY-REPORT-ONLY",
            "strict-transport-security",
        ],
    )
    def test_framing_headers_removed_in_any_case(self, policy, name):
        resp = make_response([(name, "DENY")])

        sanitize(resp, policy)

        for stripped in FRAMING_HEADERS:
            assert stripped not in resp.headers

    def test_repeated_framing_headers_all_removed(self, policy):
        resp = make_response(
            [
                ("content-security-policy", "default-src 'self'"),
                ("Content-Security-Policy", "frame-ancestors 'none'"),
            ]
        )

        sanitize(resp, policy)

        assert resp.headers.get_list("content-security-policy") == []

    def test_existing_cors_origin_replaced_not_duplicated(self, policy):
        resp = make_response(
            [
                ("Access-Control-Allow-Origin", "https://web.telegram.org"),
                ("access-control-allow-origin", "https://other.example"),
                ("Access-Control-Allow-Methods", "GET"),
            ]
        )

        sanitize(resp, policy)

        assert resp.headers.get_list("access-control-allow-origin") == ["*"]
        assert resp.headers.get_list("access-control-allow-methods") == [
            "GET, POST, PUT, DELETE, OPTIONS"
        ]
        assert resp.headers.get_list("access-control-allow-headers") == ["*"]

    def test_idempotent(self, policy):
        resp = make_response(
            [
                ("x-frame-options", "SAMEORIGIN"),
                ("set-cookie", "a=1"),
                ("set-cookie", "b=2"),
                ("access-control-allow-origin", "https://web.telegram.org"),
            ]
        )

        once = sanitize(resp, policy).headers.multi_items()
        twice = sanitize(resp, policy).headers.multi_items()

        assert once == twice

    def test_status_and_stream_untouched(self, policy):
        resp = make_response([("x-frame-options", "DENY")], status_code=404)
        stream = resp.stream

        result = sanitize(resp, policy)

        assert result is resp
        assert result.status_code == 404
        assert result.stream is stream

    def test_unrelated_multi_value_headers_kept(self, policy):
        resp = make_response([("set-cookie", "a=1"), ("set-cookie", "b=2")])

        sanitize(resp, policy)

        assert resp.headers.get_list("set-cookie") == ["a=1", "b=2"]


class TestRelayHeaders:
    def test_hop_by_hop_removed(self):
        headers = httpx.Headers(
            [
                ("content-type", "text/plain"),
                ("connection", "keep-alive, x-upstream-hint"),
                ("transfer-encoding", "chunked"),
                ("keep-alive", "timeout=5"),
                ("x-upstream-hint", "1"),
                ("x-custom", "value"),
            ]
        )

        relayed = dict(relay_headers(headers))

        assert relayed == {"content-type": "text/plain", "x-custom": "value"}

    def test_duplicates_preserved(self):
        headers = httpx.Headers([("set-cookie", "a=1"), ("set-cookie", "b=2")])

        assert relay_headers(headers) == [("set-cookie", "a=1"), ("set-cookie", "b=2")]

    def test_content_encoding_and_length_kept(self):
        headers = httpx.Headers({"content-encoding": "gzip", "content-length": "42"})

        relayed = dict(relay_headers(headers))

        assert relayed["content-encoding"] == "gzip"
        assert relayed["content-length"] == "42"
