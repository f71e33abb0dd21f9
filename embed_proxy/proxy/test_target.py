import dataclasses

import pytest

from embed_proxy.proxy.target import ConfigurationError, ProxyTarget


class TestProxyTargetParse:
    def test_telegram_web_target(self):
        target = ProxyTarget.parse("https://web.telegram.org/k/")

        assert target.scheme == "https"
        assert target.host == "web.telegram.org"
        assert target.base_path == "/k/"
        assert target.origin == "https://web.telegram.org"
        assert target.url == "https://web.telegram.org/k/"

    def test_missing_path_defaults_to_root(self):
        target = ProxyTarget.parse("http://internal-app:8080")

        assert target.host == "internal-app:8080"
        assert target.base_path == "/"
        assert target.origin == "http://internal-app:8080"

    def test_query_is_kept(self):
        target = ProxyTarget.parse("https://example.com/app?lang=en")

        assert target.query == "lang=en"
        assert target.url == "https://example.com/app?lang=en"

    def test_scheme_is_normalized(self):
        assert ProxyTarget.parse("HTTPS://example.com/").scheme == "https"

    def test_userinfo_not_part_of_host(self):
        target = ProxyTarget.parse("https://user:pw@example.com/")

        assert target.host == "example.com"

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "   ",
            "web.telegram.org/k/",
            "ftp://example.com/",
            "https:///k/",
            "http://example.com:notaport/",
        ],
    )
    def test_invalid_targets_raise(self, url):
        with pytest.raises(ConfigurationError):
            ProxyTarget.parse(url)

    def test_target_is_immutable(self):
        target = ProxyTarget.parse("https://web.telegram.org/k/")

        with pytest.raises(dataclasses.FrozenInstanceError):
            target.host = "attacker.example"
