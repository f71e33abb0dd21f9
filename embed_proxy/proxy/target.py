from dataclasses import dataclass
from urllib.parse import urlsplit


class ConfigurationError(Exception):
    """Raised at startup when the proxy cannot be configured."""


@dataclass(frozen=True)
class ProxyTarget:
    """The fixed upstream origin every request is forwarded to."""

    scheme: str
    host: str
    base_path: str = "/"
    query: str = ""

    @property
    def origin(self) -> str:
        return f"{self.scheme}://{self.host}"

    @property
    def url(self) -> str:
        query = f"?{self.query}" if self.query else ""
        return f"{self.origin}{self.base_path}{query}"

    @classmethod
    def parse(cls, url: str) -> "ProxyTarget":
        """
        Parse the configured upstream URL.

        Only absolute http(s) URLs with a host are accepted. A missing path
        is treated as "/".
        """
        if not url or not url.strip():
            raise ConfigurationError("Target URL is empty")

        try:
            parts = urlsplit(url.strip())
            # Accessing .port validates the port component
            parts.port
        except ValueError as e:
            raise ConfigurationError(f"Invalid target URL {url!r}: {e}") from e

        scheme = parts.scheme.lower()
        if scheme not in ("http", "https"):
            raise ConfigurationError(
                f"Invalid target URL {url!r}: scheme must be http or https"
            )
        if not parts.hostname:
            raise ConfigurationError(f"Invalid target URL {url!r}: missing host")

        return cls(
            scheme=scheme,
            host=parts.netloc.rsplit("@", 1)[-1],
            base_path=parts.path or "/",
            query=parts.query,
        )
