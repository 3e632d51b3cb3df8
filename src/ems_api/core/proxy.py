"""
EMS API Client - Proxy Resolution

Derives the upstream proxy route from a configuration snapshot. The same route
is used for every destination; there is no per-host routing or bypass list.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import httpx

from .exceptions import ConfigurationError
from .models import EmsApiConfig

SUPPORTED_SCHEMES = ("http", "socks5", "socks5h")


@dataclass(frozen=True)
class ProxyRoute:
    """Proxy target and optional credentials."""

    uri: str
    credentials: Optional[Tuple[str, str]] = None

    def __post_init__(self):
        try:
            url = httpx.URL(self.uri)
        except (httpx.InvalidURL, ValueError) as e:
            raise ConfigurationError(
                f"Invalid proxy server URI '{self.uri}': {e}",
                context={"proxy": self.uri},
            )

        if url.scheme == "https":
            raise ConfigurationError(
                "Proxy servers with an https scheme are not supported.",
                context={"proxy": self.uri},
            )

        if url.scheme not in SUPPORTED_SCHEMES or not url.host:
            raise ConfigurationError(
                f"Invalid proxy server URI '{self.uri}'",
                context={"proxy": self.uri},
            )

    @property
    def port(self) -> Optional[int]:
        return httpx.URL(self.uri).port

    def get_proxy(self, destination: str) -> str:
        """Return the proxy URI for ``destination``."""
        return self.uri

    def is_bypassed(self, host: str) -> bool:
        return False

    def to_httpx(self) -> httpx.Proxy:
        """Build the httpx proxy description for the inner transport."""
        return httpx.Proxy(self.uri, auth=self.credentials)


def resolve_proxy(config: EmsApiConfig) -> Optional[ProxyRoute]:
    """
    Build the proxy route for a configuration.

    Args:
        config: Configuration snapshot

    Returns:
        ProxyRoute, or None when no proxy server is configured

    Raises:
        ConfigurationError: If the proxy uses an https scheme or is not a
            valid URI
    """
    if not config.proxy_server:
        return None

    if config.proxy_server_includes_port():
        uri = config.proxy_server
    else:
        uri = f"{config.proxy_server.rstrip('/')}:{config.resolve_proxy_port()}"

    # Bare host names are plain http proxies.
    if "://" not in uri:
        uri = f"http://{uri}"

    credentials = None
    if config.proxy_user_name:
        credentials = (config.proxy_user_name, config.proxy_password or "")

    return ProxyRoute(uri=uri, credentials=credentials)
