"""
EMS API Client - Data Models

This module contains the Pydantic configuration snapshot used by every request.
"""

from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..shared.constants import (
    DEFAULT_ENDPOINT,
    HEADER_ACCEPT_ENCODING,
    HEADER_APPLICATION_NAME,
    HEADER_USER_AGENT,
    HTTP_PORT,
    HTTPS_PORT,
    USER_AGENT,
)
from .exceptions import ConfigurationError


class EmsApiConfig(BaseModel):
    """Configuration snapshot for an EMS API connection.

    Snapshots are immutable. Use ``replace()`` to derive a new one and hand it
    to the client, which diffs it against the snapshot in use.
    """

    model_config = ConfigDict(frozen=True)

    endpoint: str = Field(default=DEFAULT_ENDPOINT, description="EMS API base URL")
    user_name: str | None = Field(default=None, description="User name for password authentication")
    password: str | None = Field(default=None, description="Password", repr=False)
    trusted_token: str | None = Field(default=None, description="Trusted token", repr=False)

    proxy_server: str | None = Field(default=None, description="HTTP proxy server")
    proxy_port: int = Field(default=0, description="Proxy port, 0 derives it from the endpoint")
    proxy_user_name: str | None = Field(default=None, description="Proxy user name")
    proxy_password: str | None = Field(default=None, description="Proxy password", repr=False)

    use_compression: bool = Field(default=True, description="Request gzip compressed responses")
    application_name: str | None = Field(default=None, description="Application name sent to the API")
    throw_on_auth_failure: bool = Field(default=True, description="Raise on authentication failures")
    throw_on_api_failure: bool = Field(default=True, description="Raise on API failures")

    verify_ssl: bool = Field(default=True, description="Whether to verify SSL certificates")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")

    @field_validator("endpoint")
    @classmethod
    def normalize_endpoint(cls, v):
        """Strip whitespace and trailing slashes from the endpoint."""
        return v.strip().rstrip("/")

    @field_validator("proxy_port")
    @classmethod
    def validate_proxy_port(cls, v):
        """Validate proxy port range."""
        if v < 0 or v > 65535:
            raise ValueError("Proxy port must be between 0 and 65535")
        return v

    def validate_credentials(self) -> str | None:
        """Check the endpoint and credential invariant.

        Returns:
            None when the configuration is usable, otherwise the reason it is not.
        """
        if not self.endpoint:
            return "The API endpoint is not set."

        if self.user_name:
            if not self.password:
                return "A password was not provided for the given username."
            return None

        if not self.trusted_token:
            return "Either a username and password or a trusted token must be provided."

        return None

    def ensure_valid(self) -> None:
        """Raise ConfigurationError if the configuration cannot be used."""
        error = self.validate_credentials()
        if error:
            raise ConfigurationError(error, context={"endpoint": self.endpoint})

    def use_trusted_token(self) -> bool:
        """Return True if authentication should use the trusted token."""
        return not self.user_name

    def authentication_changed(self, other: "EmsApiConfig") -> bool:
        """Return True if fields affecting authentication differ from ``other``."""
        return (
            self.endpoint != other.endpoint
            or self.user_name != other.user_name
            or self.password != other.password
            or self.trusted_token != other.trusted_token
        )

    def proxy_changed(self, other: "EmsApiConfig") -> bool:
        """Return True if fields affecting the proxy differ from ``other``."""
        return (
            self.proxy_server != other.proxy_server
            or self.proxy_port != other.proxy_port
            or self.proxy_user_name != other.proxy_user_name
            or self.proxy_password != other.proxy_password
        )

    def proxy_server_includes_port(self) -> bool:
        """Return True if the proxy server string already ends with a port."""
        if not self.proxy_server:
            return False

        last = self.proxy_server.rstrip("/").split(":")[-1]
        try:
            int(last)
        except ValueError:
            return False
        return True

    def resolve_proxy_port(self) -> int:
        """Return the proxy port to use when the server string has none."""
        if self.proxy_port != 0:
            return self.proxy_port

        try:
            parts = urlsplit(self.endpoint)
        except ValueError:
            return HTTPS_PORT

        # Not an absolute URI, no way to figure it out.
        if not parts.scheme or not parts.netloc:
            return HTTPS_PORT

        return HTTPS_PORT if parts.scheme == "https" else HTTP_PORT

    def default_headers(self) -> dict[str, str]:
        """Headers sent with every request, including the token exchange."""
        headers = {HEADER_USER_AGENT: USER_AGENT}

        if self.application_name:
            headers[HEADER_APPLICATION_NAME] = self.application_name

        headers[HEADER_ACCEPT_ENCODING] = "gzip" if self.use_compression else "identity"
        return headers

    def clone(self) -> "EmsApiConfig":
        """Return a deep copy of the configuration, proxy settings included."""
        return self.model_copy(deep=True)

    def replace(self, **changes: Any) -> "EmsApiConfig":
        """Return a validated copy with the given fields changed."""
        return type(self)(**{**self.model_dump(), **changes})
