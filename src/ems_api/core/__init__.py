"""
EMS API Client - Core Infrastructure

This package contains the authenticated request pipeline: configuration,
proxy resolution, bearer token management and the authenticated transport.
"""

from .client import EmsApiClient
from .config_loader import ConfigLoader
from .exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    EmsApiError,
    TokenResponseError,
    ValidationError,
)
from .models import EmsApiConfig
from .request_logging import RequestResponseLogger
from .proxy import ProxyRoute, resolve_proxy
from .token import TokenAuthority, TokenState
from .transport import AuthenticatedTransport, AuthenticationFailedEvent

__all__ = [
    # Exceptions
    "EmsApiError",
    "ConfigurationError",
    "AuthenticationError",
    "TokenResponseError",
    "APIError",
    "ValidationError",
    # Configuration
    "EmsApiConfig",
    "ConfigLoader",
    # Proxy
    "ProxyRoute",
    "resolve_proxy",
    # Tokens
    "TokenAuthority",
    "TokenState",
    # Transport
    "AuthenticatedTransport",
    "AuthenticationFailedEvent",
    # Client
    "EmsApiClient",
    "RequestResponseLogger",
]
