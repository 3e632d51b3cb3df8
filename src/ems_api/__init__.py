"""
EMS API Client

A Python client for the EMS facility-management API. Every call goes through an
authenticated pipeline that attaches bearer tokens, refreshes them when they
expire or when credentials change, and routes traffic through an optional proxy.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .core.client import EmsApiClient
from .core.config_loader import ConfigLoader
from .core.exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    EmsApiError,
    TokenResponseError,
    ValidationError,
)
from .core.models import EmsApiConfig
from .core.transport import AuthenticatedTransport, AuthenticationFailedEvent

__all__ = [
    # Exceptions
    "EmsApiError",
    "ConfigurationError",
    "AuthenticationError",
    "TokenResponseError",
    "APIError",
    "ValidationError",
    # Core classes
    "EmsApiConfig",
    "ConfigLoader",
    "EmsApiClient",
    "AuthenticatedTransport",
    "AuthenticationFailedEvent",
]
