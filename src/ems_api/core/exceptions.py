"""
EMS API Client - Exception Hierarchy

This module contains all custom exceptions raised by the EMS API client.
Network failures are not wrapped: they surface as the underlying httpx errors.
"""

from datetime import datetime, timezone
from typing import Any


class EmsApiError(Exception):
    """Base exception for all EMS API errors with enhanced context."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class ConfigurationError(EmsApiError):
    """Invalid configuration (credentials, proxy settings or environment values)."""


class AuthenticationError(EmsApiError):
    """The token exchange was rejected by the server."""

    def __init__(
        self,
        message: str,
        description: str | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        context = dict(context or {})
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(message, context=context)
        self.description = description or message
        self.status_code = status_code


class TokenResponseError(AuthenticationError):
    """The token endpoint answered with a body that could not be understood."""


class APIError(EmsApiError):
    """API call failed."""

    def __init__(
        self, message: str, status_code: int | None = None, response_text: str | None = None
    ):
        super().__init__(message, context={"status_code": status_code})
        self.status_code = status_code
        self.response_text = response_text


class ValidationError(EmsApiError):
    """Input parameter validation failed."""
