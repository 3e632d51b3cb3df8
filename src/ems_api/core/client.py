"""
EMS API Client - API Client

This module provides the main client class for interacting with the EMS API.
"""

import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..shared.constants import AUTH_ERROR_EXTENSION
from .exceptions import APIError, ValidationError
from .models import EmsApiConfig
from .request_logging import request_logger
from .transport import (
    AuthenticatedTransport,
    AuthenticationFailedListener,
    TransportFactory,
)

logger = logging.getLogger("ems-api")

ApiFailureListener = Callable[[APIError], Any]


class EmsApiClient:
    """Client for interacting with the EMS API.

    Authentication happens lazily inside the transport. Whether a failed
    authentication or a failed API call raises is decided here, from the
    ``throw_on_auth_failure`` and ``throw_on_api_failure`` flags. Listeners
    are notified either way.
    """

    SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")

    def __init__(
        self,
        config: EmsApiConfig,
        transport_factory: Optional[TransportFactory] = None,
    ):
        """Initialize EMS API client.

        Args:
            config: Configuration for the EMS API connection
            transport_factory: Builds the network transport, mostly for tests

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.transport = AuthenticatedTransport(config, transport_factory)
        self._api_failure_listeners: List[ApiFailureListener] = []

        self.client = httpx.AsyncClient(
            base_url=config.endpoint,
            transport=self.transport,
            timeout=httpx.Timeout(config.timeout, pool=5.0),
        )

        logger.info(
            f"Initialized EMS API client for {config.endpoint} "
            f"(SSL verification: {'enabled' if config.verify_ssl else 'DISABLED'})"
        )

    @property
    def config(self) -> EmsApiConfig:
        return self.transport.config

    @config.setter
    def config(self, config: EmsApiConfig) -> None:
        self.set_config(config)

    def set_config(self, config: EmsApiConfig) -> None:
        """Swap in a new configuration snapshot.

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.transport.set_config(config)
        self.client.base_url = config.endpoint
        self.client.timeout = httpx.Timeout(config.timeout, pool=5.0)

    @property
    def authenticated(self) -> bool:
        return self.transport.authenticated

    def add_authentication_failed_listener(self, listener: AuthenticationFailedListener) -> None:
        self.transport.add_authentication_failed_listener(listener)

    def add_api_failure_listener(self, listener: ApiFailureListener) -> None:
        """Register a callable (sync or async) invoked for every failed API call."""
        self._api_failure_listeners.append(listener)

    async def authenticate(self) -> bool:
        """Request a new bearer token immediately.

        Returns:
            True on success, False on failure when exceptions are disabled

        Raises:
            AuthenticationError: The server's rejection, when
                throw_on_auth_failure is set
        """
        if await self.transport.authenticate():
            return True

        error = self.transport.last_authentication_error
        if self.config.throw_on_auth_failure and error is not None:
            raise error
        return False

    async def close(self):
        """Close the httpx client."""
        await self.client.aclose()

    async def __aenter__(self) -> "EmsApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        data: Optional[Dict[str, Any]] = None,
        operation: str = "api_request",
    ) -> Any:
        """Make a request to the EMS API.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: Path relative to the endpoint (e.g., "/v2/ems-systems")
            params: Query parameters
            json: JSON request payload
            data: Form request payload
            operation: Name of operation for logging/error context

        Returns:
            Parsed JSON response, or None for an empty body or a failed call
            when exceptions are disabled

        Raises:
            ValidationError: For invalid input parameters
            AuthenticationError: If authentication failed and throw_on_auth_failure is set
            APIError: For non-2xx responses when throw_on_api_failure is set
            httpx.HTTPError: For network, TLS or proxy failures
        """
        if not method or not path:
            raise ValidationError("Method and path are required",
                                  context={"method": method, "path": path})

        if method.upper() not in self.SUPPORTED_METHODS:
            raise ValidationError(f"Unsupported HTTP method: {method}",
                                  context={"method": method})

        config = self.config
        request = self.client.build_request(method.upper(), path, params=params, json=json, data=data)

        request_logger.log_request(method.upper(), str(request.url), dict(request.headers),
                                   json or data, operation)
        start_time = datetime.now(timezone.utc)

        try:
            response = await self.client.send(request)
        except httpx.HTTPError as e:
            duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
            request_logger.log_response(0, 0, duration_ms, operation, e)
            raise

        duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
        response_size = len(response.content) if response.content else 0

        auth_error = response.request.extensions.get(AUTH_ERROR_EXTENSION)
        if auth_error is not None and config.throw_on_auth_failure:
            request_logger.log_response(response.status_code, response_size, duration_ms,
                                        operation, auth_error)
            raise auth_error

        if not response.is_success:
            error = APIError(f"API error: {response.status_code}",
                             status_code=response.status_code,
                             response_text=response.text)
            request_logger.log_response(response.status_code, response_size, duration_ms,
                                        operation, error)
            await self._notify_api_failure(error)
            if config.throw_on_api_failure:
                raise error
            return None

        request_logger.log_response(response.status_code, response_size, duration_ms, operation)

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            error = APIError(f"Invalid JSON response from EMS API: {e}",
                             status_code=response.status_code,
                             response_text=response.text)
            await self._notify_api_failure(error)
            if config.throw_on_api_failure:
                raise error
            return None

    async def _notify_api_failure(self, error: APIError) -> None:
        for listener in list(self._api_failure_listeners):
            result = listener(error)
            if inspect.isawaitable(result):
                await result
