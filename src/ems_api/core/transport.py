"""
EMS API Client - Authenticated Transport

This module provides the httpx transport that attaches bearer tokens to every
outbound request and routes traffic through the configured proxy.

Authentication is attempted lazily on first use, at a call site that may not
expect authentication errors. Failures are therefore reported to listeners
instead of being raised, and the request is still sent so that no caller is
left waiting on it.
"""

import asyncio
import inspect
import logging
import ssl
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import certifi
import httpx

from ..shared.constants import AUTH_ERROR_EXTENSION, AUTH_SCHEME, HEADER_AUTHORIZATION
from .exceptions import AuthenticationError
from .models import EmsApiConfig
from .proxy import ProxyRoute, resolve_proxy
from .token import Clock, TokenAuthority

logger = logging.getLogger("ems-api")

TransportFactory = Callable[[EmsApiConfig, Optional[ProxyRoute]], httpx.AsyncBaseTransport]


@dataclass(frozen=True)
class AuthenticationFailedEvent:
    """Payload handed to authentication-failed listeners."""

    description: str
    error: AuthenticationError


AuthenticationFailedListener = Callable[[AuthenticationFailedEvent], Any]


def create_ssl_context(verify_ssl: bool) -> ssl.SSLContext:
    """
    Create SSL context with security hardening.

    Args:
        verify_ssl: Whether to verify SSL certificates

    Returns:
        Configured SSL context
    """
    if not verify_ssl:
        logger.warning(
            "SSL certificate verification is disabled. "
            "Connections to the EMS API are vulnerable to man-in-the-middle attacks."
        )
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    context = ssl.create_default_context(cafile=certifi.where())
    context.check_hostname = True
    context.verify_mode = ssl.CERT_REQUIRED
    context.minimum_version = ssl.TLSVersion.TLSv1_2

    logger.debug("SSL verification enabled with TLS 1.2+ enforcement")
    return context


def default_transport_factory(
    config: EmsApiConfig, route: Optional[ProxyRoute]
) -> httpx.AsyncBaseTransport:
    """Build the network transport carrying TLS and proxy settings."""
    return httpx.AsyncHTTPTransport(
        verify=create_ssl_context(config.verify_ssl),
        proxy=route.to_httpx() if route else None,
        limits=httpx.Limits(
            max_keepalive_connections=5,
            max_connections=10,
            keepalive_expiry=30.0,
        ),
    )


class _LeasedStream(httpx.AsyncByteStream):
    """Response body that releases its inner transport lease once closed."""

    def __init__(self, stream: httpx.AsyncByteStream, release: Callable[[], Awaitable[None]]):
        self._stream = stream
        self._release = release

    async def __aiter__(self):
        async for chunk in self._stream:
            yield chunk

    async def aclose(self) -> None:
        try:
            await self._stream.aclose()
        finally:
            await self._release()


class AuthenticatedTransport(httpx.AsyncBaseTransport):
    """Transport injecting bearer tokens, refreshing them when needed.

    Every response holds a lease on the inner transport that produced it
    until its body is closed. An inner transport replaced by ``set_config``
    is closed as soon as its last lease is released.
    """

    def __init__(
        self,
        config: EmsApiConfig,
        transport_factory: Optional[TransportFactory] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize the authenticated transport.

        Args:
            config: Initial configuration snapshot
            transport_factory: Builds the inner transport for a config and proxy route
            clock: Current UTC time source, injectable for tests

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        config.ensure_valid()
        route = resolve_proxy(config)

        self._factory = transport_factory or default_transport_factory
        self._config = config
        self._proxy_route = route
        self._inner = self._factory(config, route)
        self._retired: List[httpx.AsyncBaseTransport] = []
        self._leases: Dict[httpx.AsyncBaseTransport, int] = {}
        self._closing: Set[asyncio.Task] = set()
        self._listeners: List[AuthenticationFailedListener] = []
        self._tokens = TokenAuthority(self._send_raw, clock=clock)
        self.last_authentication_error: Optional[AuthenticationError] = None

        if route:
            logger.info(f"Routing EMS API traffic through proxy {route.uri}")

    @property
    def config(self) -> EmsApiConfig:
        return self._config

    @property
    def proxy_route(self) -> Optional[ProxyRoute]:
        return self._proxy_route

    @property
    def tokens(self) -> TokenAuthority:
        return self._tokens

    @property
    def authenticated(self) -> bool:
        """True while a non-expired bearer token is held."""
        return self._tokens.is_valid()

    def set_config(self, config: EmsApiConfig) -> None:
        """Replace the configuration snapshot.

        Authentication state is dropped if the endpoint or credentials changed,
        and the inner transport is rebuilt if the proxy or TLS settings changed.
        Everything else survives the swap.

        Raises:
            ConfigurationError: If the new configuration is invalid. Nothing is
                changed in that case.
        """
        config.ensure_valid()

        old = self._config
        rebuild = config.proxy_changed(old) or config.verify_ssl != old.verify_ssl
        if rebuild:
            route = resolve_proxy(config)
            inner = self._factory(config, route)

        if config.authentication_changed(old):
            logger.info("Authentication settings changed, dropping bearer token")
            self._tokens.invalidate()

        if rebuild:
            self._retire(self._inner)
            self._inner = inner
            self._proxy_route = route
            logger.info(f"Proxy settings changed, now using {route.uri if route else 'no proxy'}")

        self._config = config

    def _retire(self, inner: httpx.AsyncBaseTransport) -> None:
        self._retired.append(inner)
        if self._leases.get(inner):
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Closed by the next request or by aclose().
            return

        self._retired.remove(inner)
        task = loop.create_task(inner.aclose())
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    def add_authentication_failed_listener(self, listener: AuthenticationFailedListener) -> None:
        """Register a callable (sync or async) invoked when authentication fails."""
        self._listeners.append(listener)

    def remove_authentication_failed_listener(self, listener: AuthenticationFailedListener) -> None:
        self._listeners.remove(listener)

    async def authenticate(self) -> bool:
        """Request a new bearer token immediately.

        The rejection is kept in ``last_authentication_error`` until the next
        successful attempt.

        Returns:
            True on success, False if the server rejected the exchange

        Raises:
            httpx.HTTPError: For network, TLS or proxy failures
        """
        try:
            await self._tokens.refresh(self._config)
        except AuthenticationError as e:
            self.last_authentication_error = e
            await self._notify(e)
            return False
        self.last_authentication_error = None
        return True

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        config = self._config

        token = self._tokens.token if self._tokens.is_valid() else None
        if token is None:
            try:
                token = await self._tokens.refresh(config)
            except AuthenticationError as e:
                request.extensions[AUTH_ERROR_EXTENSION] = e
                await self._notify(e)

        if token is not None:
            request.headers[HEADER_AUTHORIZATION] = f"{AUTH_SCHEME} {token}"

        for name, value in config.default_headers().items():
            request.headers[name] = value

        return await self._send_raw(request)

    async def _send_raw(self, request: httpx.Request) -> httpx.Response:
        if self._retired:
            await self._close_idle()

        inner = self._inner
        self._leases[inner] = self._leases.get(inner, 0) + 1
        released = False

        async def release() -> None:
            nonlocal released
            if not released:
                released = True
                await self._release(inner)

        try:
            response = await inner.handle_async_request(request)
        except BaseException:
            await release()
            raise

        if response.is_closed:
            # Body already loaded, nothing left to read from the transport.
            await release()
        else:
            response.stream = _LeasedStream(response.stream, release)
        return response

    async def _release(self, inner: httpx.AsyncBaseTransport) -> None:
        count = self._leases.get(inner, 0) - 1
        if count > 0:
            self._leases[inner] = count
            return

        self._leases.pop(inner, None)
        if inner in self._retired:
            self._retired.remove(inner)
            logger.debug("Closing replaced transport after its last response")
            await inner.aclose()

    async def _close_idle(self) -> None:
        idle = [t for t in self._retired if not self._leases.get(t)]
        for transport in idle:
            self._retired.remove(transport)
            await transport.aclose()

    async def _notify(self, error: AuthenticationError) -> None:
        logger.warning(f"Authentication failed: {error.description}")
        event = AuthenticationFailedEvent(description=error.description, error=error)
        for listener in list(self._listeners):
            result = listener(event)
            if inspect.isawaitable(result):
                await result

    async def aclose(self) -> None:
        if self._closing:
            await asyncio.gather(*list(self._closing))
        for transport in self._retired:
            await transport.aclose()
        self._retired.clear()
        await self._inner.aclose()
