"""
EMS API Client - Bearer Token Management

This module owns the bearer token and its expiration, and performs the token
exchange against ``{endpoint}/token``. Concurrent refreshes share a single
in-flight exchange.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, NamedTuple, Optional

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from ..shared.constants import (
    GRANT_TYPE_PASSWORD,
    GRANT_TYPE_TRUSTED,
    TOKEN_PATH,
    TRUSTED_TOKEN_FIELD,
)
from .exceptions import AuthenticationError, TokenResponseError
from .models import EmsApiConfig
from .request_logging import request_logger

logger = logging.getLogger("ems-api")

Sender = Callable[[httpx.Request], Awaitable[httpx.Response]]
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenState(NamedTuple):
    """Bearer token and the instant it stops being valid."""

    token: Optional[str]
    expires_at: datetime


EXPIRED = TokenState(token=None, expires_at=datetime.min.replace(tzinfo=timezone.utc))


class TokenResponse(BaseModel):
    """Successful token endpoint payload."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    expires_in: int


class TokenErrorResponse(BaseModel):
    """Rejected token endpoint payload."""

    model_config = ConfigDict(extra="ignore")

    error_description: str


class TokenAuthority:
    """Holds the current bearer token and refreshes it on demand.

    The exchange is sent through ``send``, which must be the raw transport so
    that the token request is never decorated with a token itself.
    """

    def __init__(self, send: Sender, clock: Optional[Clock] = None):
        """Initialize the token authority.

        Args:
            send: Coroutine sending a request without token injection
            clock: Returns the current UTC time, injectable for tests
        """
        self._send = send
        self._clock = clock or utcnow
        self._state = EXPIRED
        self._generation = 0
        self._inflight: Optional[asyncio.Task] = None

    @property
    def state(self) -> TokenState:
        return self._state

    @property
    def token(self) -> Optional[str]:
        return self._state.token

    @property
    def expires_at(self) -> datetime:
        return self._state.expires_at

    def is_valid(self) -> bool:
        """Return True if a token is present and has not expired."""
        state = self._state
        return state.token is not None and self._clock() < state.expires_at

    def invalidate(self) -> None:
        """Forget the current token.

        An exchange already in flight is detached: its result is still handed
        to the callers awaiting it, but it is never stored.
        """
        self._generation += 1
        self._state = EXPIRED
        self._inflight = None
        logger.debug("Bearer token invalidated")

    async def refresh(self, config: EmsApiConfig) -> str:
        """Request a new bearer token.

        Callers arriving while an exchange is already running await that
        exchange instead of starting another one.

        Args:
            config: Configuration snapshot providing endpoint and credentials

        Returns:
            The new bearer token

        Raises:
            AuthenticationError: If the server rejected the credentials
            TokenResponseError: If the response body could not be parsed
            httpx.HTTPError: For network, TLS or proxy failures
        """
        task = self._inflight
        if task is None:
            task = asyncio.ensure_future(self._exchange(config, self._generation))
            task.add_done_callback(self._clear_inflight)
            self._inflight = task

        # A cancelled caller must not cancel the exchange other callers share.
        return await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None

    def _build_form(self, config: EmsApiConfig) -> dict:
        if config.use_trusted_token():
            return {
                "grant_type": GRANT_TYPE_TRUSTED,
                TRUSTED_TOKEN_FIELD: config.trusted_token or "",
            }
        return {
            "grant_type": GRANT_TYPE_PASSWORD,
            "username": config.user_name or "",
            "password": config.password or "",
        }

    def _build_request(self, config: EmsApiConfig, form: dict) -> httpx.Request:
        return httpx.Request(
            "POST",
            f"{config.endpoint}{TOKEN_PATH}",
            data=form,
            headers=config.default_headers(),
            extensions={"timeout": httpx.Timeout(config.timeout).as_dict()},
        )

    async def _exchange(self, config: EmsApiConfig, generation: int) -> str:
        form = self._build_form(config)
        request = self._build_request(config, form)
        request_logger.log_request("POST", str(request.url), request.headers, form,
                                   operation="token_exchange")
        started = time.monotonic()

        try:
            response = await self._send(request)
            try:
                await response.aread()
            finally:
                await response.aclose()
        except httpx.HTTPError as e:
            request_logger.log_response(0, 0, (time.monotonic() - started) * 1000,
                                        "token_exchange", e)
            raise

        request_logger.log_response(response.status_code, len(response.content),
                                    (time.monotonic() - started) * 1000, "token_exchange")

        # Success or not, the body is a chunk of JSON.
        try:
            body = response.json()
        except ValueError as e:
            self._discard(generation)
            raise TokenResponseError(
                f"Invalid JSON in bearer token response: {e}",
                status_code=response.status_code,
            )

        if not response.is_success:
            self._discard(generation)
            try:
                description = TokenErrorResponse.model_validate(body).error_description
            except PydanticValidationError:
                raise TokenResponseError(
                    f"Bearer token request failed with status {response.status_code} "
                    f"and no error description",
                    status_code=response.status_code,
                )
            logger.warning(f"Bearer token request rejected: {description}")
            raise AuthenticationError(
                f"Unable to retrieve EMS API bearer token: {description}",
                description=description,
                status_code=response.status_code,
            )

        try:
            payload = TokenResponse.model_validate(body)
        except PydanticValidationError as e:
            self._discard(generation)
            raise TokenResponseError(
                f"Malformed bearer token response: {e.error_count()} invalid field(s)",
                status_code=response.status_code,
            )

        expires_at = self._clock() + timedelta(seconds=payload.expires_in)
        if generation == self._generation:
            self._state = TokenState(token=payload.access_token, expires_at=expires_at)
            logger.info(f"Bearer token acquired, expires at {expires_at.isoformat()}")
        else:
            logger.debug("Discarding bearer token obtained for a replaced configuration")

        return payload.access_token

    def _discard(self, generation: int) -> None:
        if generation == self._generation:
            self._state = EXPIRED
