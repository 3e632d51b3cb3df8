"""
EMS API Client - Configuration Loader

This module builds configuration snapshots, overlaying well-known environment
variables when requested. The environment is read once, when the snapshot is
constructed; replacing a configuration later never re-reads it.
"""

import base64
import binascii
import logging
import os
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from ..shared.constants import (
    DEFAULT_ENDPOINT,
    ENV_ENDPOINT,
    ENV_PASSWORD,
    ENV_PROXY_PASSWORD,
    ENV_PROXY_PORT,
    ENV_PROXY_SERVER,
    ENV_PROXY_USERNAME,
    ENV_USERNAME,
)
from .exceptions import ConfigurationError
from .models import EmsApiConfig
from .proxy import resolve_proxy

logger = logging.getLogger("ems-api")


class ConfigLoader:
    """
    Configuration loader for EMS API connections.

    Environment variables override explicitly passed values, matching the
    behaviour CI jobs and containers rely on:

    - EmsApiEndpoint
    - EmsApiUsername
    - EmsApiPassword (base64 encoded)
    - EmsApiProxyServer, EmsApiProxyPort
    - EmsApiProxyUsername, EmsApiProxyPassword
    """

    @classmethod
    def load(
        cls,
        endpoint: str = DEFAULT_ENDPOINT,
        use_env_vars: bool = True,
        **fields: Any,
    ) -> EmsApiConfig:
        """
        Build a configuration snapshot.

        Args:
            endpoint: The API endpoint to connect to
            use_env_vars: Overlay environment variables on top of the given values
            **fields: Any other EmsApiConfig field

        Returns:
            EmsApiConfig snapshot

        Raises:
            ConfigurationError: If an environment value or field is malformed
        """
        values: Dict[str, Any] = {"endpoint": endpoint, **fields}

        if use_env_vars:
            overrides = cls._load_from_env()
            if overrides:
                logger.debug(f"Applying environment overrides: {sorted(overrides)}")
            values.update(overrides)

        try:
            return EmsApiConfig(**values)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def _load_from_env(cls) -> Dict[str, Any]:
        """Collect the non-blank environment variables as config fields."""
        overrides: Dict[str, Any] = {}

        endpoint = cls._getenv(ENV_ENDPOINT)
        if endpoint:
            overrides["endpoint"] = endpoint

        user = cls._getenv(ENV_USERNAME)
        if user:
            overrides["user_name"] = user

        base64_password = cls._getenv(ENV_PASSWORD)
        if base64_password:
            try:
                overrides["password"] = base64.b64decode(base64_password, validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError):
                raise ConfigurationError(
                    f"The {ENV_PASSWORD} environment variable is not a base64 encoded UTF-8 string."
                )

        proxy_server = cls._getenv(ENV_PROXY_SERVER)
        if proxy_server:
            overrides["proxy_server"] = proxy_server

        proxy_port = cls._getenv(ENV_PROXY_PORT)
        if proxy_port:
            try:
                overrides["proxy_port"] = int(proxy_port)
            except ValueError:
                raise ConfigurationError(
                    f"The {ENV_PROXY_PORT} environment variable '{proxy_port}' "
                    f"cannot be converted to an integer."
                )

        proxy_user = cls._getenv(ENV_PROXY_USERNAME)
        if proxy_user:
            overrides["proxy_user_name"] = proxy_user

        proxy_password = cls._getenv(ENV_PROXY_PASSWORD)
        if proxy_password:
            overrides["proxy_password"] = proxy_password

        return overrides

    @staticmethod
    def _getenv(name: str) -> Optional[str]:
        """Return the trimmed variable, or None when unset or blank."""
        value = os.getenv(name)
        if value is None or not value.strip():
            return None
        return value.strip()

    @classmethod
    def describe(cls, config: EmsApiConfig) -> Dict[str, Any]:
        """
        Get non-sensitive information about a configuration.

        Args:
            config: Configuration snapshot

        Returns:
            Dictionary with endpoint, user, credential kind and proxy (no secrets)

        Raises:
            ConfigurationError: If the proxy settings are invalid
        """
        route = resolve_proxy(config)
        return {
            "endpoint": config.endpoint,
            "user_name": config.user_name,
            "credential": "trusted token" if config.use_trusted_token() else "password",
            "proxy": route.uri if route else None,
            "proxy_authenticated": bool(route and route.credentials),
            "use_compression": config.use_compression,
            "verify_ssl": config.verify_ssl,
        }
