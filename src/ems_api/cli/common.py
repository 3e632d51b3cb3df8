"""
EMS API Client - CLI Helpers

Configuration loading shared by the CLI commands.
"""

import logging
from typing import Optional

from ..core.config_loader import ConfigLoader
from ..core.models import EmsApiConfig
from ..shared.constants import DEFAULT_ENDPOINT


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def load_config(
    endpoint: Optional[str],
    username: Optional[str],
    password: Optional[str],
    trusted_token: Optional[str],
    proxy_server: Optional[str],
    proxy_port: int,
    verify_ssl: bool,
    use_env: bool,
) -> EmsApiConfig:
    """
    Build a configuration from command line flags and the environment.

    Environment variables win over flags, the same as for library users.

    Raises:
        ConfigurationError: If a value is malformed
    """
    return ConfigLoader.load(
        endpoint=endpoint or DEFAULT_ENDPOINT,
        use_env_vars=use_env,
        user_name=username,
        password=password,
        trusted_token=trusted_token,
        proxy_server=proxy_server,
        proxy_port=proxy_port,
        verify_ssl=verify_ssl,
    )
