"""
EMS API Client - Authenticate Command

Perform a single token exchange against the EMS API.
"""

import asyncio
from typing import Optional

import httpx
import typer

from ..core.client import EmsApiClient
from ..core.exceptions import AuthenticationError, ConfigurationError
from ..core.models import EmsApiConfig
from .common import configure_logging, load_config


def authenticate_command(
    endpoint: Optional[str] = typer.Option(None, "--endpoint", "-e", help="EMS API endpoint"),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="User name"),
    password: Optional[str] = typer.Option(None, "--password", "-p", help="Password", hide_input=True),
    trusted_token: Optional[str] = typer.Option(None, "--trusted-token", help="Trusted token"),
    proxy_server: Optional[str] = typer.Option(None, "--proxy-server", help="HTTP proxy server"),
    proxy_port: int = typer.Option(0, "--proxy-port", help="Proxy port (0 derives it)"),
    verify_ssl: bool = typer.Option(True, "--verify-ssl/--no-verify-ssl", help="Verify SSL certificates"),
    use_env: bool = typer.Option(True, "--env/--no-env", help="Apply EmsApi* environment variables"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """
    Request a bearer token to check the credentials.

    Examples:
        # Credentials from EmsApiUsername / EmsApiPassword
        ems-api authenticate

        # Explicit credentials
        ems-api authenticate --username jdoe --password secret
    """
    configure_logging(verbose)
    typer.echo("\n🔍 Testing EMS API Authentication\n")

    try:
        config = load_config(
            endpoint, username, password, trusted_token, proxy_server, proxy_port, verify_ssl, use_env
        )
        typer.echo(f"Endpoint: {typer.style(config.endpoint, fg=typer.colors.CYAN, bold=True)}\n")
        result = asyncio.run(_authenticate_async(config))
    except ConfigurationError as e:
        typer.echo(f"❌ Configuration error: {e}", err=True)
        raise typer.Exit(1)

    if result["success"]:
        typer.echo(f"✅ {typer.style('Authentication successful!', fg=typer.colors.GREEN, bold=True)}")
        return

    typer.echo(f"❌ {typer.style('Authentication failed', fg=typer.colors.RED, bold=True)}")
    typer.echo(f"\nError: {result.get('error', 'Unknown error')}")
    raise typer.Exit(1)


async def _authenticate_async(config: EmsApiConfig) -> dict:
    """
    Async helper performing the token exchange.

    Args:
        config: EMS API configuration

    Returns:
        Dictionary with the result
    """
    failures = []
    client = EmsApiClient(config.replace(throw_on_auth_failure=False))
    client.add_authentication_failed_listener(lambda event: failures.append(event.description))

    try:
        if await client.authenticate():
            return {"success": True}
        return {"success": False, "error": failures[-1] if failures else None}

    except AuthenticationError as e:
        return {"success": False, "error": e.description}

    except httpx.HTTPError as e:
        return {"success": False, "error": f"Network error: {e!s}"}

    finally:
        await client.close()
