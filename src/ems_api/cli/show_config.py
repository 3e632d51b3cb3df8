"""
EMS API Client - Show Configuration Command

Print the effective configuration without credentials.
"""

from typing import Optional

import typer

from ..core.config_loader import ConfigLoader
from ..core.exceptions import ConfigurationError
from .common import configure_logging, load_config


def show_config_command(
    endpoint: Optional[str] = typer.Option(None, "--endpoint", "-e", help="EMS API endpoint"),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="User name"),
    proxy_server: Optional[str] = typer.Option(None, "--proxy-server", help="HTTP proxy server"),
    proxy_port: int = typer.Option(0, "--proxy-port", help="Proxy port (0 derives it)"),
    use_env: bool = typer.Option(True, "--env/--no-env", help="Apply EmsApi* environment variables"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """
    Show the effective EMS API configuration.

    Examples:
        # Show configuration from the environment
        ems-api show-config

        # Check how a proxy would be resolved
        ems-api show-config --proxy-server myproxy.local
    """
    configure_logging(verbose)

    try:
        config = load_config(endpoint, username, None, None, proxy_server, proxy_port, True, use_env)
        info = ConfigLoader.describe(config)
    except ConfigurationError as e:
        typer.echo(f"❌ Configuration error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo("\n📋 EMS API Configuration\n")
    typer.echo(f"Endpoint: {typer.style(info['endpoint'], fg=typer.colors.CYAN, bold=True)}")
    typer.echo(f"User: {info['user_name'] or '-'}")
    typer.echo(f"Credential: {info['credential']}")
    typer.echo(f"Proxy: {info['proxy'] or 'none'}")
    if info["proxy"]:
        typer.echo(f"Proxy authentication: {'✓' if info['proxy_authenticated'] else '✗'}")
    typer.echo(f"Compression: {'✓' if info['use_compression'] else '✗'}")
    typer.echo(f"SSL Verification: {'✓' if info['verify_ssl'] else '✗'}")

    error = config.validate_credentials()
    if error:
        typer.echo(f"\n⚠️  {error}")
