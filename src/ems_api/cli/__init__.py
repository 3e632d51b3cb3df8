"""
EMS API Client - CLI Interface

This module provides a command-line interface for checking EMS API
configuration and credentials.
"""

import sys

import typer

from .authenticate import authenticate_command
from .show_config import show_config_command

# Create main CLI app
app = typer.Typer(
    name="ems-api",
    help="EMS API client - configuration and authentication checks",
    add_completion=False
)

# Register commands
app.command(name="show-config", help="Show the effective configuration")(show_config_command)
app.command(name="authenticate", help="Request a bearer token")(authenticate_command)


def main():
    """CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("\n\nOperation cancelled by user")
        sys.exit(1)


if __name__ == "__main__":
    main()
