"""
EMS API Client - Shared Utilities

This package contains constants shared across the client.
"""

from . import constants

__all__ = ["constants"]
