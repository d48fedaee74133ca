"""Command-line interface for http-acp.

Provides commands for initializing configuration, running the gateway,
checking requests offline, minting development tokens and managing rules.
"""

from .main import cli, main

__all__ = ["cli", "main"]
