"""Serve command for http-acp CLI.

Runs the gateway with uvicorn.
"""

from __future__ import annotations

__all__ = ["serve"]

import sys
from pathlib import Path

import click
import uvicorn

from http_acp.app import create_app
from http_acp.config import AppConfig
from http_acp.exceptions import CriticalSecurityFailure
from http_acp.telemetry.system.system_logger import configure_system_logger_file, get_system_logger

from ..styling import style_error, style_label


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (default: OS config directory)",
)
@click.option("--host", help="Override server.host")
@click.option("--port", type=click.IntRange(1, 65535), help="Override server.port")
def serve(config_path: Path | None, host: str | None, port: int | None) -> None:
    """Run the gateway in front of the configured origin.

    Exit codes:
        0:  Clean shutdown
        16: Configuration invalid
        17: Rule table invalid
    """
    try:
        config = AppConfig.load_from_file(config_path)
        configure_system_logger_file(config.logging.system_path)
        get_system_logger().setLevel(config.logging.log_level)
        app = create_app(config)
    except CriticalSecurityFailure as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(e.exit_code)

    bind_host = host or config.server.host
    bind_port = port or config.server.port

    gates = [
        name
        for name, enabled in (("consent", config.gates.consent), ("capability", config.gates.capability))
        if enabled
    ]
    click.echo(f"{style_label('Origin')} {config.origin.url}")
    click.echo(f"{style_label('Gates')} {', '.join(gates) or 'none'}")
    click.echo(f"{style_label('Rules')} {config.rules_path or 'built-in'}")
    click.echo(f"{style_label('Listening')} http://{bind_host}:{bind_port}")

    uvicorn.run(app, host=bind_host, port=bind_port, log_level=config.logging.log_level.lower())
