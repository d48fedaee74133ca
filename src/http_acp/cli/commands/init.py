"""Init command for http-acp CLI.

Creates the gateway config file and, unless asked not to, a rules file
holding the built-in tables so they can be edited.
"""

from __future__ import annotations

__all__ = ["init"]

import sys
from pathlib import Path

import click
from pydantic import ValidationError

from http_acp.config import AppConfig, GateConfig, OriginConfig, TokenConfig, get_config_path
from http_acp.utils.rules import create_default_rules_file, get_rules_path, rules_exist

from ..styling import style_error, style_success, style_warning


@click.command()
@click.option("--origin", required=True, help="Origin base URL (e.g., http://localhost:8080)")
@click.option(
    "--gates",
    type=click.Choice(["both", "consent", "capability"]),
    default="both",
    show_default=True,
    help="Which gates to enforce",
)
@click.option(
    "--verifier",
    type=click.Choice(["unsigned", "signed"]),
    default="unsigned",
    show_default=True,
    help="Capability token verification",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file to write (default: OS config directory)",
)
@click.option("--no-rules", is_flag=True, help="Use built-in tables instead of writing rules.json")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
def init(
    origin: str,
    gates: str,
    verifier: str,
    config_path: Path | None,
    no_rules: bool,
    force: bool,
) -> None:
    """Create config.json (and rules.json) for the gateway."""
    target = config_path or get_config_path()
    if target.exists() and not force:
        click.echo(style_error(f"Config already exists: {target}"), err=True)
        click.echo("  Use --force to overwrite", err=True)
        sys.exit(1)

    rules_path: Path | None = None
    if not no_rules:
        rules_path = get_rules_path() if config_path is None else target.parent / "rules.json"

    try:
        config = AppConfig(
            origin=OriginConfig(url=origin),
            gates=GateConfig(consent=gates != "capability", capability=gates != "consent"),
            tokens=TokenConfig(verifier=verifier),
            rules_path=str(rules_path) if rules_path else None,
        )
    except ValidationError as e:
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            click.echo(style_error(f"{loc}: {error['msg']}"), err=True)
        sys.exit(1)

    written = config.save_to_file(target)
    click.echo(style_success(f"Config written: {written}"))

    if rules_path is not None:
        if rules_exist(rules_path):
            click.echo(f"  Keeping existing rules: {rules_path}")
        else:
            create_default_rules_file(rules_path)
            click.echo(style_success(f"Rules written: {rules_path}"))

    if verifier == "unsigned":
        click.echo(style_warning("unsigned capability tokens are not authenticated"), err=True)
    else:
        click.echo(f"  Set ${config.tokens.secret_env} before running 'http-acp serve'")
