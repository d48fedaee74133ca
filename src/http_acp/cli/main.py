"""Main CLI entry point for http-acp.

Defines the CLI group and registers all subcommands.

Commands:
    check - Decide a request offline against the rule tables
    init  - Create config.json and rules.json
    rules - Rule table management (show, validate, init, path)
    serve - Run the gateway
    token - Development capability tokens (issue, decode)

Subcommand help:
    http-acp COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli"]

import sys

import click

from http_acp import __version__

from .commands.check import check
from .commands.init import init
from .commands.rules import rules
from .commands.serve import serve
from .commands.token import token


class ReorderedGroup(click.Group):
    """Custom group that shows commands before custom help text."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add extra help after commands section."""
        formatter.write(
            """
Quick Start:
  http-acp init --origin http://localhost:8080   Create config and rules
  http-acp serve                                 Run the gateway

Trying decisions offline:
  http-acp check GET /api/analytics/report --consent '{"analytics": true}'
  http-acp check DELETE /api/files/a.txt --token "$(http-acp token issue file.delete)"

Gates:
  consent     Requires consent categories from the user-consent cookie
  capability  Requires capabilities from the X-Capability-Token header
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """http-acp: Consent and capability gateway for HTTP services."""
    if version:
        click.echo(f"http-acp {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(check)
cli.add_command(init)
cli.add_command(rules)
cli.add_command(serve)
cli.add_command(token)


def main() -> None:
    """CLI entry point."""
    cli()
