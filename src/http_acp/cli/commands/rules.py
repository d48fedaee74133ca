"""Rules command group for http-acp CLI.

Provides rule table management subcommands.
"""

from __future__ import annotations

__all__ = ["rules"]

import json
import sys
from pathlib import Path

import click

from http_acp.exceptions import RuleTableError
from http_acp.pdp.rules import RuleSet, RuleTable, create_default_rule_set
from http_acp.utils.rules import (
    compute_rules_checksum,
    create_default_rules_file,
    get_rules_path,
    load_rules,
)

from ..styling import style_dim, style_error, style_header, style_label, style_success

_PATH_OPTION = click.option(
    "--path",
    "-p",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Rules file (default: OS config directory)",
)


def _load_or_exit(path: Path) -> RuleSet:
    try:
        return load_rules(path)
    except (FileNotFoundError, ValueError, RuleTableError) as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)


def _echo_table(title: str, table: RuleTable) -> None:
    click.echo(style_header(title))
    for entry in table.entries:
        methods = ",".join(entry.methods) if entry.methods else "*"
        required = ", ".join(entry.required_permissions)
        line = f"  {entry.id:<28} {methods:<16} {entry.match_pattern:<24} -> {required}"
        click.echo(style_dim(line) if table.is_catch_all(entry) else line)


@click.group()
def rules() -> None:
    """Rule table management commands."""
    pass


@rules.command("path")
def rules_path_cmd() -> None:
    """Show the default rules file path."""
    path = get_rules_path()
    click.echo(str(path))

    if not path.exists():
        click.echo("(file does not exist - run 'http-acp rules init' to create)", err=True)


@rules.command("show")
@_PATH_OPTION
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--builtin", is_flag=True, help="Show the built-in tables instead of a file")
def rules_show(path: Path | None, as_json: bool, builtin: bool) -> None:
    """Display both rule tables.

    Entries are listed in evaluation order; the first match wins. The
    dimmed last entry of each table is its catch-all.
    """
    if builtin:
        rule_set = create_default_rule_set()
        source = "built-in"
    else:
        rules_path = path or get_rules_path()
        rule_set = _load_or_exit(rules_path)
        source = str(rules_path)

    if as_json:
        click.echo(json.dumps(rule_set.model_dump(mode="json", exclude_none=True), indent=2))
        return

    click.echo(f"{style_label('Source')} {source}")
    click.echo(f"{style_label('Version')} {rule_set.version}")
    click.echo()
    _echo_table(f"Consent rules ({rule_set.consent.rule_count})", rule_set.consent)
    click.echo()
    _echo_table(f"Capability rules ({rule_set.capability.rule_count})", rule_set.capability)


@rules.command("validate")
@_PATH_OPTION
def rules_validate(path: Path | None) -> None:
    """Validate a rules file.

    Checks the rules file for:
    - Valid JSON syntax
    - Schema validation (patterns, methods, permissions)
    - Exactly one catch-all entry per table, placed last

    Exit codes:
        0: Rules are valid
        1: Rules are invalid or not found
    """
    rules_path = path or get_rules_path()
    rule_set = _load_or_exit(rules_path)

    click.echo(style_success(f"Rules valid: {rules_path}"))
    click.echo(f"  Consent rules:    {rule_set.consent.rule_count}")
    click.echo(f"  Capability rules: {rule_set.capability.rule_count}")
    click.echo(f"  Checksum: {compute_rules_checksum(rules_path)}")


@rules.command("init")
@_PATH_OPTION
@click.option("--force", is_flag=True, help="Overwrite an existing rules file")
def rules_init(path: Path | None, force: bool) -> None:
    """Write the built-in rule tables to a rules file."""
    rules_path = path or get_rules_path()
    if force and rules_path.exists():
        rules_path.unlink()

    try:
        rule_set = create_default_rules_file(rules_path)
    except FileExistsError as e:
        click.echo(style_error(str(e)), err=True)
        click.echo("  Use --force to overwrite", err=True)
        sys.exit(1)

    click.echo(style_success(f"Rules written: {rules_path}"))
    click.echo(f"  {rule_set.consent.rule_count} consent, {rule_set.capability.rule_count} capability rules")
