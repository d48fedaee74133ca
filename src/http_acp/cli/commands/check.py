"""Check command for http-acp CLI.

Decides a single request offline, exactly as the running gateway would,
without contacting the origin. Useful for testing rule changes.
"""

from __future__ import annotations

__all__ = ["check"]

import json
import os
import sys
from pathlib import Path
from urllib.parse import unquote

import click

from http_acp.credentials.capability import CredentialVerifier, UnsignedTokenVerifier
from http_acp.credentials.consent import decode_consent
from http_acp.credentials.signed import SignedTokenVerifier
from http_acp.exceptions import CriticalSecurityFailure
from http_acp.pdp.decision import Verdict
from http_acp.pdp.engine import CapabilityPolicyEngine, ConsentPolicyEngine
from http_acp.pdp.rules import RuleSet, create_default_rule_set
from http_acp.pep.path_normalization import normalize_path
from http_acp.utils.rules import get_rules_path, load_rules

from ..styling import style_error, style_verdict


def _resolve_rules(path: Path | None, builtin: bool) -> RuleSet:
    """Explicit file, else the default rules file if present, else built-in."""
    if builtin:
        return create_default_rule_set()
    if path is not None:
        return load_rules(path)
    default_path = get_rules_path()
    if default_path.exists():
        return load_rules(default_path)
    return create_default_rule_set()


@click.command()
@click.argument("method")
@click.argument("path")
@click.option("--token", "-t", help="Capability token (as sent in X-Capability-Token)")
@click.option("--consent", "-c", help='Consent cookie value, e.g. \'{"analytics": true}\'')
@click.option(
    "--gate",
    type=click.Choice(["both", "consent", "capability"]),
    default="both",
    show_default=True,
    help="Which gate(s) to evaluate",
)
@click.option(
    "--rules",
    "rules_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Rules file (default: OS config directory, else built-in tables)",
)
@click.option("--builtin", is_flag=True, help="Use the built-in rule tables")
@click.option(
    "--secret-env",
    help="Verify TOKEN as an HS256 JWT using the secret in this environment variable",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def check(
    method: str,
    path: str,
    token: str | None,
    consent: str | None,
    gate: str,
    rules_path: Path | None,
    builtin: bool,
    secret_env: str | None,
    as_json: bool,
) -> None:
    """Decide METHOD PATH against the rule tables.

    Gates run in gateway order (consent, then capability) and stop at the
    first denial.
    PATH is percent-decoded and normalized the way the gateway does it.

    Exit codes:
        0: Request would be allowed
        1: Request would be denied
        2: Rules or options are invalid
    """
    try:
        rule_set = _resolve_rules(rules_path, builtin)
    except (FileNotFoundError, ValueError, CriticalSecurityFailure) as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(2)

    verifier: CredentialVerifier = UnsignedTokenVerifier()
    if secret_env:
        secret = os.environ.get(secret_env)
        if not secret:
            click.echo(style_error(f"${secret_env} is not set"), err=True)
            sys.exit(2)
        verifier = SignedTokenVerifier(secret)

    path = normalize_path(unquote(path))
    verdicts: list[Verdict] = []
    if gate in ("both", "consent"):
        verdicts.append(ConsentPolicyEngine(rule_set.consent).decide(path, decode_consent(consent)))
    if gate in ("both", "capability") and all(v.allowed for v in verdicts):
        engine = CapabilityPolicyEngine(rule_set.capability, verifier)
        verdicts.append(engine.decide(method, path, token))

    allowed = all(v.allowed for v in verdicts)

    if as_json:
        click.echo(
            json.dumps(
                {
                    "method": method.upper(),
                    "path": path,
                    "allowed": allowed,
                    "verdicts": [v.to_dict() for v in verdicts],
                },
                indent=2,
            )
        )
    else:
        click.echo(f"{style_verdict(allowed)} {method.upper()} {path}")
        for verdict in verdicts:
            required = ", ".join(verdict.required_permissions)
            click.echo(f"  {verdict.mode.value:<10} {verdict.reason_code.value:<22} requires {required}")
            if not verdict.allowed:
                click.echo(f"  {verdict.message}")

    sys.exit(0 if allowed else 1)
