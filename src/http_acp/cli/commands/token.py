"""Token command group for http-acp CLI.

Mints and inspects capability tokens for development and testing.
Production tokens come from an external issuer.
"""

from __future__ import annotations

__all__ = ["token"]

import json
import os
import sys
import time

import click

from http_acp.constants import DEFAULT_TOKEN_ISSUER, DEFAULT_TOKEN_LIFETIME_SECONDS
from http_acp.credentials.capability import decode_capability_token, encode_capability_token
from http_acp.credentials.signed import issue_signed_token
from http_acp.exceptions import CredentialDecodeError

from ..styling import style_error, style_warning


@click.group()
def token() -> None:
    """Development capability tokens."""
    pass


@token.command("issue")
@click.argument("capabilities", nargs=-1, required=True)
@click.option(
    "--expires-in",
    type=click.IntRange(min=1),
    default=DEFAULT_TOKEN_LIFETIME_SECONDS,
    show_default=True,
    help="Lifetime in seconds",
)
@click.option("--no-expiry", is_flag=True, help="Mint a token without an exp claim")
@click.option("--issuer", default=DEFAULT_TOKEN_ISSUER, show_default=True, help="Issuer name")
@click.option("--signed", is_flag=True, help="Mint a signed JWT (HS256) instead of base64 JSON")
@click.option(
    "--secret-env",
    default="HTTP_ACP_TOKEN_SECRET",
    show_default=True,
    help="Environment variable holding the signing secret (with --signed)",
)
def token_issue(
    capabilities: tuple[str, ...],
    expires_in: int,
    no_expiry: bool,
    issuer: str,
    signed: bool,
    secret_env: str,
) -> None:
    """Mint a capability token granting CAPABILITIES.

    The token is printed on stdout so it can be captured:

        TOKEN=$(http-acp token issue file.read file.write)
    """
    lifetime = None if no_expiry else expires_in

    if signed:
        secret = os.environ.get(secret_env)
        if not secret:
            click.echo(style_error(f"--signed requires a secret in ${secret_env}"), err=True)
            sys.exit(1)
        click.echo(issue_signed_token(capabilities, secret, expires_in=lifetime, issuer=issuer))
        return

    click.echo(style_warning("unsigned tokens can be forged by anyone"), err=True)
    click.echo(encode_capability_token(capabilities, expires_in=lifetime, issuer=issuer))


@token.command("decode")
@click.argument("raw")
def token_decode(raw: str) -> None:
    """Decode an unsigned token and print its claims.

    Exit codes:
        0: Token decoded (an "expired" field reports its validity)
        1: Token is malformed
    """
    try:
        grant = decode_capability_token(raw)
    except CredentialDecodeError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)

    claims = grant.to_claims()
    claims["expired"] = grant.is_expired(time.time())
    click.echo(json.dumps(claims, indent=2))
