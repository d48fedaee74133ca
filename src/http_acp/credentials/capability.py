"""Capability token verification.

Defines the pluggable verification boundary used by the capability engine,
plus the unsigned base64-JSON codec the gateway ships with.

Token wire format (unsigned):
    base64( {"capabilities": [...], "iat": 1700000000, "exp": 1700003600, "issuer": "..."} )

The unsigned codec performs NO authentication: anyone can mint a token.
It is suitable only where the network path to the gateway is trusted.
Deployments that need authenticity select SignedTokenVerifier
(http_acp.credentials.signed), which implements the same protocol.

Decoding fails CLOSED: any failure produces a VerificationResult with an
error, which the engine turns into an InvalidCapability denial.
"""

from __future__ import annotations

__all__ = [
    "CredentialVerifier",
    "UnsignedTokenVerifier",
    "decode_capability_token",
    "encode_capability_token",
]

import base64
import binascii
import json
import time
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from http_acp.constants import DEFAULT_TOKEN_ISSUER, DEFAULT_TOKEN_LIFETIME_SECONDS
from http_acp.credentials.models import CapabilityGrant, VerificationResult
from http_acp.exceptions import CredentialDecodeError


@runtime_checkable
class CredentialVerifier(Protocol):
    """Protocol for capability token verifiers.

    Implementations turn a raw token into a grant, or report why they
    could not. External verifiers (JWKS-backed, KMS-backed) implement this
    protocol via adapters without inheriting from our code.

    Contract:
    - Never raise for bad input; report it via VerificationResult.error
    - Check expiry against the supplied ``now`` only, never read the clock
    - Safe for concurrent calls
    """

    def verify(self, raw: str, *, now: float) -> VerificationResult:
        """Verify a raw token.

        Args:
            raw: Token exactly as presented on the request.
            now: Unix time of the decision, read once by the engine.

        Returns:
            VerificationResult with either a grant or an error detail.
        """
        ...


def decode_capability_token(raw: str) -> CapabilityGrant:
    """Decode an unsigned capability token.

    Missing base64 padding is tolerated; characters outside the standard
    base64 alphabet are not.

    Args:
        raw: base64-encoded JSON claims.

    Returns:
        Decoded CapabilityGrant (expiry is NOT checked here).

    Raises:
        CredentialDecodeError: If the token is not base64, not UTF-8 JSON,
            not a JSON object, or fails claim validation.
    """
    token = raw.strip()
    if not token:
        raise CredentialDecodeError("Capability token is empty")

    try:
        payload = base64.b64decode(token + "=" * (-len(token) % 4), validate=True)
    except (binascii.Error, ValueError) as e:
        raise CredentialDecodeError(f"Capability token is not valid base64: {e}") from e

    try:
        claims = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        raise CredentialDecodeError(f"Capability token is not valid JSON: {e}") from e

    if not isinstance(claims, dict):
        raise CredentialDecodeError(f"Capability token decoded to {type(claims).__name__}, expected an object")

    try:
        return CapabilityGrant.model_validate(claims)
    except ValidationError as e:
        fields = ", ".join(".".join(str(x) for x in err["loc"]) or "token" for err in e.errors())
        raise CredentialDecodeError(f"Capability token has invalid claims: {fields}", detail="claims") from e


def encode_capability_token(
    capabilities: Sequence[str],
    *,
    expires_in: int | None = DEFAULT_TOKEN_LIFETIME_SECONDS,
    issuer: str | None = DEFAULT_TOKEN_ISSUER,
    now: float | None = None,
) -> str:
    """Mint an unsigned capability token.

    Development and test helper; production tokens come from an external
    issuer.

    Args:
        capabilities: Capabilities to grant.
        expires_in: Lifetime in seconds. None mints a token without expiry.
        issuer: Issuer name, or None to omit.
        now: Issue time (defaults to the current time).

    Returns:
        base64-encoded JSON token.
    """
    issued_at = int(now if now is not None else time.time())
    claims: dict[str, object] = {"capabilities": list(capabilities), "iat": issued_at}
    if expires_in is not None:
        claims["exp"] = issued_at + expires_in
    if issuer is not None:
        claims["issuer"] = issuer
    return base64.b64encode(json.dumps(claims).encode("utf-8")).decode("ascii")


class UnsignedTokenVerifier:
    """Verifier for unsigned base64-JSON tokens.

    Checks structure and expiry only. Malformed and expired tokens are both
    reported as errors; callers see a single InvalidCapability outcome, the
    detail is kept for audit logs.
    """

    def verify(self, raw: str, *, now: float) -> VerificationResult:
        """Decode the token and check its expiry against ``now``."""
        try:
            grant = decode_capability_token(raw)
        except CredentialDecodeError as e:
            return VerificationResult(None, e.detail)

        if grant.is_expired(now):
            return VerificationResult(None, "expired")
        return VerificationResult(grant, None)
