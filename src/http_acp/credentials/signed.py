"""Signed capability tokens (JWT).

Validates capability tokens signed by an external issuer using PyJWT.
Implements the CredentialVerifier protocol, so it can replace the unsigned
codec without touching the policy engine.

Claims:
    capabilities: list of capability names (required)
    iat: issue time (required)
    exp: expiry (optional - a token without exp never expires)
    iss / issuer: issuer name (optional, "issuer" wins when both are set)

Expiry is checked against the engine-supplied ``now`` rather than by PyJWT,
so a single clock read serves the whole decision.
"""

from __future__ import annotations

__all__ = [
    "SignedTokenVerifier",
    "issue_signed_token",
]

import time
from collections.abc import Sequence
from typing import Any

import jwt
from pydantic import ValidationError

from http_acp.constants import DEFAULT_TOKEN_ISSUER, DEFAULT_TOKEN_LIFETIME_SECONDS
from http_acp.credentials.models import CapabilityGrant, VerificationResult

DEFAULT_ALGORITHMS: tuple[str, ...] = ("HS256",)


class SignedTokenVerifier:
    """Verifies JWT capability tokens.

    Features:
    - Signature verification with a shared secret (HS*) or public key (RS*/ES*)
    - Optional issuer and audience checks
    - Expiry checked against the decision time

    Usage:
        verifier = SignedTokenVerifier(secret, algorithms=("HS256",))
        result = verifier.verify(token, now=time.time())
    """

    def __init__(
        self,
        key: str | bytes,
        *,
        algorithms: Sequence[str] = DEFAULT_ALGORITHMS,
        issuer: str | None = None,
        audience: str | None = None,
    ) -> None:
        """Initialize signed token verifier.

        Args:
            key: HMAC secret or PEM-encoded public key.
            algorithms: Accepted signing algorithms. Never include "none".
            issuer: Required ``iss`` claim, or None to skip the check.
            audience: Required ``aud`` claim, or None to skip the check.

        Raises:
            ValueError: If no algorithms are given or "none" is listed.
        """
        if not algorithms:
            raise ValueError("At least one signing algorithm is required")
        if any(alg.lower() == "none" for alg in algorithms):
            raise ValueError("Unsigned JWTs (alg=none) are not accepted")
        self._key = key
        self._algorithms = list(algorithms)
        self._issuer = issuer
        self._audience = audience

    def verify(self, raw: str, *, now: float) -> VerificationResult:
        """Verify signature and claims, then check expiry against ``now``."""
        try:
            claims: dict[str, Any] = jwt.decode(
                raw,
                self._key,
                algorithms=self._algorithms,
                issuer=self._issuer,
                audience=self._audience,
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_aud": self._audience is not None,
                    "require": ["iat"],
                },
            )
        except jwt.InvalidSignatureError:
            return VerificationResult(None, "signature")
        except (jwt.InvalidIssuerError, jwt.InvalidAudienceError, jwt.MissingRequiredClaimError):
            return VerificationResult(None, "claims")
        except jwt.PyJWTError:
            return VerificationResult(None, "malformed")

        if "issuer" not in claims and "iss" in claims:
            claims["issuer"] = claims["iss"]

        try:
            grant = CapabilityGrant.model_validate(claims)
        except ValidationError:
            return VerificationResult(None, "claims")

        if grant.is_expired(now):
            return VerificationResult(None, "expired")
        return VerificationResult(grant, None)


def issue_signed_token(
    capabilities: Sequence[str],
    key: str | bytes,
    *,
    algorithm: str = "HS256",
    expires_in: int | None = DEFAULT_TOKEN_LIFETIME_SECONDS,
    issuer: str | None = DEFAULT_TOKEN_ISSUER,
    audience: str | None = None,
    now: float | None = None,
) -> str:
    """Mint a signed capability token.

    Development and test helper; production tokens come from an external
    signer service.

    Args:
        capabilities: Capabilities to grant.
        key: HMAC secret or PEM-encoded private key.
        algorithm: Signing algorithm.
        expires_in: Lifetime in seconds. None mints a token without expiry.
        issuer: ``iss`` claim, or None to omit.
        audience: ``aud`` claim, or None to omit.
        now: Issue time (defaults to the current time).

    Returns:
        Encoded JWT.
    """
    issued_at = int(now if now is not None else time.time())
    claims: dict[str, Any] = {"capabilities": list(capabilities), "iat": issued_at}
    if expires_in is not None:
        claims["exp"] = issued_at + expires_in
    if issuer is not None:
        claims["iss"] = issuer
    if audience is not None:
        claims["aud"] = audience
    return jwt.encode(claims, key, algorithm=algorithm)
