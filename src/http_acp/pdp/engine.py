"""Policy engines - decide requests against rule tables.

Two stateless engines, one per gating style:

ConsentPolicyEngine.decide(path, consent):
1. Resolve required categories (prefix match, method ignored)
2. Allowed iff every required category is granted (empty list → allowed)
3. Denial reason: ConsentRequired

CapabilityPolicyEngine.decide(method, path, token):
1. Read the clock once
2. Resolve required capabilities (full-path glob + method)
3. No token → allowed only for GET on the table's default permission,
   otherwise NoCapability
4. Token → verify; any failure (malformed, expired, bad signature) →
   InvalidCapability
5. Allowed iff every required capability is granted, otherwise
   InsufficientCapability

Design principles:
1. A denial is a valid result, never an exception
2. Verifier exceptions are contained and become InvalidCapability
3. Unexpected internal errors raise PolicyEnforcementFailure (fail closed)
4. No I/O and no mutation; rule tables are passed in, never global
"""

from __future__ import annotations

__all__ = [
    "CapabilityPolicyEngine",
    "ConsentPolicyEngine",
]

import time
from collections.abc import Callable

from http_acp.constants import READ_METHODS
from http_acp.credentials.capability import CredentialVerifier, UnsignedTokenVerifier
from http_acp.credentials.models import ConsentState, VerificationResult
from http_acp.exceptions import PolicyEnforcementFailure, RuleTableError
from http_acp.pdp.decision import GateMode, ReasonCode, Verdict
from http_acp.pdp.rules import RuleTable
from http_acp.telemetry.system.system_logger import get_system_logger

_system_logger = get_system_logger()


def _require_kind(table: RuleTable, kind: str) -> None:
    if table.kind != kind:
        raise RuleTableError(f"{kind} engine requires a {kind} rule table, got '{table.kind}'")


class ConsentPolicyEngine:
    """Consent gate decision engine.

    Attributes:
        table: Consent rule table (prefix matching).
    """

    def __init__(self, table: RuleTable) -> None:
        """Initialize the consent engine.

        Args:
            table: Rule table with kind "consent".

        Raises:
            RuleTableError: If the table is not a consent table.
        """
        _require_kind(table, "consent")
        self.table = table

    def decide(self, path: str, consent: ConsentState) -> Verdict:
        """Decide a request against the caller's consent state.

        Args:
            path: Request path.
            consent: Decoded consent cookie (empty if absent or malformed).

        Returns:
            Verdict with reason Allowed or ConsentRequired.

        Raises:
            PolicyEnforcementFailure: If evaluation fails unexpectedly.
        """
        try:
            entry, required = self.table.resolve(None, path)
            allowed = all(consent.is_granted(category) for category in required)
        except Exception as e:
            raise PolicyEnforcementFailure(
                f"Consent evaluation failed unexpectedly: {type(e).__name__}: {e}"
            ) from e

        if allowed:
            return Verdict(
                allowed=True,
                mode=GateMode.CONSENT,
                reason_code=ReasonCode.ALLOWED,
                required_permissions=required,
                granted_permissions=consent.granted,
                message="Consent verified",
                matched_rule=entry.id,
            )

        return Verdict(
            allowed=False,
            mode=GateMode.CONSENT,
            reason_code=ReasonCode.CONSENT_REQUIRED,
            required_permissions=required,
            granted_permissions=consent.granted,
            message=f"This resource requires consent: {', '.join(required)}",
            matched_rule=entry.id,
        )


class CapabilityPolicyEngine:
    """Capability gate decision engine.

    Attributes:
        table: Capability rule table (full-path glob, method-aware).
        verifier: Token verifier (unsigned codec, JWT, cached, or external).
    """

    def __init__(
        self,
        table: RuleTable,
        verifier: CredentialVerifier | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the capability engine.

        Args:
            table: Rule table with kind "capability".
            verifier: Token verifier. Defaults to the unsigned codec.
            clock: Wall-clock source (unix seconds), injectable for tests.

        Raises:
            RuleTableError: If the table is not a capability table.
        """
        _require_kind(table, "capability")
        self.table = table
        self.verifier: CredentialVerifier = verifier if verifier is not None else UnsignedTokenVerifier()
        self._clock = clock

    def decide(self, method: str, path: str, token: str | None) -> Verdict:
        """Decide a request against a presented capability token.

        Args:
            method: HTTP method.
            path: Request path.
            token: Raw token from header or query parameter, None if absent.

        Returns:
            Verdict with reason Allowed, NoCapability, InvalidCapability or
            InsufficientCapability.

        Raises:
            PolicyEnforcementFailure: If rule resolution fails unexpectedly.
        """
        method = method.upper()
        now = self._clock()

        try:
            entry, required = self.table.resolve(method, path)
        except Exception as e:
            raise PolicyEnforcementFailure(
                f"Capability evaluation failed unexpectedly: {type(e).__name__}: {e}"
            ) from e

        if not token:
            if required == self.table.default_permissions and method in READ_METHODS:
                return Verdict(
                    allowed=True,
                    mode=GateMode.CAPABILITY,
                    reason_code=ReasonCode.ALLOWED,
                    required_permissions=required,
                    message="Default capability applies",
                    matched_rule=entry.id,
                )
            return Verdict(
                allowed=False,
                mode=GateMode.CAPABILITY,
                reason_code=ReasonCode.NO_CAPABILITY,
                required_permissions=required,
                message=f"Capability token required for {method} {path}",
                matched_rule=entry.id,
            )

        result = self._verify(token, now)
        if result.grant is None:
            return Verdict(
                allowed=False,
                mode=GateMode.CAPABILITY,
                reason_code=ReasonCode.INVALID_CAPABILITY,
                required_permissions=required,
                message="Capability token is invalid or expired",
                matched_rule=entry.id,
                credential_error=result.error,
                credential_presented=True,
            )

        grant = result.grant
        missing = [permission for permission in required if not grant.has(permission)]
        if missing:
            return Verdict(
                allowed=False,
                mode=GateMode.CAPABILITY,
                reason_code=ReasonCode.INSUFFICIENT_CAPABILITY,
                required_permissions=required,
                granted_permissions=grant.capabilities,
                message=f"Missing capability: {', '.join(missing)}",
                issuer=grant.issuer,
                matched_rule=entry.id,
                credential_presented=True,
            )

        return Verdict(
            allowed=True,
            mode=GateMode.CAPABILITY,
            reason_code=ReasonCode.ALLOWED,
            required_permissions=required,
            granted_permissions=grant.capabilities,
            message="Capability verified",
            issuer=grant.issuer,
            matched_rule=entry.id,
            credential_presented=True,
        )

    def _verify(self, token: str, now: float) -> VerificationResult:
        """Run the verifier, containing any exception it raises."""
        try:
            return self.verifier.verify(token, now=now)
        except Exception as e:
            _system_logger.warning(
                {
                    "event": "verifier_error",
                    "message": f"Capability verifier raised {type(e).__name__}, treating token as invalid",
                    "component": "capability_gate",
                }
            )
            return VerificationResult(None, "verifier_error")
