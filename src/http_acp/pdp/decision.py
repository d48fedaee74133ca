"""Verdict and reason codes for gate decisions.

These values define the possible outcomes of a decision, used by the
policy engines to communicate with the PEP and the renderer.
"""

from __future__ import annotations

__all__ = [
    "GateMode",
    "ReasonCode",
    "Verdict",
]

from dataclasses import dataclass
from enum import Enum
from typing import Any


class GateMode(str, Enum):
    """Which gate produced a verdict."""

    CONSENT = "consent"
    CAPABILITY = "capability"


class ReasonCode(str, Enum):
    """Decision outcome reason.

    Inherits from str for easy serialization and comparison. Values are
    the wire names used in response bodies and audit headers.

    Attributes:
        ALLOWED: Requirement satisfied, request may be forwarded.
        CONSENT_REQUIRED: Consent mode, a required category is not granted.
        NO_CAPABILITY: Capability mode, no credential for a non-default action.
        INVALID_CAPABILITY: Credential present but undecodable or expired.
        INSUFFICIENT_CAPABILITY: Credential valid but lacks the permission.
    """

    ALLOWED = "Allowed"
    CONSENT_REQUIRED = "ConsentRequired"
    NO_CAPABILITY = "NoCapability"
    INVALID_CAPABILITY = "InvalidCapability"
    INSUFFICIENT_CAPABILITY = "InsufficientCapability"


@dataclass(frozen=True, slots=True)
class Verdict:
    """The engine's decision for a single request.

    Produced once per request by a policy engine, consumed once by the
    renderer and the decision logger.

    Attributes:
        allowed: Whether the request may reach the origin.
        mode: Gate that produced the verdict.
        reason_code: ALLOWED or the denial reason.
        required_permissions: Permissions resolved from the rule table.
        granted_permissions: Consent categories or capabilities the caller holds.
            Empty when the credential was absent or undecodable.
        message: Human-readable explanation.
        issuer: Token issuer, when a capability grant was decoded.
        matched_rule: Id of the rule entry that supplied the requirement.
        credential_error: Verifier failure detail (audit only, never rendered).
        credential_presented: Whether a capability token was present.
    """

    allowed: bool
    mode: GateMode
    reason_code: ReasonCode
    required_permissions: tuple[str, ...]
    granted_permissions: tuple[str, ...] = ()
    message: str = ""
    issuer: str | None = None
    matched_rule: str | None = None
    credential_error: str | None = None
    credential_presented: bool = False

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready summary (used by `http-acp check`)."""
        return {
            "gate": self.mode.value,
            "allowed": self.allowed,
            "reason": self.reason_code.value,
            "message": self.message,
            "required": list(self.required_permissions),
            "granted": list(self.granted_permissions),
            "matched_rule": self.matched_rule,
            "issuer": self.issuer,
            "credential_error": self.credential_error,
        }
