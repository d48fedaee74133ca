"""Pydantic model for decision audit events (audit/decisions.jsonl).

The 'time' field is Optional[str] = None because model instances are created
without timestamps; ISO8601Formatter adds the timestamp during serialization.
"""

from __future__ import annotations

__all__ = ["DecisionEvent"]

from typing import Literal

from pydantic import BaseModel, ConfigDict


class DecisionEvent(BaseModel):
    """One gate decision.

    Attributes:
        time: Added by the formatter at log time.
        event: Always "gate_decision".
        mode: Gate that decided ("consent" or "capability").
        decision: "allow" or "deny".
        reason: ReasonCode wire value.
        method: HTTP method.
        path: Request path (sanitized).
        required: Resolved required permissions.
        granted: Granted categories or capabilities.
        matched_rule: Rule entry that supplied the requirement.
        issuer: Token issuer when known.
        credential_present: Whether a capability token was presented.
        credential_fingerprint: sha256 prefix of the raw token (never the token).
        credential_error: Verifier failure detail ("malformed", "expired", ...).
        eval_ms: Decision time in milliseconds.
        request_id: Correlation ID.
    """

    time: str | None = None
    event: Literal["gate_decision"] = "gate_decision"
    mode: Literal["consent", "capability"]
    decision: Literal["allow", "deny"]
    reason: str
    method: str
    path: str
    required: list[str]
    granted: list[str] | None = None
    matched_rule: str | None = None
    issuer: str | None = None
    credential_present: bool | None = None
    credential_fingerprint: str | None = None
    credential_error: str | None = None
    eval_ms: float
    request_id: str | None = None

    model_config = ConfigDict(frozen=True)
