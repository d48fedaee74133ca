"""Custom exceptions for http-acp.

This module contains all custom exceptions used throughout the package.
Exceptions are organized into two categories:

Recoverable Errors (gateway continues):
    - CredentialDecodeError: A presented credential could not be decoded.
      Always converted into a verdict by the engine, never sent to clients.

Critical Failures (gateway must not serve traffic):
    - CriticalSecurityFailure: Base for unrecoverable security failures
    - PolicyEnforcementFailure: Policy engine cannot evaluate reliably
    - ConfigurationError: Config file missing or invalid
    - RuleTableError: Rule table violates its construction invariants

Denials are NOT exceptions. ConsentRequired, NoCapability, InvalidCapability
and InsufficientCapability are ReasonCode values carried on a Verdict.

Usage:
    from http_acp.exceptions import PolicyEnforcementFailure, RuleTableError
"""

from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "CredentialDecodeError",
    "CriticalSecurityFailure",
    "PolicyEnforcementFailure",
    "RuleTableError",
]


# =============================================================================
# Recoverable Errors
# =============================================================================


class CredentialDecodeError(ValueError):
    """A credential could not be decoded or failed validity checks.

    Attributes:
        detail: Machine-readable failure category for audit logs
            ("malformed", "expired", "signature", "claims").
    """

    def __init__(self, message: str, *, detail: str = "malformed") -> None:
        super().__init__(message)
        self.detail = detail


# =============================================================================
# Critical Failures (exit codes are reserved for operators)
# =============================================================================


class CriticalSecurityFailure(Exception):
    """Base exception for failures that make the gateway unsafe to run.

    These exceptions should not be caught and handled - they signal that
    decisions cannot be trusted and the gateway must stop serving traffic.

    Attributes:
        exit_code: Process exit code.
        failure_type: Category string for logging.
    """

    exit_code: int = 1
    failure_type: str = "unknown"


class PolicyEnforcementFailure(CriticalSecurityFailure):
    """Policy enforcement mechanism has failed.

    Raised when the policy engine hits an unexpected error while deciding
    a request. The request is never forwarded.

    Exit code 11 indicates policy enforcement failure.
    """

    exit_code = 11
    failure_type = "policy_failure"


class ConfigurationError(CriticalSecurityFailure):
    """Configuration is invalid or incomplete.

    Raised when:
    - Config file does not exist
    - Config file contains invalid JSON
    - Config file fails Pydantic validation
    - Signed token verification is selected without key material

    Exit code 16 indicates configuration failure.
    """

    exit_code = 16
    failure_type = "configuration_failure"


class RuleTableError(CriticalSecurityFailure):
    """Rule table is structurally invalid.

    Raised at startup when a table lacks its catch-all entry, declares more
    than one, or places it anywhere but last.

    Exit code 17 indicates an invalid rule table.
    """

    exit_code = 17
    failure_type = "rule_table_failure"
