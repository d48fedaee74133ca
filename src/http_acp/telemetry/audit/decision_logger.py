"""Decision logging for gate enforcement.

This module provides logging for gate verdicts (allow and deny).
Logs are written to <log_dir>/audit/decisions.jsonl.

Decision logs are ALWAYS enabled (not controlled by log_level).
Raw credentials are never logged; tokens are recorded as a short
sha256 fingerprint.
"""

from __future__ import annotations

__all__ = [
    "DecisionEventLogger",
    "create_decision_logger",
]

import logging
from pathlib import Path

from http_acp.constants import APP_NAME
from http_acp.pdp.decision import Verdict
from http_acp.telemetry.models.decision import DecisionEvent
from http_acp.utils.logging.logger_setup import setup_jsonl_logger
from http_acp.utils.logging.logging_context import get_request_id
from http_acp.utils.logging.logging_helpers import (
    hash_sensitive_id,
    sanitize_for_logging,
    serialize_audit_event,
)


def create_decision_logger(log_path: Path) -> logging.Logger:
    """Create logger for decision events.

    Args:
        log_path: Path to decisions.jsonl file.

    Returns:
        Configured logger instance.
    """
    return setup_jsonl_logger(f"{APP_NAME}.audit.decisions", log_path, log_level=logging.INFO)


class DecisionEventLogger:
    """Logs gate verdicts to decisions.jsonl.

    Denials are also reported on the system logger at INFO so operators
    see them on the console.
    """

    def __init__(self, *, logger: logging.Logger, system_logger: logging.Logger) -> None:
        """Initialize decision event logger.

        Args:
            logger: Primary logger for decision events (decisions.jsonl).
            system_logger: System logger for console visibility of denials.
        """
        self._logger = logger
        self._system_logger = system_logger

    def build_event(
        self,
        verdict: Verdict,
        *,
        method: str,
        path: str,
        eval_ms: float,
        credential: str | None = None,
    ) -> DecisionEvent:
        """Build the audit event for a verdict without logging it."""
        return DecisionEvent(
            mode=verdict.mode.value,
            decision="allow" if verdict.allowed else "deny",
            reason=verdict.reason_code.value,
            method=method,
            path=sanitize_for_logging(path),
            required=list(verdict.required_permissions),
            granted=list(verdict.granted_permissions),
            matched_rule=verdict.matched_rule,
            issuer=verdict.issuer,
            credential_present=verdict.credential_presented if verdict.mode.value == "capability" else None,
            credential_fingerprint=hash_sensitive_id(credential) if credential else None,
            credential_error=verdict.credential_error,
            eval_ms=round(eval_ms, 3),
            request_id=get_request_id(),
        )

    def log(
        self,
        verdict: Verdict,
        *,
        method: str,
        path: str,
        eval_ms: float,
        credential: str | None = None,
    ) -> DecisionEvent:
        """Log a verdict to decisions.jsonl.

        Args:
            verdict: The engine's verdict.
            method: HTTP method of the request.
            path: Request path.
            eval_ms: Decision time in milliseconds.
            credential: Raw capability token, fingerprinted before logging.

        Returns:
            The logged DecisionEvent.
        """
        event = self.build_event(verdict, method=method, path=path, eval_ms=eval_ms, credential=credential)
        self._logger.info(serialize_audit_event(event))

        if not verdict.allowed:
            self._system_logger.info(
                {
                    "event": "request_denied",
                    "message": f"Denied {method} {event.path}: {verdict.reason_code.value}",
                    "component": f"{verdict.mode.value}_gate",
                }
            )
        return event
