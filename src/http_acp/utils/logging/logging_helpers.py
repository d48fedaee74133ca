"""Logging helper utilities.

Provides generic utilities for telemetry logging:
- Event serialization (audit event model_dump with consistent options)
- Sanitization (log injection prevention)
- Credential fingerprinting (never log raw tokens or cookies)
"""

from __future__ import annotations

__all__ = [
    "hash_sensitive_id",
    "sanitize_for_logging",
    "serialize_audit_event",
]

import hashlib
from typing import Any

from pydantic import BaseModel


def serialize_audit_event(event: BaseModel) -> dict[str, Any]:
    """Serialize a Pydantic event model for audit logging.

    - Excludes the 'time' field (added by ISO8601Formatter at log time)
    - Excludes None values for cleaner logs
    - Uses JSON mode so enums serialize as their values

    Args:
        event: Pydantic model instance (e.g., DecisionEvent).

    Returns:
        dict: Serialized event data ready for logging.
    """
    return event.model_dump(mode="json", exclude={"time"}, exclude_none=True)


def sanitize_for_logging(value: str) -> str:
    """Sanitize string values for safe JSONL logging.

    Prevents log injection by escaping newlines and control characters.
    Request paths are attacker-controlled and must pass through here.

    Args:
        value: String value to sanitize (e.g., request path).

    Returns:
        str: Sanitized string safe for JSONL logging.

    Example:
        >>> sanitize_for_logging("/api/x\\ny")
        '/api/x\\\\ny'
    """
    if not isinstance(value, str):
        return str(value)
    return value.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")


def hash_sensitive_id(value: str, prefix_length: int = 8) -> str:
    """Hash a sensitive value for logging while preserving correlation.

    Used for bearer tokens: the same token always yields the same
    fingerprint, but the token itself never reaches the logs.

    Args:
        value: The sensitive value to hash.
        prefix_length: Number of hex characters to keep (default: 8).

    Returns:
        str: Hashed value in format "sha256:<prefix>" (e.g., "sha256:a1b2c3d4").
    """
    if not value:
        return "sha256:empty"

    hash_bytes = hashlib.sha256(value.encode("utf-8")).hexdigest()
    return f"sha256:{hash_bytes[:prefix_length]}"
