"""Consent cookie decoding.

The consent cookie carries a percent-encoded JSON object mapping consent
categories to booleans, e.g. ``%7B%22analytics%22%3Atrue%7D``.

Decoding fails OPEN to an empty consent state: a malformed cookie grants
nothing beyond the essential default, and never errors the request.
"""

from __future__ import annotations

__all__ = [
    "decode_consent",
    "encode_consent",
]

import json
from collections.abc import Mapping
from urllib.parse import quote, unquote

from http_acp.credentials.models import ConsentState
from http_acp.telemetry.system.system_logger import get_system_logger

_system_logger = get_system_logger()


def decode_consent(raw: str | None) -> ConsentState:
    """Decode a consent cookie value.

    Args:
        raw: Cookie value as sent by the client, or None if absent.

    Returns:
        ConsentState with the categories recorded as ``true``.
        Empty state if the cookie is absent, not JSON, or not a JSON object.
    """
    if not raw:
        return ConsentState()

    try:
        data = json.loads(unquote(raw))
    except (ValueError, RecursionError):
        # JSONDecodeError is a ValueError; deeply nested arrays overflow the decoder
        _system_logger.debug(
            {
                "event": "consent_cookie_malformed",
                "message": "Consent cookie is not valid JSON, treating as no consent",
            }
        )
        return ConsentState()

    if not isinstance(data, dict):
        _system_logger.debug(
            {
                "event": "consent_cookie_malformed",
                "message": f"Consent cookie decoded to {type(data).__name__}, treating as no consent",
            }
        )
        return ConsentState()

    return ConsentState.from_mapping(data)


def encode_consent(categories: Mapping[str, bool]) -> str:
    """Encode a consent mapping as a cookie value.

    Counterpart of decode_consent, used by clients and tests.

    Args:
        categories: ``{category: granted}`` mapping.

    Returns:
        Percent-encoded JSON suitable for the consent cookie.
    """
    return quote(json.dumps(dict(categories), separators=(",", ":")), safe="")
