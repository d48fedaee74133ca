"""Decision rendering - verdicts to HTTP responses and headers.

Turns a Verdict into either a 403 denial response or the headers to add
when the request is forwarded. Pure functions: no network I/O and no
logging.

Denial bodies:
    consent:    {error, message, required_consent, current_consent}
    capability: {error, message, required, granted?, hint}
                (granted only when the token decoded but fell short)
"""

from __future__ import annotations

__all__ = [
    "ForwardingMetadata",
    "forwarding_metadata",
    "render_denial",
]

from typing import Any, NamedTuple

from starlette.responses import JSONResponse

from http_acp.constants import CAPABILITY_HINT, CAPABILITY_REALM
from http_acp.pdp.decision import GateMode, ReasonCode, Verdict

DENIAL_STATUS_CODE = 403


class ForwardingMetadata(NamedTuple):
    """Headers attached to an allowed request.

    Attributes:
        request_headers: Added to the request sent to the origin.
        response_headers: Added to the origin's response.
    """

    request_headers: dict[str, str]
    response_headers: dict[str, str]


def _join(permissions: tuple[str, ...]) -> str:
    return ",".join(permissions)


def render_denial(verdict: Verdict) -> JSONResponse:
    """Render a denial verdict as a 403 JSON response.

    Args:
        verdict: A verdict with allowed=False.

    Returns:
        JSONResponse with status 403 and the gate's denial headers.

    Raises:
        ValueError: If the verdict allows the request.
    """
    if verdict.allowed:
        raise ValueError("Cannot render an allowed verdict as a denial")

    if verdict.mode is GateMode.CONSENT:
        return JSONResponse(
            status_code=DENIAL_STATUS_CODE,
            content={
                "error": verdict.reason_code.value,
                "message": verdict.message,
                "required_consent": list(verdict.required_permissions),
                "current_consent": list(verdict.granted_permissions),
            },
            headers={
                "X-Consent-Required": _join(verdict.required_permissions),
                "X-Consent-Gate": "enforced",
            },
        )

    body: dict[str, Any] = {
        "error": verdict.reason_code.value,
        "message": verdict.message,
        "required": list(verdict.required_permissions),
    }
    if verdict.reason_code is ReasonCode.INSUFFICIENT_CAPABILITY:
        body["granted"] = list(verdict.granted_permissions)
    body["hint"] = CAPABILITY_HINT

    return JSONResponse(
        status_code=DENIAL_STATUS_CODE,
        content=body,
        headers={
            "X-Capability-Error": verdict.reason_code.value,
            "X-Capability-Required": _join(verdict.required_permissions),
            "X-Capability-Gateway": "enforced",
            "WWW-Authenticate": f'Capability realm="{CAPABILITY_REALM}"',
        },
    )


def forwarding_metadata(verdict: Verdict) -> ForwardingMetadata:
    """Headers to attach when forwarding an allowed request.

    Args:
        verdict: A verdict with allowed=True.

    Returns:
        ForwardingMetadata for the verdict's gate.

    Raises:
        ValueError: If the verdict denies the request.
    """
    if not verdict.allowed:
        raise ValueError("Cannot forward a denied verdict")

    required = _join(verdict.required_permissions)

    if verdict.mode is GateMode.CONSENT:
        return ForwardingMetadata(
            request_headers={},
            response_headers={
                "X-Consent-Level": required,
                "X-Consent-Verified": "true",
            },
        )

    granted_by = verdict.issuer or "unknown"
    return ForwardingMetadata(
        request_headers={
            "X-Verified-Capability": required,
            "X-Capability-Granted-By": granted_by,
        },
        response_headers={
            "X-Capability-Used": required,
            "X-Capability-Granted-By": granted_by,
            "X-Capability-Gateway": "enforced",
        },
    )
