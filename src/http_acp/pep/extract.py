"""Credential extraction from incoming requests.

Pulls the raw credential each gate needs out of a Starlette request.
Extraction never decodes or validates; that is the job of the codecs in
http_acp.credentials.
"""

from __future__ import annotations

__all__ = [
    "extract_capability_token",
    "extract_consent_cookie",
]

from starlette.requests import Request

from http_acp.constants import CAPABILITY_HEADER, CAPABILITY_QUERY_PARAM, CONSENT_COOKIE_NAME


def extract_consent_cookie(request: Request) -> str | None:
    """Raw value of the consent cookie, or None if not sent."""
    return request.cookies.get(CONSENT_COOKIE_NAME)


def extract_capability_token(request: Request) -> str | None:
    """Raw capability token from the request.

    The header takes precedence over the query parameter when both are
    present. Empty values count as absent.

    Args:
        request: Incoming request.

    Returns:
        Token string, or None if the request carries no token.
    """
    token = request.headers.get(CAPABILITY_HEADER)
    if token:
        return token
    return request.query_params.get(CAPABILITY_QUERY_PARAM) or None
