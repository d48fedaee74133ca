"""Policy Enforcement Point (PEP) - Gate middleware and rendering.

This module enforces verdicts from the PDP:
- Extracts credentials from requests
- Denies with 403 before anything is forwarded
- Annotates allowed requests and responses with gate headers
- Adds security headers and request IDs

Structure:
    extract.py            - Consent cookie and capability token extraction
    renderer.py           - Verdict to 403 response / forwarding headers
    middleware.py         - ConsentGateMiddleware, CapabilityGateMiddleware
    context_middleware.py - Request ID context var
    path_normalization.py - Dot-segment resolution before the gates
    security_headers.py   - Static security response headers
"""

from http_acp.pep.context_middleware import RequestContextMiddleware
from http_acp.pep.extract import extract_capability_token, extract_consent_cookie
from http_acp.pep.middleware import CapabilityGateMiddleware, ConsentGateMiddleware, get_forward_headers
from http_acp.pep.path_normalization import PathNormalizationMiddleware, normalize_path
from http_acp.pep.renderer import ForwardingMetadata, forwarding_metadata, render_denial
from http_acp.pep.security_headers import SecurityHeadersMiddleware

__all__ = [
    # Middleware
    "CapabilityGateMiddleware",
    "ConsentGateMiddleware",
    "PathNormalizationMiddleware",
    "RequestContextMiddleware",
    "SecurityHeadersMiddleware",
    # Extraction
    "extract_capability_token",
    "extract_consent_cookie",
    "get_forward_headers",
    "normalize_path",
    # Rendering
    "ForwardingMetadata",
    "forwarding_metadata",
    "render_denial",
]
