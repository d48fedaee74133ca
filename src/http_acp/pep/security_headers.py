"""Static security response headers.

Copies a fixed table of browser security headers onto every response,
denials included, and marks the response as handled by the gateway.
Headers already set by the origin are overwritten.
"""

from __future__ import annotations

__all__ = ["SecurityHeadersMiddleware"]

from collections.abc import Mapping

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from http_acp.constants import SECURED_BY_HEADER, SECURITY_HEADERS


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Outermost middleware adding the security header table."""

    def __init__(self, app: ASGIApp, headers: Mapping[str, str] | None = None) -> None:
        """Initialize middleware.

        Args:
            app: ASGI application.
            headers: Header table. Defaults to SECURITY_HEADERS.
        """
        super().__init__(app)
        self.headers = dict(SECURITY_HEADERS if headers is None else headers)
        name, value = SECURED_BY_HEADER
        self.headers[name] = value

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers[name] = value
        return response
