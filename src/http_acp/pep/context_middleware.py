"""Request context middleware.

Sets the request ID context var for the lifetime of a request so every
decision logged while handling it carries the same ID.

- An incoming X-Request-ID is honoured if it looks sane (printable, short)
- Otherwise a fresh ID is generated
- The ID is echoed back on the response
- The context var is restored in the finally block
"""

from __future__ import annotations

__all__ = [
    "RequestContextMiddleware",
    "resolve_request_id",
]

import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from http_acp.constants import REQUEST_ID_HEADER
from http_acp.utils.logging.logging_context import clear_request_id, set_request_id

# Client-supplied IDs end up in logs; keep them boring
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_request_id(incoming: str | None) -> str:
    """Use the client's request ID if well-formed, else generate one."""
    if incoming and _REQUEST_ID_PATTERN.match(incoming):
        return incoming
    return uuid.uuid4().hex


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Outer middleware that manages the request ID context var."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        token = set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_id(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
