"""Context variables for request tracing and correlation.

Provides an async-safe context variable carrying the request ID for the
request currently being decided. Set by the request context middleware,
read by the decision logger.
"""

from __future__ import annotations

__all__ = [
    "clear_request_id",
    "get_request_id",
    "request_id_var",
    "set_request_id",
]

from contextvars import ContextVar, Token

# Trace ID for correlating all logs within a single request
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
"""Request ID for correlating logs within a single request/response cycle."""


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return request_id_var.get()


def set_request_id(request_id: str) -> Token[str | None]:
    """Set the request ID for the current context.

    Returns:
        Token to restore the previous value via clear_request_id().
    """
    return request_id_var.set(request_id)


def clear_request_id(token: Token[str | None]) -> None:
    """Restore the request ID that was active before set_request_id()."""
    request_id_var.reset(token)
