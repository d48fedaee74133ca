"""Request path normalization.

The gates match rules against the request path, and the forwarder replays
that path to the origin. Both must see the same canonical form, otherwise
`/public/%2e%2e/api/files/x` is matched as a public path while the HTTP
client resolves it to `/api/files/x` on the way out.

PathNormalizationMiddleware runs outside the gates and rewrites the ASGI
scope once:
- "." segments are dropped and ".." removes the previous segment
- ".." never climbs above the root
- Empty segments ("//") are collapsed
- A trailing slash survives

The scope path is already percent-decoded, so encoded dot segments are
handled like literal ones.
"""

from __future__ import annotations

__all__ = [
    "PathNormalizationMiddleware",
    "normalize_path",
    "quote_path",
]

from urllib.parse import quote

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from http_acp.telemetry.system.system_logger import get_system_logger

# RFC 3986 pchar minus percent; "%" in a decoded path is data, not an escape
_PATH_SAFE = "/:@!$&'()*+,;="

_system_logger = get_system_logger()


def normalize_path(path: str) -> str:
    """Resolve dot segments and collapse empty segments in a decoded path.

    Args:
        path: Percent-decoded request path.

    Returns:
        Absolute path with no ".", ".." or empty segments.
    """
    segments = path.split("/")
    output: list[str] = []
    for segment in segments:
        if segment == "..":
            if output:
                output.pop()
        elif segment not in ("", "."):
            output.append(segment)

    normalized = "/" + "/".join(output)
    if output and segments[-1] in ("", ".", ".."):
        normalized += "/"
    return normalized


def quote_path(path: str) -> str:
    """Percent-encode a decoded path for the wire."""
    return quote(path, safe=_PATH_SAFE)


class PathNormalizationMiddleware(BaseHTTPMiddleware):
    """Rewrites scope path and raw_path to the normalized form.

    Inner middleware and the route share this scope, so everything
    downstream decides on and forwards the normalized path.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.scope["path"]
        normalized = normalize_path(path)
        if normalized != path:
            _system_logger.debug(
                {
                    "event": "request_path_normalized",
                    "message": f"Request path normalized to {normalized!r}",
                    "component": "path_normalization",
                    "details": {"method": request.method, "original": path},
                }
            )
            request.scope["path"] = normalized
            request.scope["raw_path"] = quote_path(normalized).encode("ascii")
        return await call_next(request)
