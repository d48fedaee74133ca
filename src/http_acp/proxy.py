"""Origin forwarding for allowed requests.

OriginForwarder is a thin httpx pass-through: it replays the incoming
request against the configured origin and returns the origin's status,
headers and body unchanged apart from hop-by-hop headers.

Gate headers stashed on request.state by the enforcement middleware are
added to the outgoing request. Origin failures never raise: they become
502/504 JSON responses and a warning on the system logger.
"""

from __future__ import annotations

__all__ = [
    "OriginForwarder",
    "error_response",
]

import time
from typing import Any

import httpx
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from http_acp.constants import DEFAULT_ORIGIN_TIMEOUT_SECONDS, HOP_BY_HOP_HEADERS
from http_acp.pep.middleware import get_forward_headers
from http_acp.pep.path_normalization import quote_path
from http_acp.telemetry.system.system_logger import get_system_logger

_system_logger = get_system_logger()

# httpx hands back decoded bodies, so the origin's encoding no longer applies
_STRIP_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {"content-encoding"}


def error_response(status_code: int, message: str) -> JSONResponse:
    """JSON error body for gateway-side failures."""
    return JSONResponse(status_code=status_code, content={"error": "OriginError", "message": message})


class OriginForwarder:
    """Forwards requests to a single origin.

    Usage:
        forwarder = OriginForwarder("http://localhost:8080")
        response = await forwarder.forward(request)
        await forwarder.aclose()
    """

    def __init__(
        self,
        origin_url: str,
        *,
        timeout_seconds: float = DEFAULT_ORIGIN_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize forwarder.

        Args:
            origin_url: Origin base URL.
            timeout_seconds: Per-request timeout.
            transport: Custom httpx transport (tests use httpx.MockTransport).
        """
        self.origin_url = origin_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.origin_url,
            timeout=timeout_seconds,
            transport=transport,
            follow_redirects=False,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _build_headers(self, request: Request) -> dict[str, str]:
        headers = {k: v for k, v in request.headers.items() if k.lower() not in HOP_BY_HOP_HEADERS}
        headers.update(get_forward_headers(request))
        return headers

    async def forward(self, request: Request) -> Response:
        """Replay a request against the origin.

        Args:
            request: Allowed incoming request.

        Returns:
            Origin response, or a 502/504 JSONResponse if the origin failed.
        """
        start_time = time.monotonic()
        # Re-encode the decoded scope path so a literal "%" is not decoded twice
        target = quote_path(request.scope["path"])
        query = request.scope.get("query_string", b"")
        if query:
            target = f"{target}?{query.decode('latin-1')}"

        try:
            body = await request.body()
            upstream = await self._client.request(
                method=request.method,
                url=target,
                content=body or None,
                headers=self._build_headers(request),
            )
        except httpx.TimeoutException:
            self._log_failure("origin_timeout", request, start_time)
            return error_response(504, "Origin request timed out")
        except httpx.HTTPError as e:
            self._log_failure("origin_unreachable", request, start_time, error=e)
            return error_response(502, "Origin request failed")

        response = Response(content=upstream.content, status_code=upstream.status_code)
        # multi_items keeps repeated headers such as Set-Cookie separate
        for name, value in upstream.headers.multi_items():
            if name.lower() not in _STRIP_RESPONSE_HEADERS:
                response.headers.append(name, value)
        return response

    def _log_failure(
        self,
        event: str,
        request: Request,
        start_time: float,
        error: Exception | None = None,
    ) -> None:
        details: dict[str, Any] = {
            "origin": self.origin_url,
            "method": request.method,
            "duration_ms": int((time.monotonic() - start_time) * 1000),
        }
        if error is not None:
            details["error_type"] = type(error).__name__
        _system_logger.warning(
            {
                "event": event,
                "message": f"Origin failed for {request.method} {request.url.path}",
                "component": "origin_forwarder",
                "details": details,
            }
        )
