"""Gate enforcement middleware.

One Starlette middleware per gate. Each middleware:
1. Extracts the raw credential from the request
2. Asks its engine for a Verdict (timed)
3. Logs the verdict to the decision audit log
4. Denies with a 403 before calling downstream (nothing is forwarded)
5. Otherwise stashes forwarding request headers on request.state and adds
   the gate's response headers to the downstream response

Middleware order (outermost first):
    SecurityHeaders -> RequestContext -> PathNormalization -> ConsentGate
    -> CapabilityGate -> route

Gates read the scope path, which PathNormalization has already rewritten.

The forwarder reads request.state.forward_headers. request.state is backed
by the ASGI scope, so headers set here are visible to the route handler.
"""

from __future__ import annotations

__all__ = [
    "CapabilityGateMiddleware",
    "ConsentGateMiddleware",
    "FORWARD_HEADERS_STATE_KEY",
    "get_forward_headers",
]

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from http_acp.credentials.consent import decode_consent
from http_acp.exceptions import PolicyEnforcementFailure
from http_acp.pdp.decision import Verdict
from http_acp.pdp.engine import CapabilityPolicyEngine, ConsentPolicyEngine
from http_acp.pep.extract import extract_capability_token, extract_consent_cookie
from http_acp.pep.renderer import forwarding_metadata, render_denial
from http_acp.telemetry.audit.decision_logger import DecisionEventLogger
from http_acp.telemetry.system.system_logger import get_system_logger

FORWARD_HEADERS_STATE_KEY = "forward_headers"

_system_logger = get_system_logger()


def get_forward_headers(request: Request) -> dict[str, str]:
    """Headers the gates asked to add to the forwarded request."""
    return dict(getattr(request.state, FORWARD_HEADERS_STATE_KEY, {}))


def _add_forward_headers(request: Request, headers: dict[str, str]) -> None:
    if not headers:
        return
    merged = get_forward_headers(request)
    merged.update(headers)
    setattr(request.state, FORWARD_HEADERS_STATE_KEY, merged)


class _GateMiddleware(BaseHTTPMiddleware):
    """Shared enforcement flow. Subclasses supply _decide()."""

    gate_name: str = "gate"

    def __init__(self, app: ASGIApp, *, decision_logger: DecisionEventLogger) -> None:
        super().__init__(app)
        self.decision_logger = decision_logger

    def _decide(self, request: Request) -> tuple[Verdict, str | None]:
        """Return the verdict and the raw credential to fingerprint (if any)."""
        raise NotImplementedError

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Decide, log, then deny or forward.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            403 denial, or the downstream response with gate headers added.

        Raises:
            PolicyEnforcementFailure: If the engine cannot evaluate the request.
                The request is not forwarded.
        """
        start = time.perf_counter()
        try:
            verdict, credential = self._decide(request)
        except PolicyEnforcementFailure as e:
            _system_logger.critical(
                {
                    "event": "policy_enforcement_failure",
                    "message": str(e),
                    "component": self.gate_name,
                    "details": {"method": request.method, "path": request.scope["path"]},
                }
            )
            raise
        eval_ms = (time.perf_counter() - start) * 1000

        self.decision_logger.log(
            verdict,
            method=request.method,
            path=request.scope["path"],
            eval_ms=eval_ms,
            credential=credential,
        )

        if not verdict.allowed:
            return render_denial(verdict)

        metadata = forwarding_metadata(verdict)
        _add_forward_headers(request, metadata.request_headers)

        response = await call_next(request)
        for name, value in metadata.response_headers.items():
            response.headers[name] = value
        return response


class ConsentGateMiddleware(_GateMiddleware):
    """Enforces the consent cookie against the consent rule table."""

    gate_name = "consent_gate"

    def __init__(
        self,
        app: ASGIApp,
        *,
        engine: ConsentPolicyEngine,
        decision_logger: DecisionEventLogger,
    ) -> None:
        super().__init__(app, decision_logger=decision_logger)
        self.engine = engine

    def _decide(self, request: Request) -> tuple[Verdict, str | None]:
        consent = decode_consent(extract_consent_cookie(request))
        # Consent cookies are not bearer credentials; nothing to fingerprint
        return self.engine.decide(request.scope["path"], consent), None


class CapabilityGateMiddleware(_GateMiddleware):
    """Enforces capability tokens against the capability rule table."""

    gate_name = "capability_gate"

    def __init__(
        self,
        app: ASGIApp,
        *,
        engine: CapabilityPolicyEngine,
        decision_logger: DecisionEventLogger,
    ) -> None:
        super().__init__(app, decision_logger=decision_logger)
        self.engine = engine

    def _decide(self, request: Request) -> tuple[Verdict, str | None]:
        token = extract_capability_token(request)
        return self.engine.decide(request.method, request.scope["path"], token), token
