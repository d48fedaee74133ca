"""Integration tests for the gateway app and gate middleware.

The origin is an httpx.MockTransport stub, so every test exercises the
full chain: security headers -> request context -> consent gate ->
capability gate -> forwarder.

Tests use the AAA pattern (Arrange-Act-Assert) for clarity.
"""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route

from http_acp.app import create_app
from http_acp.config import AppConfig, GateConfig, LoggingConfig, OriginConfig
from http_acp.constants import SECURITY_HEADERS
from http_acp.credentials import UnsignedTokenVerifier, encode_consent
from http_acp.pdp.engine import CapabilityPolicyEngine
from http_acp.pep.middleware import CapabilityGateMiddleware

ORIGIN_URL = "http://origin.test"


def _config(tmp_path: Path, *, consent: bool = True, capability: bool = True, **kwargs) -> AppConfig:
    return AppConfig(
        origin=OriginConfig(url=ORIGIN_URL),
        gates=GateConfig(consent=consent, capability=capability),
        logging=LoggingConfig(log_dir=str(tmp_path)),
        **kwargs,
    )


def _consent_cookie(**categories: bool) -> dict[str, str]:
    return {"Cookie": f"user-consent={encode_consent(categories)}"}


@pytest.fixture
def make_client(tmp_path, origin, clock, decision_logger):
    """Build a TestClient for a gateway in front of the stub origin."""

    def _make(**gate_kwargs) -> TestClient:
        app = create_app(
            _config(tmp_path, **gate_kwargs),
            verifier=UnsignedTokenVerifier(),
            decision_logger=decision_logger,
            transport=origin.transport,
            clock=clock,
        )
        return TestClient(app)

    return _make


# ============================================================================
# Consent gate
# ============================================================================


class TestConsentGate:
    """Consent-only gateway."""

    def test_denial_never_reaches_origin(self, make_client, origin) -> None:
        # Arrange
        client = make_client(capability=False)

        # Act
        response = client.get("/api/analytics/events")

        # Assert
        assert response.status_code == 403
        assert response.json() == {
            "error": "ConsentRequired",
            "message": "This resource requires consent: analytics",
            "required_consent": ["analytics"],
            "current_consent": [],
        }
        assert response.headers["X-Consent-Required"] == "analytics"
        assert response.headers["X-Consent-Gate"] == "enforced"
        assert origin.requests == []

    def test_granted_consent_forwards_and_annotates(self, make_client, origin) -> None:
        client = make_client(capability=False)

        response = client.get("/api/analytics/events", headers=_consent_cookie(analytics=True))

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert response.headers["X-Consent-Level"] == "analytics"
        assert response.headers["X-Consent-Verified"] == "true"
        assert len(origin.requests) == 1

    def test_essential_paths_served_without_cookie(self, make_client, origin) -> None:
        client = make_client(capability=False)

        response = client.get("/about")

        assert response.status_code == 200
        assert response.headers["X-Consent-Level"] == "essential"

    def test_malformed_cookie_behaves_like_no_cookie(self, make_client) -> None:
        client = make_client(capability=False)

        denied = client.get("/api/ads/banner", headers={"Cookie": "user-consent=not-json"})
        served = client.get("/about", headers={"Cookie": "user-consent=not-json"})

        assert denied.status_code == 403
        assert denied.json()["current_consent"] == []
        assert served.status_code == 200

    def test_deeply_nested_cookie_behaves_like_no_cookie(self, make_client) -> None:
        client = make_client(capability=False)
        cookie = {"Cookie": "user-consent=" + "%5B" * 100_000}

        served = client.get("/about", headers=cookie)
        denied = client.get("/api/ads/banner", headers=cookie)

        assert served.status_code == 200
        assert denied.status_code == 403
        assert denied.json()["current_consent"] == []

    def test_consent_gate_ignores_method(self, make_client) -> None:
        client = make_client(capability=False)

        response = client.post("/api/ads/click")

        assert response.status_code == 403
        assert response.json()["required_consent"] == ["marketing"]


# ============================================================================
# Capability gate
# ============================================================================


class TestCapabilityGate:
    """Capability-only gateway."""

    def test_anonymous_get_on_public_path(self, make_client, origin) -> None:
        client = make_client(consent=False)

        response = client.get("/index.html")

        assert response.status_code == 200
        assert response.headers["X-Capability-Used"] == "public.read"
        assert response.headers["X-Capability-Granted-By"] == "unknown"
        assert response.headers["X-Capability-Gateway"] == "enforced"
        assert origin.requests[0].headers["X-Verified-Capability"] == "public.read"

    def test_anonymous_post_denied(self, make_client, origin) -> None:
        client = make_client(consent=False)

        response = client.post("/index.html", content=b"x")

        assert response.status_code == 403
        assert response.json()["error"] == "NoCapability"
        assert response.headers["WWW-Authenticate"] == 'Capability realm="API"'
        assert response.headers["X-Capability-Error"] == "NoCapability"
        assert origin.requests == []

    def test_header_token_forwards_verified_capability(self, make_client, origin, make_token) -> None:
        # Arrange
        client = make_client(consent=False)
        token = make_token("file.read")

        # Act
        response = client.get("/api/files/report.pdf", headers={"X-Capability-Token": token})

        # Assert
        assert response.status_code == 200
        assert response.headers["X-Capability-Used"] == "file.read"
        assert response.headers["X-Capability-Granted-By"] == "test-issuer"
        forwarded = origin.requests[0]
        assert forwarded.headers["X-Verified-Capability"] == "file.read"
        assert forwarded.headers["X-Capability-Granted-By"] == "test-issuer"
        assert forwarded.url.path == "/api/files/report.pdf"

    def test_query_parameter_token(self, make_client, origin, make_token) -> None:
        client = make_client(consent=False)

        response = client.delete("/api/files/a.txt", params={"capability": make_token("file.delete")})

        assert response.status_code == 200
        assert "capability=" in str(origin.requests[0].url)

    def test_header_wins_over_query_parameter(self, make_client, make_token) -> None:
        client = make_client(consent=False)

        response = client.delete(
            "/api/files/a.txt",
            params={"capability": make_token("file.delete")},
            headers={"X-Capability-Token": make_token("file.read")},
        )

        assert response.status_code == 403
        assert response.json()["error"] == "InsufficientCapability"

    def test_insufficient_capability_body(self, make_client, make_token) -> None:
        client = make_client(consent=False)

        response = client.delete("/api/files/a.txt", headers={"X-Capability-Token": make_token("file.read")})

        assert response.status_code == 403
        assert response.json() == {
            "error": "InsufficientCapability",
            "message": "Missing capability: file.delete",
            "required": ["file.delete"],
            "granted": ["file.read"],
            "hint": "Include X-Capability-Token header with valid capability token",
        }
        assert response.headers["X-Capability-Required"] == "file.delete"

    def test_invalid_token_body_has_no_granted(self, make_client) -> None:
        client = make_client(consent=False)

        response = client.get("/api/files/a.txt", headers={"X-Capability-Token": "garbage!"})

        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "InvalidCapability"
        assert "granted" not in body

    def test_path_without_trailing_segment_is_public(self, make_client) -> None:
        """/api/files is not covered by /api/files/*."""
        client = make_client(consent=False)

        response = client.get("/api/files")

        assert response.status_code == 200
        assert response.headers["X-Capability-Used"] == "public.read"


# ============================================================================
# Both gates
# ============================================================================


class TestBothGates:
    """Consent runs first, then capability; both must pass."""

    def test_consent_denial_short_circuits_capability(
        self, make_client, origin, decisions_path, read_jsonl
    ) -> None:
        client = make_client()

        response = client.post("/api/analytics/events")

        assert response.status_code == 403
        assert response.json()["error"] == "ConsentRequired"
        assert [e["mode"] for e in read_jsonl(decisions_path)] == ["consent"]
        assert origin.requests == []

    def test_capability_denial_after_consent(self, make_client, origin) -> None:
        client = make_client()

        response = client.post("/api/analytics/events", headers=_consent_cookie(analytics=True))

        assert response.status_code == 403
        assert response.json()["error"] == "NoCapability"
        assert origin.requests == []

    def test_both_pass(self, make_client, origin, make_token, decisions_path, read_jsonl) -> None:
        client = make_client()
        headers = {**_consent_cookie(analytics=True), "X-Capability-Token": make_token("analytics.write")}

        response = client.post("/api/analytics/events", headers=headers, content=b'{"e": 1}')

        assert response.status_code == 200
        assert response.headers["X-Consent-Level"] == "analytics"
        assert response.headers["X-Capability-Used"] == "analytics.write"
        assert origin.requests[0].content == b'{"e": 1}'
        events = read_jsonl(decisions_path)
        assert [(e["mode"], e["decision"]) for e in events] == [("consent", "allow"), ("capability", "allow")]


# ============================================================================
# Path normalization
# ============================================================================


class TestPathNormalization:
    """Gates decide on the same path the origin receives."""

    def test_encoded_dot_segments_cannot_reach_protected_files(self, make_client, origin) -> None:
        # Arrange
        client = make_client(consent=False)

        # Act
        response = client.get("/public/%2e%2e/api/files/secret.pdf")

        # Assert
        assert response.status_code == 403
        assert response.json()["error"] == "NoCapability"
        assert origin.requests == []

    def test_encoded_dot_segments_cannot_skip_consent(self, make_client, origin) -> None:
        client = make_client(capability=False)

        response = client.get("/about/%2e%2e/api/ads/track")

        assert response.status_code == 403
        assert response.json()["required_consent"] == ["marketing"]
        assert origin.requests == []

    def test_allowed_request_forwards_normalized_path(
        self, make_client, origin, make_token, decisions_path, read_jsonl
    ) -> None:
        client = make_client(consent=False)

        response = client.get(
            "/public/./%2e%2e/api//files/secret.pdf",
            params={"v": "1"},
            headers={"X-Capability-Token": make_token("file.read")},
        )

        assert response.status_code == 200
        assert response.headers["X-Capability-Used"] == "file.read"
        assert origin.requests[0].url.path == "/api/files/secret.pdf"
        assert origin.requests[0].url.query == b"v=1"
        assert read_jsonl(decisions_path)[0]["path"] == "/api/files/secret.pdf"

    def test_percent_in_path_is_not_decoded_twice(self, make_client, origin) -> None:
        """A double-encoded dot segment reaches the origin still encoded."""
        client = make_client(consent=False)

        response = client.get("/public/%252e%252e/api/files/secret.pdf")

        assert response.status_code == 200
        assert response.headers["X-Capability-Used"] == "public.read"
        assert origin.requests[0].url.raw_path == b"/public/%252e%252e/api/files/secret.pdf"

    def test_normalization_runs_without_gates(self, make_client, origin) -> None:
        client = make_client(consent=False, capability=False)

        client.get("/a/%2e%2e/b")

        assert origin.requests[0].url.path == "/b"


# ============================================================================
# Ambient behavior
# ============================================================================


class TestAmbientHeaders:
    """Security headers and request IDs."""

    def test_security_headers_on_allow_and_deny(self, make_client) -> None:
        client = make_client()

        for response in (client.get("/about"), client.get("/api/ads")):
            for name, value in SECURITY_HEADERS.items():
                assert response.headers[name] == value
            assert response.headers["X-Secured-By"] == "http-acp"

    def test_security_headers_can_be_disabled(self, tmp_path, origin, decision_logger) -> None:
        app = create_app(
            _config(tmp_path, security_headers=False),
            decision_logger=decision_logger,
            transport=origin.transport,
        )

        response = TestClient(app).get("/about")

        assert "X-Frame-Options" not in response.headers

    def test_request_id_echoed_and_logged(self, make_client, decisions_path, read_jsonl) -> None:
        client = make_client()

        response = client.get("/about", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
        assert {e["request_id"] for e in read_jsonl(decisions_path)} == {"req-123"}

    def test_request_id_generated_when_missing_or_unsafe(self, make_client) -> None:
        client = make_client()

        response = client.get("/about", headers={"X-Request-ID": "bad id with spaces"})

        assert response.headers["X-Request-ID"] != "bad id with spaces"
        assert len(response.headers["X-Request-ID"]) == 32

    def test_token_never_logged(self, make_client, make_token, decisions_path) -> None:
        client = make_client(consent=False)
        token = make_token("file.read")

        client.get("/api/files/x", headers={"X-Capability-Token": token})

        assert token not in decisions_path.read_text()

    def test_default_decision_log_location(self, tmp_path, origin) -> None:
        """Without an injected logger, decisions go to <log_dir>/audit/decisions.jsonl."""
        app = create_app(_config(tmp_path), transport=origin.transport)

        TestClient(app).get("/about")

        assert (tmp_path / "audit" / "decisions.jsonl").exists()


class TestOriginPassThrough:
    """Origin responses pass through unchanged."""

    def test_status_and_body_preserved(self, tmp_path, decision_logger) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, content=b"missing", headers={"content-type": "text/plain"})

        app = create_app(_config(tmp_path), decision_logger=decision_logger, transport=httpx.MockTransport(handler))

        response = TestClient(app).get("/nope")

        assert response.status_code == 404
        assert response.text == "missing"
        assert response.headers["X-Capability-Used"] == "public.read"

    def test_origin_unreachable_is_502(self, tmp_path, decision_logger) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        app = create_app(_config(tmp_path), decision_logger=decision_logger, transport=httpx.MockTransport(handler))

        response = TestClient(app).get("/about")

        assert response.status_code == 502
        assert response.json()["error"] == "OriginError"

    def test_origin_timeout_is_504(self, tmp_path, decision_logger) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        app = create_app(_config(tmp_path), decision_logger=decision_logger, transport=httpx.MockTransport(handler))

        response = TestClient(app).get("/about")

        assert response.status_code == 504

    def test_hop_by_hop_headers_not_forwarded(self, make_client, origin) -> None:
        client = make_client()

        client.get("/about", headers={"Connection": "keep-alive", "X-Custom": "kept"})

        forwarded = origin.requests[0]
        assert forwarded.headers["X-Custom"] == "kept"
        assert forwarded.headers["host"] == "origin.test"


class TestFailClosed:
    """Engine failures never forward the request."""

    def test_policy_failure_returns_500_without_forwarding(self, decision_logger) -> None:
        # Arrange
        reached: list[str] = []

        class BrokenTable:
            kind = "capability"

            def resolve(self, method, path):
                raise RuntimeError("corrupt table")

        async def endpoint(request: Request) -> PlainTextResponse:
            reached.append(request.url.path)
            return PlainTextResponse("origin")

        app = Starlette(routes=[Route("/{path:path}", endpoint)])
        app.add_middleware(
            CapabilityGateMiddleware,
            engine=CapabilityPolicyEngine(BrokenTable()),  # type: ignore[arg-type]
            decision_logger=decision_logger,
        )

        # Act
        response = TestClient(app, raise_server_exceptions=False).get("/x")

        # Assert
        assert response.status_code == 500
        assert reached == []
