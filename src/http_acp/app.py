"""Gateway application factory.

Builds the FastAPI app that sits in front of the origin:

    SecurityHeaders -> RequestContext -> PathNormalization -> ConsentGate
    -> CapabilityGate -> forward

Each gate is included only when enabled in config. Every route is a single
catch-all that forwards to the origin; the gates decide before it runs.
Path normalization always runs, so the path a gate decides on is the path
the origin receives.

Usage:
    uvicorn "http_acp.app:create_app_from_config_file" --factory
"""

from __future__ import annotations

__all__ = [
    "build_verifier",
    "create_app",
    "create_app_from_config_file",
    "load_rule_set",
]

import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response

from http_acp import __version__
from http_acp.config import AppConfig, TokenConfig
from http_acp.credentials.cache import CachingVerifier
from http_acp.credentials.capability import CredentialVerifier, UnsignedTokenVerifier
from http_acp.credentials.signed import SignedTokenVerifier
from http_acp.exceptions import ConfigurationError
from http_acp.pdp.engine import CapabilityPolicyEngine, ConsentPolicyEngine
from http_acp.pdp.rules import RuleSet, create_default_rule_set
from http_acp.pep.context_middleware import RequestContextMiddleware
from http_acp.pep.middleware import CapabilityGateMiddleware, ConsentGateMiddleware
from http_acp.pep.path_normalization import PathNormalizationMiddleware
from http_acp.pep.security_headers import SecurityHeadersMiddleware
from http_acp.proxy import OriginForwarder
from http_acp.telemetry.audit.decision_logger import DecisionEventLogger, create_decision_logger
from http_acp.telemetry.system.system_logger import get_system_logger
from http_acp.utils.rules import load_rules

FORWARDED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

_system_logger = get_system_logger()


def load_rule_set(config: AppConfig) -> RuleSet:
    """Load the configured rules file, or the built-in tables.

    Raises:
        ConfigurationError: If the rules file is missing or invalid.
        RuleTableError: If a table violates the catch-all invariant.
    """
    rules_path = config.rules_file()
    if rules_path is None:
        return create_default_rule_set()
    try:
        return load_rules(rules_path)
    except (FileNotFoundError, ValueError) as e:
        raise ConfigurationError(str(e)) from e


def build_verifier(tokens: TokenConfig) -> CredentialVerifier:
    """Build the capability token verifier from config.

    Args:
        tokens: Token verification settings.

    Returns:
        Unsigned or JWT verifier, wrapped in a cache when cache_ttl_seconds > 0.

    Raises:
        ConfigurationError: If signed verification has no key material.
    """
    verifier: CredentialVerifier
    if tokens.verifier == "signed":
        verifier = SignedTokenVerifier(
            tokens.load_key(),
            algorithms=tokens.algorithms,
            issuer=tokens.issuer,
            audience=tokens.audience,
        )
    else:
        _system_logger.warning(
            {
                "event": "unsigned_tokens_enabled",
                "message": "Capability tokens are accepted without signatures; "
                "set tokens.verifier to 'signed' for production",
                "component": "capability_gate",
            }
        )
        verifier = UnsignedTokenVerifier()

    if tokens.cache_ttl_seconds > 0:
        verifier = CachingVerifier(
            verifier,
            ttl_seconds=tokens.cache_ttl_seconds,
            max_entries=tokens.cache_max_entries,
        )
    return verifier


def create_app(
    config: AppConfig,
    *,
    rules: RuleSet | None = None,
    verifier: CredentialVerifier | None = None,
    decision_logger: DecisionEventLogger | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Create the gateway application.

    Args:
        config: Application configuration.
        rules: Rule tables. Defaults to load_rule_set(config).
        verifier: Token verifier. Defaults to build_verifier(config.tokens).
        decision_logger: Audit logger. Defaults to <log_dir>/audit/decisions.jsonl.
        transport: httpx transport for the origin client (tests).
        clock: Wall-clock source for capability decisions.

    Returns:
        Configured FastAPI application.

    Raises:
        ConfigurationError: If rules or token settings are unusable.
        RuleTableError: If a rule table is structurally invalid.
    """
    rule_set = rules if rules is not None else load_rule_set(config)

    if decision_logger is None:
        decision_logger = DecisionEventLogger(
            logger=create_decision_logger(config.logging.decisions_path),
            system_logger=_system_logger,
        )

    forwarder = OriginForwarder(
        config.origin.url,
        timeout_seconds=config.origin.timeout_seconds,
        transport=transport,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await forwarder.aclose()

    app = FastAPI(
        title="http-acp",
        description="Consent and capability gateway",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.forwarder = forwarder
    app.state.rules = rule_set

    # Starlette runs the last added middleware first, so add innermost first
    if config.gates.capability:
        capability_engine = CapabilityPolicyEngine(
            rule_set.capability,
            verifier if verifier is not None else build_verifier(config.tokens),
            clock=clock,
        )
        app.add_middleware(CapabilityGateMiddleware, engine=capability_engine, decision_logger=decision_logger)

    if config.gates.consent:
        consent_engine = ConsentPolicyEngine(rule_set.consent)
        app.add_middleware(ConsentGateMiddleware, engine=consent_engine, decision_logger=decision_logger)

    if not (config.gates.consent or config.gates.capability):
        _system_logger.warning(
            {
                "event": "no_gates_enabled",
                "message": "Both gates are disabled; all requests are forwarded unchecked",
                "component": "app",
            }
        )

    app.add_middleware(PathNormalizationMiddleware)
    app.add_middleware(RequestContextMiddleware)

    if config.security_headers:
        app.add_middleware(SecurityHeadersMiddleware)

    @app.api_route("/{full_path:path}", methods=FORWARDED_METHODS, include_in_schema=False)
    async def forward(request: Request) -> Response:
        return await forwarder.forward(request)

    return app


def create_app_from_config_file() -> FastAPI:
    """uvicorn factory: load the default config file and build the app."""
    return create_app(AppConfig.load_from_file())
