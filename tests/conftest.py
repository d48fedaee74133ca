"""Shared fixtures for http-acp tests."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import httpx
import pytest

from http_acp.credentials.capability import encode_capability_token
from http_acp.pdp.rules import RuleSet, create_default_rule_set
from http_acp.telemetry.audit.decision_logger import DecisionEventLogger
from http_acp.telemetry.system.system_logger import get_system_logger
from http_acp.utils.logging.iso_formatter import ISO8601Formatter

# Fixed decision time for deterministic expiry checks
NOW = 1_700_000_000.0


@pytest.fixture
def now() -> float:
    return NOW


@pytest.fixture
def clock() -> Callable[[], float]:
    """Clock that always returns NOW."""
    return lambda: NOW


@pytest.fixture
def rule_set() -> RuleSet:
    return create_default_rule_set()


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Factory for unsigned tokens issued at NOW."""

    def _make(*capabilities: str, expires_in: int | None = 3600, issuer: str | None = "test-issuer") -> str:
        return encode_capability_token(capabilities, expires_in=expires_in, issuer=issuer, now=NOW)

    return _make


@pytest.fixture
def decisions_path(tmp_path: Path) -> Path:
    return tmp_path / "audit" / "decisions.jsonl"


@pytest.fixture
def decision_logger(tmp_path: Path, decisions_path: Path) -> Iterator[DecisionEventLogger]:
    """Decision logger writing to a per-test file.

    Each test gets its own logger name so handlers never leak between tests.
    """
    decisions_path.parent.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(f"http-acp.test.decisions.{tmp_path.name}")
    logger.setLevel(logging.INFO)
    logger.propagate = False
    handler = logging.FileHandler(decisions_path, encoding="utf-8")
    handler.setFormatter(ISO8601Formatter())
    logger.addHandler(handler)
    yield DecisionEventLogger(logger=logger, system_logger=get_system_logger())
    logger.removeHandler(handler)
    handler.close()


@pytest.fixture
def read_jsonl() -> Callable[[Path], list[dict]]:
    """Read all JSON lines from a log file."""

    def _read(path: Path) -> list[dict]:
        if not path.exists():
            return []
        return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]

    return _read


class RecordingOrigin:
    """Stub origin for httpx.MockTransport that records requests."""

    def __init__(self, status_code: int = 200, body: bytes = b'{"ok": true}') -> None:
        self.status_code = status_code
        self.body = body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(
            self.status_code,
            content=self.body,
            headers={"content-type": "application/json", "x-origin": "stub"},
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def origin() -> RecordingOrigin:
    return RecordingOrigin()
