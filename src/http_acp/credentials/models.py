"""Structured claim records decoded from request credentials.

Both records are request-scoped: built fresh from the request, read by the
engine, then discarded. Neither is ever mutated or persisted.
"""

from __future__ import annotations

__all__ = [
    "CapabilityGrant",
    "ConsentState",
    "VerificationResult",
]

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from http_acp.constants import CONSENT_ESSENTIAL


@dataclass(frozen=True, slots=True)
class ConsentState:
    """Consent categories the caller has explicitly granted.

    Apart from essential, only categories recorded with the literal boolean
    ``true`` count as granted. A missing key, ``false``, or any non-boolean value is treated
    as not granted.

    Attributes:
        granted: Granted categories in cookie order.
    """

    granted: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ConsentState:
        """Build from a decoded ``{category: bool}`` mapping."""
        return cls(granted=tuple(str(key) for key, value in data.items() if value is True))

    def is_granted(self, category: str) -> bool:
        """Check a single category.

        Essential is required for the site to function and cannot be
        withheld. Any other category counts only if recorded as true.
        """
        return category == CONSENT_ESSENTIAL or category in self.granted


class CapabilityGrant(BaseModel):
    """Capabilities carried by a bearer token.

    Wire names follow the token format: ``iat`` and ``exp`` are unix seconds.

    Attributes:
        capabilities: Granted permission identifiers.
        issued_at: When the token was issued (``iat``), if stated.
        expires_at: When the token stops being valid (``exp``). None means
            the grant never expires.
        issuer: Who issued the token, if stated.
    """

    capabilities: tuple[str, ...]
    issued_at: float | None = Field(default=None, alias="iat", strict=True)
    expires_at: float | None = Field(default=None, alias="exp", strict=True)
    issuer: str | None = None

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    def is_expired(self, now: float) -> bool:
        """A grant is valid only while ``now < exp``."""
        return self.expires_at is not None and now >= self.expires_at

    def has(self, permission: str) -> bool:
        """Exact-match membership check."""
        return permission in self.capabilities

    def to_claims(self) -> dict[str, Any]:
        """Serialize back to wire claims (``iat``/``exp`` names, no nulls)."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class VerificationResult(NamedTuple):
    """Outcome of verifying a capability token.

    Exactly one of ``grant`` and ``error`` is set.

    Attributes:
        grant: Decoded, unexpired grant.
        error: Failure detail ("malformed", "claims", "expired", "signature").
    """

    grant: CapabilityGrant | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.grant is not None
