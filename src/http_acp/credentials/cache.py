"""Cache of verified capability grants.

Signature verification is the only non-trivial cost on the capability path,
so verified grants can be cached keyed by the raw token string.

Cache rules:
- Only successful verifications are cached; failures are re-verified
- An entry expires at min(verified_at + ttl, grant.exp) - never after the
  token itself expires
- Expiry is evaluated against the decision time passed in by the engine
- Bounded size; expired entries are purged first, then the oldest

Concurrency: guarded by a threading.Lock so the cache is safe when the
gateway runs decisions from worker threads as well as the event loop.
"""

from __future__ import annotations

__all__ = ["CachingVerifier"]

import threading
from dataclasses import dataclass

from http_acp.constants import DEFAULT_TOKEN_CACHE_MAX_ENTRIES, DEFAULT_TOKEN_CACHE_TTL_SECONDS
from http_acp.credentials.capability import CredentialVerifier
from http_acp.credentials.models import CapabilityGrant, VerificationResult


@dataclass(frozen=True, slots=True)
class _CachedGrant:
    grant: CapabilityGrant
    valid_until: float


class CachingVerifier:
    """Wraps a CredentialVerifier with an expiry-bounded cache.

    Attributes:
        ttl_seconds: Maximum lifetime of an entry.
        max_entries: Maximum number of cached tokens.
    """

    def __init__(
        self,
        inner: CredentialVerifier,
        *,
        ttl_seconds: float = DEFAULT_TOKEN_CACHE_TTL_SECONDS,
        max_entries: int = DEFAULT_TOKEN_CACHE_MAX_ENTRIES,
    ) -> None:
        """Initialize caching verifier.

        Args:
            inner: Verifier that performs the actual verification.
            ttl_seconds: Entry lifetime cap in seconds (must be positive).
            max_entries: Size bound (must be positive).

        Raises:
            ValueError: If ttl_seconds or max_entries is not positive.
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._inner = inner
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: dict[str, _CachedGrant] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def verify(self, raw: str, *, now: float) -> VerificationResult:
        """Return a cached grant if still valid, otherwise verify and cache."""
        with self._lock:
            cached = self._entries.get(raw)
            if cached is not None:
                if now < cached.valid_until:
                    return VerificationResult(cached.grant, None)
                del self._entries[raw]

        result = self._inner.verify(raw, now=now)
        if result.grant is None:
            return result

        valid_until = now + self.ttl_seconds
        if result.grant.expires_at is not None:
            valid_until = min(valid_until, result.grant.expires_at)

        with self._lock:
            if raw not in self._entries and len(self._entries) >= self.max_entries:
                self._evict(now)
            self._entries[raw] = _CachedGrant(result.grant, valid_until)
        return result

    def clear(self) -> int:
        """Drop all entries.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def _evict(self, now: float) -> None:
        """Make room for one entry. Caller holds the lock."""
        expired = [key for key, entry in self._entries.items() if now >= entry.valid_until]
        for key in expired:
            del self._entries[key]
        while len(self._entries) >= self.max_entries:
            # dicts preserve insertion order: first key is the oldest
            del self._entries[next(iter(self._entries))]
