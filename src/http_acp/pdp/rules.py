"""Rule tables mapping resources to required permissions.

This module defines the rule schema used by the policy engines.

Structure:
    RuleSet
    ├── version: Schema version for migrations
    ├── consent: RuleTable (kind="consent", prefix matching, method ignored)
    └── capability: RuleTable (kind="capability", full-path glob + method)
        └── RuleEntry
            ├── id: Optional identifier (generated from content if absent)
            ├── match_pattern: Path prefix or glob
            ├── methods: HTTP methods (None = any method)
            └── required_permissions: Ordered permission identifiers

Design principles:
1. Entries are evaluated in declaration order; the first match wins
2. No merging of entries and no "most specific wins" heuristic
3. Every table ends with exactly one catch-all entry, checked at construction
4. Consent rules match by path prefix, capability rules by full-path glob
"""

from __future__ import annotations

__all__ = [
    "CAPABILITY_CATCH_ALL_PATTERNS",
    "CONSENT_CATCH_ALL_PATTERNS",
    "CONSENT_FALLBACK_REQUIREMENTS",
    "ResolvedRequirement",
    "RuleEntry",
    "RuleSet",
    "RuleTable",
    "TableKind",
    "create_default_capability_table",
    "create_default_consent_table",
    "create_default_rule_set",
]

import hashlib
import json
from typing import Literal, NamedTuple, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from http_acp.constants import (
    CONSENT_ANALYTICS,
    CONSENT_ESSENTIAL,
    CONSENT_FUNCTIONAL,
    CONSENT_MARKETING,
    CONSENT_PERSONALIZATION,
    PUBLIC_READ_CAPABILITY,
)
from http_acp.exceptions import RuleTableError
from http_acp.pdp.matcher import match_glob, match_prefix

TableKind = Literal["consent", "capability"]

# Patterns that match every request path under each discipline
CONSENT_CATCH_ALL_PATTERNS: frozenset[str] = frozenset({"/"})
CAPABILITY_CATCH_ALL_PATTERNS: frozenset[str] = frozenset({"*", "/*"})

# Undeclared paths must stay reachable without any optional consent
CONSENT_FALLBACK_REQUIREMENTS: frozenset[tuple[str, ...]] = frozenset({(), (CONSENT_ESSENTIAL,)})


class RuleEntry(BaseModel):
    """A single row of a rule table.

    Attributes:
        id: Optional identifier for audit logs.
        description: Optional human-readable description.
        match_pattern: Path prefix (consent) or glob (capability).
        methods: HTTP methods this entry applies to. None means any method.
            Normalized to upper case. Only meaningful in capability tables.
        required_permissions: Permissions the caller must hold (AND logic).
    """

    id: str | None = None
    description: str | None = None
    match_pattern: str = Field(min_length=1)
    methods: tuple[str, ...] | None = None
    required_permissions: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)

    @field_validator("methods", mode="after")
    @classmethod
    def normalize_methods(cls, v: tuple[str, ...] | None) -> tuple[str, ...] | None:
        """Upper-case and de-duplicate methods, rejecting empty lists.

        An empty method list would silently never match. Use None for
        "any method".
        """
        if v is None:
            return v
        if not v:
            raise ValueError("methods cannot be empty; omit the field to match any method")
        normalized: list[str] = []
        for method in v:
            if not method.strip():
                raise ValueError("methods cannot contain empty or whitespace-only strings")
            upper = method.strip().upper()
            if upper not in normalized:
                normalized.append(upper)
        return tuple(normalized)

    @field_validator("required_permissions", mode="after")
    @classmethod
    def reject_empty_permissions(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Reject empty permission identifiers (they could never be granted)."""
        for permission in v:
            if not permission.strip():
                raise ValueError("required_permissions cannot contain empty or whitespace-only strings")
        return v


def _generate_entry_id(kind: str, entry: RuleEntry) -> str:
    """Generate a deterministic ID from entry content.

    Args:
        kind: Table kind, so identical rows in both tables get distinct IDs.
        entry: RuleEntry to generate ID for.

    Returns:
        ID in format "rule_<8-char-hex>", e.g., "rule_a1b2c3d4".
    """
    content = json.dumps(
        {
            "kind": kind,
            "match_pattern": entry.match_pattern,
            "methods": list(entry.methods) if entry.methods is not None else None,
            "required_permissions": list(entry.required_permissions),
        },
        sort_keys=True,
    )
    return f"rule_{hashlib.sha256(content.encode()).hexdigest()[:8]}"


class ResolvedRequirement(NamedTuple):
    """Result of resolving a request against a rule table."""

    entry: RuleEntry
    permissions: tuple[str, ...]


class RuleTable(BaseModel):
    """Ordered, immutable rule table.

    Attributes:
        kind: "consent" (prefix matching, method ignored) or
            "capability" (full-path glob, method filtered).
        entries: Rules in evaluation order. The last entry must be the
            table's only catch-all.

    Raises:
        RuleTableError: On construction if the catch-all invariant is violated.
    """

    kind: TableKind
    entries: tuple[RuleEntry, ...]

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_entries(self) -> Self:
        """Enforce the catch-all sentinel and assign missing IDs.

        1. Consent entries must not declare methods
        2. Exactly one catch-all entry, and it is last
        3. A consent catch-all requires nothing beyond essential
        4. Generate IDs for entries without them; all IDs unique
        """
        if self.kind == "consent":
            for entry in self.entries:
                if entry.methods is not None:
                    raise ValueError(
                        f"Consent rule '{entry.match_pattern}' declares methods; "
                        "consent rules match on path only"
                    )

        if not self.entries:
            raise RuleTableError(f"{self.kind} rule table is empty; a catch-all entry is required")

        catch_all_positions = [i for i, entry in enumerate(self.entries) if self.is_catch_all(entry)]
        last = len(self.entries) - 1
        if not catch_all_positions:
            raise RuleTableError(
                f"{self.kind} rule table has no catch-all entry; "
                f"end the table with one of {sorted(self._catch_all_patterns())} and no methods"
            )
        if catch_all_positions != [last]:
            raise RuleTableError(
                f"{self.kind} rule table must have exactly one catch-all entry, as the last rule "
                f"(found at positions {catch_all_positions})"
            )
        if self.kind == "consent" and self.entries[last].required_permissions not in CONSENT_FALLBACK_REQUIREMENTS:
            raise RuleTableError(
                f"consent catch-all must require nothing or only '{CONSENT_ESSENTIAL}', "
                f"got {list(self.entries[last].required_permissions)}"
            )

        user_ids = [e.id for e in self.entries if e.id is not None]
        if len(user_ids) != len(set(user_ids)):
            duplicates = {i for i in user_ids if user_ids.count(i) > 1}
            raise ValueError(f"Duplicate rule IDs: {duplicates}")

        entries = tuple(
            entry if entry.id is not None else entry.model_copy(update={"id": _generate_entry_id(self.kind, entry)})
            for entry in self.entries
        )
        all_ids = [e.id for e in entries]
        if len(all_ids) != len(set(all_ids)):
            duplicates = {i for i in all_ids if all_ids.count(i) > 1}
            raise ValueError(f"Rule ID collision: {duplicates}. Add explicit IDs to conflicting rules.")

        # Model is frozen, use object.__setattr__
        object.__setattr__(self, "entries", entries)
        return self

    def _catch_all_patterns(self) -> frozenset[str]:
        if self.kind == "consent":
            return CONSENT_CATCH_ALL_PATTERNS
        return CAPABILITY_CATCH_ALL_PATTERNS

    def is_catch_all(self, entry: RuleEntry) -> bool:
        """Check whether an entry matches every request."""
        return entry.methods is None and entry.match_pattern in self._catch_all_patterns()

    @property
    def fallback(self) -> RuleEntry:
        """The catch-all entry (always last)."""
        return self.entries[-1]

    @property
    def default_permissions(self) -> tuple[str, ...]:
        """Requirement applied to requests no declared rule covers."""
        return self.fallback.required_permissions

    @property
    def rule_count(self) -> int:
        """Number of entries, including the catch-all."""
        return len(self.entries)

    def entry_matches(self, entry: RuleEntry, method: str | None, path: str) -> bool:
        """Check whether a single entry matches the request.

        Args:
            entry: Rule entry to test.
            method: HTTP method (ignored for consent tables).
            path: Request path.

        Returns:
            True if the entry applies to this request.
        """
        if self.kind == "consent":
            return match_prefix(path, entry.match_pattern)

        if entry.methods is not None:
            if method is None or method.upper() not in entry.methods:
                return False
        return match_glob(path, entry.match_pattern)

    def resolve(self, method: str | None, path: str) -> ResolvedRequirement:
        """Resolve the entry and permissions that apply to a request.

        Iterates entries in declaration order; the first match wins.

        Args:
            method: HTTP method (ignored for consent tables).
            path: Request path.

        Returns:
            ResolvedRequirement with the matching entry and its permissions.
        """
        for entry in self.entries:
            if self.entry_matches(entry, method, path):
                return ResolvedRequirement(entry, entry.required_permissions)
        # Unreachable while the catch-all invariant holds
        return ResolvedRequirement(self.fallback, self.default_permissions)

    def resolve_requirement(self, method: str | None, path: str) -> tuple[str, ...]:
        """Resolve only the required permissions for a request."""
        return self.resolve(method, path).permissions


class RuleSet(BaseModel):
    """Both gate tables, as stored in a rules file.

    Attributes:
        version: Schema version for migrations.
        consent: Consent rule table.
        capability: Capability rule table.
    """

    version: str = "1"
    consent: RuleTable
    capability: RuleTable

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_kinds(self) -> Self:
        """Each table must be declared with its own kind."""
        if self.consent.kind != "consent":
            raise ValueError(f"consent table declared with kind '{self.consent.kind}'")
        if self.capability.kind != "capability":
            raise ValueError(f"capability table declared with kind '{self.capability.kind}'")
        return self


def create_default_consent_table() -> RuleTable:
    """Create the default consent table.

    Returns:
        RuleTable classifying resource families by consent category,
        falling back to the essential category.
    """
    return RuleTable(
        kind="consent",
        entries=(
            RuleEntry(id="consent-analytics", match_pattern="/api/analytics", required_permissions=(CONSENT_ANALYTICS,)),
            RuleEntry(id="consent-ads", match_pattern="/api/ads", required_permissions=(CONSENT_MARKETING,)),
            RuleEntry(
                id="consent-personalize",
                match_pattern="/api/personalize",
                required_permissions=(CONSENT_PERSONALIZATION,),
            ),
            RuleEntry(
                id="consent-user-preferences",
                match_pattern="/api/user/preferences",
                required_permissions=(CONSENT_FUNCTIONAL,),
            ),
            RuleEntry(
                id="consent-default",
                description="Essential resources are always served",
                match_pattern="/",
                required_permissions=(CONSENT_ESSENTIAL,),
            ),
        ),
    )


def create_default_capability_table() -> RuleTable:
    """Create the default capability table.

    Returns:
        RuleTable classifying exact routes by capability, falling back to
        public.read.
    """
    return RuleTable(
        kind="capability",
        entries=(
            RuleEntry(id="file.read", match_pattern="/api/files/*", methods=("GET",), required_permissions=("file.read",)),
            RuleEntry(
                id="file.write",
                match_pattern="/api/files/*",
                methods=("POST", "PUT"),
                required_permissions=("file.write",),
            ),
            RuleEntry(
                id="file.delete",
                match_pattern="/api/files/*",
                methods=("DELETE",),
                required_permissions=("file.delete",),
            ),
            RuleEntry(id="user.read", match_pattern="/api/users/*", methods=("GET",), required_permissions=("user.read",)),
            RuleEntry(
                id="user.write",
                match_pattern="/api/users/*",
                methods=("POST", "PUT", "PATCH"),
                required_permissions=("user.write",),
            ),
            RuleEntry(
                id="analytics.write",
                match_pattern="/api/analytics/*",
                methods=("POST",),
                required_permissions=("analytics.write",),
            ),
            RuleEntry(
                id="public.read",
                description="Default capability for undeclared routes",
                match_pattern="/*",
                required_permissions=(PUBLIC_READ_CAPABILITY,),
            ),
        ),
    )


def create_default_rule_set() -> RuleSet:
    """Create the built-in rule set used when no rules file is configured."""
    return RuleSet(
        version="1",
        consent=create_default_consent_table(),
        capability=create_default_capability_table(),
    )
