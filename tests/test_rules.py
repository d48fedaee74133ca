"""Unit tests for rule tables and rules file I/O.

Tests use the AAA pattern (Arrange-Act-Assert) for clarity.
"""

import json
import os
import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

from http_acp.exceptions import RuleTableError
from http_acp.pdp.rules import (
    RuleEntry,
    RuleSet,
    RuleTable,
    create_default_capability_table,
    create_default_consent_table,
    create_default_rule_set,
)
from http_acp.utils.rules import (
    compute_rules_checksum,
    create_default_rules_file,
    load_rules,
    rules_exist,
    save_rules,
)


# ============================================================================
# RuleEntry
# ============================================================================


class TestRuleEntry:
    """Tests for RuleEntry validation."""

    def test_methods_are_upper_cased_and_deduplicated(self) -> None:
        entry = RuleEntry(match_pattern="/x", methods=("get", "GET", "post"), required_permissions=("a",))

        assert entry.methods == ("GET", "POST")

    def test_empty_methods_rejected(self) -> None:
        with pytest.raises(ValidationError, match="methods cannot be empty"):
            RuleEntry(match_pattern="/x", methods=(), required_permissions=("a",))

    def test_blank_method_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RuleEntry(match_pattern="/x", methods=(" ",), required_permissions=("a",))

    def test_blank_permission_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RuleEntry(match_pattern="/x", required_permissions=("",))

    def test_empty_pattern_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RuleEntry(match_pattern="", required_permissions=("a",))

    def test_entry_is_immutable(self) -> None:
        entry = RuleEntry(match_pattern="/x", required_permissions=("a",))

        with pytest.raises(ValidationError):
            entry.match_pattern = "/y"  # type: ignore[misc]


# ============================================================================
# RuleTable construction invariants
# ============================================================================


class TestRuleTableInvariants:
    """The catch-all sentinel is enforced at construction."""

    def test_table_without_catch_all_rejected(self) -> None:
        with pytest.raises(RuleTableError, match="no catch-all"):
            RuleTable(
                kind="capability",
                entries=(RuleEntry(match_pattern="/api/*", required_permissions=("a",)),),
            )

    def test_empty_table_rejected(self) -> None:
        with pytest.raises(RuleTableError, match="empty"):
            RuleTable(kind="consent", entries=())

    def test_catch_all_not_last_rejected(self) -> None:
        with pytest.raises(RuleTableError, match="last rule"):
            RuleTable(
                kind="consent",
                entries=(
                    RuleEntry(match_pattern="/", required_permissions=("essential",)),
                    RuleEntry(match_pattern="/api/ads", required_permissions=("marketing",)),
                ),
            )

    def test_two_catch_alls_rejected(self) -> None:
        with pytest.raises(RuleTableError):
            RuleTable(
                kind="capability",
                entries=(
                    RuleEntry(match_pattern="*", required_permissions=("a",)),
                    RuleEntry(match_pattern="/*", required_permissions=("b",)),
                ),
            )

    def test_method_restricted_wildcard_is_not_a_catch_all(self) -> None:
        """/* limited to GET does not cover every request."""
        with pytest.raises(RuleTableError, match="no catch-all"):
            RuleTable(
                kind="capability",
                entries=(RuleEntry(match_pattern="/*", methods=("GET",), required_permissions=("a",)),),
            )

    @pytest.mark.parametrize("fallback", [("analytics",), ("essential", "marketing")])
    def test_consent_catch_all_requiring_optional_consent_rejected(self, fallback: tuple[str, ...]) -> None:
        """Undeclared paths must not be gated on optional consent."""
        with pytest.raises(RuleTableError, match="consent catch-all"):
            RuleTable(
                kind="consent",
                entries=(
                    RuleEntry(match_pattern="/api/ads", required_permissions=("marketing",)),
                    RuleEntry(match_pattern="/", required_permissions=fallback),
                ),
            )

    @pytest.mark.parametrize("fallback", [(), ("essential",)])
    def test_consent_catch_all_may_require_nothing_or_essential(self, fallback: tuple[str, ...]) -> None:
        table = RuleTable(kind="consent", entries=(RuleEntry(match_pattern="/", required_permissions=fallback),))

        assert table.default_permissions == fallback

    def test_capability_catch_all_requirement_is_free(self) -> None:
        table = RuleTable(kind="capability", entries=(RuleEntry(match_pattern="*", required_permissions=("site.read",)),))

        assert table.default_permissions == ("site.read",)

    def test_load_rejects_consent_fallback_requiring_analytics(self, tmp_path: Path) -> None:
        data = create_default_rule_set().model_dump(mode="json", exclude_none=True)
        data["consent"]["entries"][-1]["required_permissions"] = ["analytics"]
        path = tmp_path / "rules.json"
        path.write_text(json.dumps(data))

        with pytest.raises(RuleTableError, match="consent catch-all"):
            load_rules(path)

    def test_consent_entries_cannot_declare_methods(self) -> None:
        with pytest.raises(ValidationError, match="consent rules match on path only"):
            RuleTable(
                kind="consent",
                entries=(
                    RuleEntry(match_pattern="/api/ads", methods=("GET",), required_permissions=("marketing",)),
                    RuleEntry(match_pattern="/", required_permissions=("essential",)),
                ),
            )

    def test_missing_ids_are_generated(self) -> None:
        table = RuleTable(
            kind="consent",
            entries=(
                RuleEntry(match_pattern="/api/ads", required_permissions=("marketing",)),
                RuleEntry(match_pattern="/", required_permissions=("essential",)),
            ),
        )

        assert all(entry.id and entry.id.startswith("rule_") for entry in table.entries)
        assert table.entries[0].id != table.entries[1].id

    def test_generated_ids_are_deterministic(self) -> None:
        entries = (
            RuleEntry(match_pattern="/api/ads", required_permissions=("marketing",)),
            RuleEntry(match_pattern="/", required_permissions=("essential",)),
        )

        first = RuleTable(kind="consent", entries=entries)
        second = RuleTable(kind="consent", entries=entries)

        assert [e.id for e in first.entries] == [e.id for e in second.entries]

    def test_duplicate_ids_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Duplicate rule IDs"):
            RuleTable(
                kind="consent",
                entries=(
                    RuleEntry(id="same", match_pattern="/api/ads", required_permissions=("marketing",)),
                    RuleEntry(id="same", match_pattern="/", required_permissions=("essential",)),
                ),
            )


# ============================================================================
# Resolution
# ============================================================================


class TestRuleTableResolve:
    """First match in declaration order wins."""

    def test_first_matching_entry_wins_over_later_overlap(self) -> None:
        # Arrange - both entries match /api/files/x
        table = RuleTable(
            kind="capability",
            entries=(
                RuleEntry(id="narrow", match_pattern="/api/files/*", required_permissions=("first",)),
                RuleEntry(id="broad", match_pattern="/api/*", required_permissions=("second",)),
                RuleEntry(match_pattern="/*", required_permissions=("public.read",)),
            ),
        )

        # Act
        entry, permissions = table.resolve("GET", "/api/files/x")

        # Assert
        assert entry.id == "narrow"
        assert permissions == ("first",)

    def test_declaration_order_beats_specificity(self) -> None:
        """A broad rule declared first shadows a more specific one."""
        table = RuleTable(
            kind="consent",
            entries=(
                RuleEntry(match_pattern="/api", required_permissions=("functional",)),
                RuleEntry(match_pattern="/api/analytics", required_permissions=("analytics",)),
                RuleEntry(match_pattern="/", required_permissions=("essential",)),
            ),
        )

        assert table.resolve_requirement(None, "/api/analytics/events") == ("functional",)

    def test_consent_resolution_ignores_method(self) -> None:
        table = create_default_consent_table()

        assert table.resolve_requirement("DELETE", "/api/ads/1") == ("marketing",)
        assert table.resolve_requirement(None, "/api/ads/1") == ("marketing",)

    def test_capability_resolution_filters_by_method(self) -> None:
        table = create_default_capability_table()

        assert table.resolve_requirement("GET", "/api/files/a") == ("file.read",)
        assert table.resolve_requirement("PUT", "/api/files/a") == ("file.write",)
        assert table.resolve_requirement("DELETE", "/api/files/a") == ("file.delete",)

    def test_method_with_no_rule_falls_through_to_default(self) -> None:
        """PATCH is not declared for files, so the catch-all applies."""
        table = create_default_capability_table()

        entry, permissions = table.resolve("PATCH", "/api/files/a")

        assert entry is table.fallback
        assert permissions == ("public.read",)

    def test_method_matching_is_case_insensitive(self) -> None:
        table = create_default_capability_table()

        assert table.resolve_requirement("post", "/api/analytics/events") == ("analytics.write",)

    def test_undeclared_path_resolves_to_default(self) -> None:
        consent = create_default_consent_table()
        capability = create_default_capability_table()

        assert consent.resolve_requirement(None, "/about") == ("essential",)
        assert consent.resolve_requirement(None, "/about") == consent.default_permissions
        assert capability.resolve_requirement("GET", "/about") == ("public.read",)
        assert capability.resolve_requirement("GET", "/about") == capability.default_permissions


class TestDefaultTables:
    """Built-in tables."""

    def test_default_consent_table(self) -> None:
        table = create_default_consent_table()

        assert table.kind == "consent"
        assert table.rule_count == 5
        assert table.resolve_requirement(None, "/api/personalize/feed") == ("personalization",)
        assert table.resolve_requirement(None, "/api/user/preferences/theme") == ("functional",)

    def test_default_capability_table(self) -> None:
        table = create_default_capability_table()

        assert table.kind == "capability"
        assert table.rule_count == 7
        assert table.resolve_requirement("PATCH", "/api/users/7") == ("user.write",)
        assert table.resolve_requirement("GET", "/api/users/7") == ("user.read",)

    def test_rule_set_rejects_swapped_tables(self) -> None:
        with pytest.raises(ValidationError, match="kind"):
            RuleSet(consent=create_default_capability_table(), capability=create_default_consent_table())


# ============================================================================
# Rules file I/O
# ============================================================================


class TestRulesFile:
    """Tests for load/save of rules.json."""

    def test_save_then_load_preserves_tables(self, tmp_path: Path) -> None:
        # Arrange
        path = tmp_path / "rules.json"
        original = create_default_rule_set()

        # Act
        save_rules(original, path)
        loaded = load_rules(path)

        # Assert
        assert loaded == original

    def test_saved_file_omits_null_fields(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.json"
        save_rules(create_default_rule_set(), path)

        data = json.loads(path.read_text())

        assert "methods" not in data["consent"]["entries"][0]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_saved_file_is_owner_only(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.json"
        save_rules(create_default_rule_set(), path)

        assert oct(os.stat(path).st_mode & 0o777) == oct(0o600)

    def test_load_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="rules init"):
            load_rules(tmp_path / "missing.json")

    def test_load_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.json"
        path.write_text("{not json")

        with pytest.raises(ValueError, match="Invalid JSON"):
            load_rules(path)

    def test_load_reports_field_errors(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"consent": {"kind": "consent", "entries": []}}))

        with pytest.raises((ValueError, RuleTableError)):
            load_rules(path)

    def test_load_rejects_table_without_catch_all(self, tmp_path: Path) -> None:
        # Arrange
        data = create_default_rule_set().model_dump(mode="json", exclude_none=True)
        data["capability"]["entries"].pop()
        path = tmp_path / "rules.json"
        path.write_text(json.dumps(data))

        # Act / Assert
        with pytest.raises(RuleTableError):
            load_rules(path)

    def test_create_default_file_refuses_to_overwrite(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.json"
        create_default_rules_file(path)

        with pytest.raises(FileExistsError):
            create_default_rules_file(path)

    def test_rules_exist(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.json"
        assert rules_exist(path) is False

        create_default_rules_file(path)

        assert rules_exist(path) is True

    def test_checksum_changes_with_content(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.json"
        save_rules(create_default_rule_set(), path)
        before = compute_rules_checksum(path)

        path.write_text(path.read_text() + "\n")

        assert before.startswith("sha256:")
        assert compute_rules_checksum(path) != before
