"""Rules loader - load and save rule tables.

This module provides functions to load rules.json (both gate tables) and
save rule sets, e.g. when bootstrapping a deployment from the defaults.

Features:
- Secure file permissions (0o700 for directory, 0o600 for file)
- Detailed validation error messages
- Atomic writes (temp file + rename)
- SHA256 checksum for change detection
"""

from __future__ import annotations

__all__ = [
    "compute_rules_checksum",
    "create_default_rules_file",
    "get_rules_path",
    "load_rules",
    "rules_exist",
    "save_rules",
]

import hashlib
import json
import os
import sys
import tempfile
from pathlib import Path

from pydantic import ValidationError

from http_acp.constants import DEFAULT_CONFIG_DIR
from http_acp.pdp.rules import RuleSet, create_default_rule_set


def get_rules_path() -> Path:
    """Get the default rules file location.

    Returns:
        Path to rules.json in the OS-appropriate config directory.
    """
    return Path(DEFAULT_CONFIG_DIR) / "rules.json"


def compute_rules_checksum(rules_path: Path) -> str:
    """Compute SHA256 checksum of rules file content.

    Args:
        rules_path: Path to the rules file.

    Returns:
        str: Checksum in format "sha256:<hex_digest>".

    Raises:
        FileNotFoundError: If rules file doesn't exist.
    """
    digest = hashlib.sha256(rules_path.read_bytes()).hexdigest()
    return f"sha256:{digest}"


def load_rules(path: Path | None = None) -> RuleSet:
    """Load both rule tables from a rules file.

    Args:
        path: Path to rules.json. If None, uses default location.

    Returns:
        Validated RuleSet.

    Raises:
        FileNotFoundError: If rules file does not exist.
        ValueError: If rules file contains invalid JSON or schema.
        RuleTableError: If a table violates the catch-all invariant.
    """
    rules_path = path or get_rules_path()
    if not rules_path.exists():
        raise FileNotFoundError(
            f"Rules file not found: {rules_path}\nRun 'http-acp rules init' to create the default rules."
        )

    try:
        with open(rules_path, encoding="utf-8") as f:
            raw_data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in rules file {rules_path}: {e}") from e

    try:
        return RuleSet.model_validate(raw_data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")
        raise ValueError(
            f"Invalid rules configuration in {rules_path}:\n"
            + "\n".join(errors)
            + "\n\nEdit the rules file to fix the errors."
        ) from e


def save_rules(rules: RuleSet, path: Path | None = None) -> None:
    """Save a rule set to file atomically.

    Uses atomic write pattern: write to temp file, then rename.
    Creates parent directories if they don't exist.

    Args:
        rules: RuleSet to save.
        path: Path to save to. If None, uses default location.
    """
    rules_path = path or get_rules_path()

    rules_path.parent.mkdir(parents=True, exist_ok=True)
    if sys.platform != "win32":
        try:
            rules_path.parent.chmod(0o700)
        except OSError:
            pass

    data = rules.model_dump(mode="json", exclude_none=True)
    content = json.dumps(data, indent=2) + "\n"

    fd, temp_path = tempfile.mkstemp(dir=rules_path.parent, prefix=".rules_", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        os.chmod(temp_path, 0o600)
        os.replace(temp_path, rules_path)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def rules_exist(path: Path | None = None) -> bool:
    """Check if rules file exists.

    Args:
        path: Path to check. If None, uses default location.
    """
    return (path or get_rules_path()).exists()


def create_default_rules_file(path: Path | None = None) -> RuleSet:
    """Create a rules file with the built-in tables.

    Args:
        path: Path to create. If None, uses default location.

    Returns:
        The RuleSet that was written.

    Raises:
        FileExistsError: If rules file already exists.
    """
    rules_path = path or get_rules_path()
    if rules_path.exists():
        raise FileExistsError(f"Rules file already exists: {rules_path}")

    rules = create_default_rule_set()
    save_rules(rules, rules_path)
    return rules
