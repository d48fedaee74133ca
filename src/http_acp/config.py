"""Application configuration for http-acp.

Defines configuration models for the origin, the gates, capability token
verification, logging and the listening server. Config is stored as JSON
at the OS-appropriate location (via platformdirs); the rule tables live in
a separate rules file (see utils/rules.py).

Example usage:
    # Load from config file
    config = AppConfig.load_from_file(config_path)

    # Save new configuration
    config.save_to_file(config_path)
"""

from __future__ import annotations

__all__ = [
    "AppConfig",
    "GateConfig",
    "LoggingConfig",
    "OriginConfig",
    "ServerConfig",
    "TokenConfig",
    "get_config_path",
]

import json
import os
import sys
from pathlib import Path
from typing import Literal, Self

from pydantic import BaseModel, Field, ValidationError, model_validator

from http_acp.constants import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_LOG_DIR,
    DEFAULT_ORIGIN_TIMEOUT_SECONDS,
    DEFAULT_TOKEN_CACHE_MAX_ENTRIES,
    DEFAULT_TOKEN_CACHE_TTL_SECONDS,
    MAX_ORIGIN_TIMEOUT_SECONDS,
    MIN_ORIGIN_TIMEOUT_SECONDS,
)
from http_acp.exceptions import ConfigurationError


def get_config_path() -> Path:
    """Get the default config file location.

    Platform-specific:
        - macOS: ~/Library/Application Support/http-acp/config.json
        - Linux: ~/.config/http-acp/config.json
    """
    return Path(DEFAULT_CONFIG_DIR) / "config.json"


# =============================================================================
# Origin
# =============================================================================


class OriginConfig(BaseModel):
    """Origin server the gateway forwards allowed requests to.

    Attributes:
        url: Origin base URL (e.g., "http://localhost:8080").
        timeout_seconds: Request timeout in seconds (1-300).
    """

    url: str = Field(min_length=1, pattern=r"^https?://")
    timeout_seconds: int = Field(
        default=DEFAULT_ORIGIN_TIMEOUT_SECONDS,
        ge=MIN_ORIGIN_TIMEOUT_SECONDS,
        le=MAX_ORIGIN_TIMEOUT_SECONDS,
    )


# =============================================================================
# Gates
# =============================================================================


class GateConfig(BaseModel):
    """Which gates are enforced.

    When both are enabled, the consent gate runs first (outermost), then
    the capability gate. A request must pass both.

    Attributes:
        consent: Enforce the consent cookie gate.
        capability: Enforce the capability token gate.
    """

    consent: bool = True
    capability: bool = True


# =============================================================================
# Capability tokens
# =============================================================================


class TokenConfig(BaseModel):
    """Capability token verification settings.

    Secrets are never stored in the config file. Signed verification reads
    the HMAC secret from the environment variable named by ``secret_env``,
    or a PEM public key from ``public_key_path``.

    Attributes:
        verifier: "unsigned" (base64 JSON, no authenticity) or "signed" (JWT).
        secret_env: Environment variable holding the HMAC secret.
        public_key_path: PEM public key for RS*/ES* algorithms.
        algorithms: Accepted JWT algorithms.
        issuer: Required JWT issuer, if any.
        audience: Required JWT audience, if any.
        cache_ttl_seconds: Verified-grant cache lifetime. 0 disables caching.
        cache_max_entries: Verified-grant cache size bound.
    """

    verifier: Literal["unsigned", "signed"] = "unsigned"
    secret_env: str = "HTTP_ACP_TOKEN_SECRET"
    public_key_path: str | None = None
    algorithms: list[str] = Field(default_factory=lambda: ["HS256"], min_length=1)
    issuer: str | None = None
    audience: str | None = None
    cache_ttl_seconds: int = Field(default=DEFAULT_TOKEN_CACHE_TTL_SECONDS, ge=0)
    cache_max_entries: int = Field(default=DEFAULT_TOKEN_CACHE_MAX_ENTRIES, ge=1)

    @model_validator(mode="after")
    def reject_none_algorithm(self) -> Self:
        """alg=none would accept forged tokens."""
        if any(alg.lower() == "none" for alg in self.algorithms):
            raise ValueError("'none' is not an accepted JWT algorithm")
        return self

    def load_key(self) -> str:
        """Load the verification key for signed tokens.

        Returns:
            PEM public key (if public_key_path is set) or HMAC secret.

        Raises:
            ConfigurationError: If no key material is available.
        """
        if self.public_key_path:
            try:
                return Path(self.public_key_path).expanduser().read_text(encoding="utf-8")
            except OSError as e:
                raise ConfigurationError(f"Cannot read public key {self.public_key_path}: {e}") from e

        secret = os.environ.get(self.secret_env)
        if not secret:
            raise ConfigurationError(
                f"Signed token verification requires a secret in ${self.secret_env} "
                "or tokens.public_key_path in the config file"
            )
        return secret


# =============================================================================
# Logging
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration settings.

    Logs are stored under log_dir with this structure:
        <log_dir>/
        ├── system/
        │   └── system.jsonl        # WARNING and above
        └── audit/                  # Always enabled
            └── decisions.jsonl     # One event per gate decision

    Attributes:
        log_dir: Base directory for logs (platform-specific default).
        log_level: Console level for the system logger.
    """

    log_dir: str = Field(default=DEFAULT_LOG_DIR, min_length=1)
    log_level: Literal["DEBUG", "INFO", "WARNING"] = "INFO"

    @property
    def decisions_path(self) -> Path:
        return Path(self.log_dir).expanduser() / "audit" / "decisions.jsonl"

    @property
    def system_path(self) -> Path:
        return Path(self.log_dir).expanduser() / "system" / "system.jsonl"


# =============================================================================
# Server
# =============================================================================


class ServerConfig(BaseModel):
    """Listening address for `http-acp serve`."""

    host: str = "127.0.0.1"
    port: int = Field(default=8787, ge=1, le=65535)


# =============================================================================
# Application
# =============================================================================


class AppConfig(BaseModel):
    """Main application configuration.

    Attributes:
        origin: Origin server to forward allowed requests to.
        gates: Which gates to enforce.
        tokens: Capability token verification settings.
        rules_path: Rules file. None uses the built-in tables.
        logging: Logging configuration.
        server: Listening address.
        security_headers: Add the static security header table to responses.
    """

    origin: OriginConfig
    gates: GateConfig = Field(default_factory=GateConfig)
    tokens: TokenConfig = Field(default_factory=TokenConfig)
    rules_path: str | None = None
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    security_headers: bool = True

    @classmethod
    def load_from_file(cls, path: Path | None = None) -> AppConfig:
        """Load and validate configuration from a JSON file.

        Args:
            path: Config file path. If None, uses the default location.

        Returns:
            Validated AppConfig.

        Raises:
            ConfigurationError: If the file is missing, not JSON, or invalid.
        """
        config_path = path or get_config_path()
        if not config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found at {config_path}.\n"
                "Run 'http-acp init --origin <url>' to create one."
            )

        try:
            with open(config_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in config file {config_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Could not read config file {config_path}: {e}") from e

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            errors = []
            for error in e.errors():
                loc = ".".join(str(x) for x in error["loc"])
                errors.append(f"  - {loc}: {error['msg']}")
            raise ConfigurationError(
                f"Invalid configuration in {config_path}:\n" + "\n".join(errors)
            ) from e

    def save_to_file(self, path: Path | None = None) -> Path:
        """Save configuration as JSON with owner-only permissions.

        Args:
            path: Destination. If None, uses the default location.

        Returns:
            The path written.
        """
        config_path = path or get_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(json.dumps(self.model_dump(mode="json"), indent=2) + "\n", encoding="utf-8")
        if sys.platform != "win32":
            try:
                config_path.chmod(0o600)
            except OSError:
                pass
        return config_path

    def rules_file(self) -> Path | None:
        """Resolved rules file path, or None for the built-in tables."""
        return Path(self.rules_path).expanduser() if self.rules_path else None
