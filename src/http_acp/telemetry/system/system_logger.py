"""Operational logger shared by the whole gateway.

Anything that is not a gate decision goes here: startup warnings,
malformed credentials, origin failures, enforcement errors.

- stderr gets INFO and above as "LEVEL: message"
- system.jsonl gets WARNING and above, once serve knows the log_dir
"""

from __future__ import annotations

__all__ = [
    "ConsoleFormatter",
    "configure_system_logger_file",
    "get_system_logger",
]

import logging
import sys
from pathlib import Path

from http_acp.constants import APP_NAME
from http_acp.utils.logging.logger_setup import jsonl_file_handler

SYSTEM_LOGGER_NAME = f"{APP_NAME}.system"


class ConsoleFormatter(logging.Formatter):
    """Prints the "message" of a dict record, or its "event" when absent."""

    def format(self, record: logging.LogRecord) -> str:
        text = record.getMessage()
        if isinstance(record.msg, dict):
            text = record.msg.get("message") or record.msg.get("event", "")
        return f"{record.levelname}: {text}"


def get_system_logger() -> logging.Logger:
    """Return the system logger, attaching the stderr handler on first use."""
    logger = logging.getLogger(SYSTEM_LOGGER_NAME)
    if not logger.handlers:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ConsoleFormatter())
        logger.addHandler(console)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def configure_system_logger_file(log_path: Path) -> None:
    """Also write WARNING and above to log_path. Later calls are no-ops.

    If the file cannot be opened the gateway keeps running with stderr
    only, and says so on stderr.
    """
    logger = get_system_logger()
    if any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        return

    try:
        handler = jsonl_file_handler(log_path, logging.WARNING)
    except OSError as e:
        logger.warning(
            {
                "event": "system_log_file_unavailable",
                "message": f"System log file {log_path} unavailable, logging to stderr only: {e}",
                "component": "system_logger",
            }
        )
        return
    logger.addHandler(handler)
