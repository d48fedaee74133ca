"""JSONL file loggers.

Log directories are created owner-only (0700) and log files 0600. Modes
are applied only when this module creates the path, so a directory the
operator prepared keeps its own permissions.
"""

from __future__ import annotations

__all__ = ["jsonl_file_handler", "setup_jsonl_logger"]

import logging
from pathlib import Path

from http_acp.utils.logging.iso_formatter import ISO8601Formatter


def jsonl_file_handler(log_file: Path, level: int = logging.INFO) -> logging.FileHandler:
    """Open an append-mode JSONL handler on an owner-only file.

    Raises:
        OSError: If the directory or file cannot be created.
    """
    log_file.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    log_file.touch(mode=0o600, exist_ok=True)

    handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(ISO8601Formatter())
    return handler


def setup_jsonl_logger(logger_name: str, log_file: Path, log_level: int = logging.INFO) -> logging.Logger:
    """Point a named logger at a single JSONL file.

    Calling this again for the same name replaces the previous file
    handler instead of stacking a second one.

    Args:
        logger_name: Logger name, e.g. "http-acp.audit.decisions".
        log_file: JSONL file to append to.
        log_level: Minimum level written.

    Returns:
        The configured logger. It does not propagate to the root logger.
    """
    handler = jsonl_file_handler(log_file, log_level)

    logger = logging.getLogger(logger_name)
    for old in logger.handlers[:]:
        logger.removeHandler(old)
        old.close()
    logger.setLevel(log_level)
    logger.propagate = False
    logger.addHandler(handler)
    return logger
