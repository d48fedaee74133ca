"""Logging utilities: JSONL formatting, logger setup, request context."""

from http_acp.utils.logging.iso_formatter import ISO8601Formatter
from http_acp.utils.logging.logger_setup import jsonl_file_handler, setup_jsonl_logger
from http_acp.utils.logging.logging_helpers import (
    hash_sensitive_id,
    sanitize_for_logging,
    serialize_audit_event,
)

__all__ = [
    "ISO8601Formatter",
    "hash_sensitive_id",
    "jsonl_file_handler",
    "sanitize_for_logging",
    "serialize_audit_event",
    "setup_jsonl_logger",
]
