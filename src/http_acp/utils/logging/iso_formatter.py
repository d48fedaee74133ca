"""JSONL formatter with UTC millisecond timestamps."""

from __future__ import annotations

__all__ = ["ISO8601Formatter"]

import json
import logging
import time


class ISO8601Formatter(logging.Formatter):
    """One JSON object per record, led by a "time" field.

    Dict messages become the object's fields; anything else is stored under
    "message". Time looks like 2026-10-19T10:48:37.123Z.
    """

    converter = time.gmtime
    default_time_format = "%Y-%m-%dT%H:%M:%S"
    default_msec_format = "%s.%03dZ"

    def format(self, record: logging.LogRecord) -> str:
        fields = record.msg if isinstance(record.msg, dict) else {"message": record.getMessage()}
        return json.dumps({"time": self.formatTime(record), **fields}, default=str)
