"""Pattern matching for rule tables.

Two matching disciplines, deliberately kept separate:
- Glob (capability tables): the whole path must match the pattern.
  `*` matches any sequence of characters including `/` and the empty
  sequence. Every other character is literal.
- Prefix (consent tables): the path must start with the pattern.

Both are case-sensitive, pure and safe for concurrent use.

Glob boundary examples:
    match_glob("/api/files/report.pdf", "/api/files/*")  -> True
    match_glob("/api/files/", "/api/files/*")            -> True
    match_glob("/api/files", "/api/files/*")             -> False
"""

from __future__ import annotations

__all__ = [
    "compile_glob",
    "match_glob",
    "match_prefix",
]

import re
from functools import lru_cache


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern into an anchored regex.

    Literal segments are escaped with re.escape so that regex metacharacters
    in route patterns (`.`, `+`, `(`, ...) only ever match themselves.

    Args:
        pattern: Glob pattern (e.g., "/api/files/*").

    Returns:
        Compiled regex matching the full path.
    """
    literal_parts = pattern.split("*")
    body = ".*".join(re.escape(part) for part in literal_parts)
    return re.compile(body, re.DOTALL)


def match_glob(path: str | None, pattern: str | None) -> bool:
    """Match a request path against a glob pattern.

    Args:
        path: Request path (e.g., "/api/files/report.pdf").
        pattern: Glob pattern (e.g., "/api/files/*").

    Returns:
        True if the whole path matches, False otherwise.
        Returns False if either argument is None.
    """
    if path is None or pattern is None:
        return False
    return compile_glob(pattern).fullmatch(path) is not None


def match_prefix(path: str | None, pattern: str | None) -> bool:
    """Match a request path against a literal prefix.

    Args:
        path: Request path (e.g., "/api/analytics/events").
        pattern: Path prefix (e.g., "/api/analytics").

    Returns:
        True if path starts with pattern, False otherwise.
        Returns False if either argument is None.
    """
    if path is None or pattern is None:
        return False
    return path.startswith(pattern)
