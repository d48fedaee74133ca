"""Shared utilities (logging setup, rules file I/O)."""
