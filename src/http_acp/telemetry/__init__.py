"""Telemetry: system (operational) logging and decision audit logging."""
