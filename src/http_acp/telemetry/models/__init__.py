"""Pydantic models for audit log events."""

from http_acp.telemetry.models.decision import DecisionEvent

__all__ = ["DecisionEvent"]
