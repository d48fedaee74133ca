"""Decision audit logging."""

from http_acp.telemetry.audit.decision_logger import DecisionEventLogger, create_decision_logger

__all__ = ["DecisionEventLogger", "create_decision_logger"]
