"""Logging setup for the engine's structlog decision events."""

from tool2agent.observability.logging import (
    LoggingConfig,
    configure_logging,
    default_log_redactor,
    reset_logging,
    setup_logging,
)

__all__ = [
    "LoggingConfig",
    "configure_logging",
    "default_log_redactor",
    "reset_logging",
    "setup_logging",
]
