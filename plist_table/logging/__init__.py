"""Structured logging module using structlog."""

from .structured_logger import (
    bind_context,
    clear_context,
    configure_logging,
    table_context,
)

__all__ = ["configure_logging", "table_context", "bind_context", "clear_context"]
