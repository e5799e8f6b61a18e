"""Structured logging for plist tables.

Library modules log through module-level structlog loggers and stay silent
until an application, or the plist-table CLI, calls configure_logging.
That routes every ``plist_table.*`` logger to one stderr handler so command
output on stdout stays clean.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

import structlog
from structlog.types import EventDict, Processor

from ..config import PlistTableSettings, get_settings

APP_NAME = "plist-table"
PACKAGE_LOGGER = "plist_table"

_handler: Optional[logging.Handler] = None


def add_app_context(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag entries with the application name unless the caller set one."""
    event_dict.setdefault("app", APP_NAME)
    return event_dict


def build_processors(json_logs: bool) -> List[Processor]:
    """Processor chain ending in a JSON or console renderer."""
    processors: List[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_app_context,
    ]
    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def configure_logging(
    log_level: Optional[str] = None,
    json_logs: Optional[bool] = None,
    service_name: Optional[str] = None,
    settings: Optional[PlistTableSettings] = None,
) -> None:
    """Configure structlog and the ``plist_table`` stdlib logger.

    Arguments left as None take their value from the settings. Calling
    this again replaces the handler installed by the previous call, and
    loggers already in use pick up the new configuration.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Render JSON lines instead of console output
        service_name: Bound as ``service`` on every entry
        settings: Settings to read defaults from
    """
    global _handler

    settings = settings or get_settings()
    level = (log_level or settings.log_level).upper()
    if json_logs is None:
        json_logs = settings.json_logs

    structlog.configure(
        processors=build_processors(json_logs),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if _handler is not None:
        package_logger.removeHandler(_handler)
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(_handler)
    package_logger.setLevel(getattr(logging, level))
    package_logger.propagate = False

    if service_name:
        structlog.contextvars.bind_contextvars(service=service_name)


@contextmanager
def table_context(table: str, operation: Optional[str] = None) -> Iterator[None]:
    """Bind the table name, and the running operation, to entries logged inside."""
    context = {"table": table}
    if operation:
        context["operation"] = operation
    with structlog.contextvars.bound_contextvars(**context):
        yield


def bind_context(**kwargs: Any) -> None:
    """Bind context variables to all subsequent log entries in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all context variables."""
    structlog.contextvars.clear_contextvars()
