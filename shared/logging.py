"""
Shared logging configuration for the Micro Stats Exporter.
"""

import sys
import logging
from typing import Any, Dict, Optional
from contextvars import ContextVar

import structlog

# Context variable correlating log lines emitted by one discovery cycle
poll_cycle_var: ContextVar[Optional[int]] = ContextVar('poll_cycle', default=None)


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_poll_context,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to log events."""
    # Extract service name from logger name
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict["service"] = logger_name.split(".")[0]

    return event_dict


def add_poll_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add the current discovery cycle number to log events."""
    poll_cycle = poll_cycle_var.get()
    if poll_cycle is not None:
        event_dict["poll_cycle"] = poll_cycle

    return event_dict


def set_poll_cycle(poll_cycle: Optional[int]) -> None:
    """Set the discovery cycle number in context."""
    poll_cycle_var.set(poll_cycle)


def clear_context():
    """Clear all context variables."""
    poll_cycle_var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
