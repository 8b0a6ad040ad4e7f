"""
Shared logging configuration for the TropicsTracker access layer.
"""

import logging
import sys
import time
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Optional, Union

import structlog

# Context variables for correlation IDs
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
client_id_var: ContextVar[Optional[str]] = ContextVar('client_id', default=None)

ERROR_LOGGER = "proxy.errors"
SECURITY_LOGGER = "proxy.security"
DEBUG_LOGGER = "proxy.debug"

EVENT_LOG_FILES = {
    ERROR_LOGGER: "api_errors.log",
    SECURITY_LOGGER: "security.log",
    DEBUG_LOGGER: "debug.log",
}


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""

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
            add_correlation_context,
            add_timestamp,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def configure_event_logs(log_dir: Union[str, Path]) -> bool:
    """Attach an append-only JSON-lines file to each logger in ``EVENT_LOG_FILES``.

    The debug file only receives events from development requests.

    Returns False when the directory cannot be prepared; requests keep being
    served and events still reach stdout.
    """
    directory = Path(log_dir)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        get_logger("proxy.logging").warning(
            "Event log directory unavailable", log_dir=str(directory), error=str(exc)
        )
        return False

    for logger_name, filename in EVENT_LOG_FILES.items():
        path = (directory / filename).resolve()
        stdlib_logger = logging.getLogger(logger_name)
        if logger_name == DEBUG_LOGGER:
            stdlib_logger.setLevel(logging.DEBUG)

        # one event file per logger; a new directory replaces the previous one
        for handler in list(stdlib_logger.handlers):
            if getattr(handler, "event_log", False):
                if Path(handler.baseFilename) == path:
                    break
                stdlib_logger.removeHandler(handler)
                handler.close()
        else:
            handler = logging.FileHandler(path, mode="a", encoding="utf-8", delay=True)
            handler.setFormatter(logging.Formatter("%(message)s"))
            handler.event_log = True
            stdlib_logger.addHandler(handler)
    return True


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to log events."""
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict["service"] = logger_name.split(".")[0]
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add correlation context to log events."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    client_id = client_id_var.get()
    if client_id and "client_id" not in event_dict:
        event_dict["client_id"] = client_id

    return event_dict


def add_timestamp(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add high-precision timestamp to log events."""
    event_dict["timestamp"] = time.time()
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID in context."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_client_context(client_id: Optional[str] = None):
    """Set the hashed client identifier for subsequent log events."""
    client_id_var.set(client_id)


def clear_context():
    """Clear all context variables."""
    request_id_var.set(None)
    client_id_var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
