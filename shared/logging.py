"""
Shared logging configuration for the PostgreSQL distributed cache.

Events are rendered as JSON through the standard library's handlers. A run
id can be bound to the current context so that every event emitted during
one sweep pass or one admin command carries the same ``run_id``.
"""

import sys
import uuid
import logging
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

run_id_var: ContextVar[Optional[str]] = ContextVar("cache_run_id", default=None)


def add_component(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Split a dotted logger name such as ``cache.store.postgres`` into service and component."""
    logger_name = event_dict.get("logger", "")
    service, _, component = logger_name.partition(".")
    if component:
        event_dict["service"] = service
        event_dict["component"] = component
    return event_dict


def add_run_id(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach the bound run id, if any."""
    run_id = run_id_var.get()
    if run_id:
        event_dict.setdefault("run_id", run_id)
    return event_dict


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a process hosting the cache."""
    level = getattr(logging, log_level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_component,
            add_run_id,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    logging.getLogger(service_name).setLevel(level)


def bind_run_id(run_id: Optional[str] = None) -> str:
    """Bind a run id to the current context and return it."""
    run_id = run_id or uuid.uuid4().hex[:12]
    run_id_var.set(run_id)
    return run_id


def clear_run_id() -> None:
    run_id_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
