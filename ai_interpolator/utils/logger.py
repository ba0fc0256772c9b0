"""
Structured logging configuration using structlog.

Provides:
- Structured logging with JSON output (production) or console (development)
- Pipeline context variables (entity, field, job) attached to every log entry
- Utilities for binding and clearing that context around a unit of work
"""
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

import structlog

from ai_interpolator.core.settings import get_settings


# =============================================================================
# PIPELINE CONTEXT VARIABLES
# =============================================================================

entity_type_var: ContextVar[Optional[str]] = ContextVar("entity_type", default=None)
entity_id_var: ContextVar[Optional[str]] = ContextVar("entity_id", default=None)
field_name_var: ContextVar[Optional[str]] = ContextVar("field_name", default=None)
job_id_var: ContextVar[Optional[str]] = ContextVar("job_id", default=None)

_CONTEXT_VARS = {
    "entity_type": entity_type_var,
    "entity_id": entity_id_var,
    "field_name": field_name_var,
    "job_id": job_id_var,
}


def set_job_context(
    entity_type: Optional[str] = None,
    entity_id: Optional[Any] = None,
    field_name: Optional[str] = None,
    job_id: Optional[Any] = None,
) -> None:
    """
    Set pipeline identifiers for automatic log propagation.

    Args:
        entity_type: Entity type being processed
        entity_id: Entity id being processed
        field_name: Target field name
        job_id: Durable queue item id
    """
    if entity_type is not None:
        entity_type_var.set(entity_type)
    if entity_id is not None:
        entity_id_var.set(str(entity_id))
    if field_name is not None:
        field_name_var.set(field_name)
    if job_id is not None:
        job_id_var.set(str(job_id))


def clear_job_context() -> None:
    """Clear all pipeline context variables."""
    for var in _CONTEXT_VARS.values():
        var.set(None)


@contextmanager
def job_context(**kwargs: Any) -> Iterator[None]:
    """Bind pipeline identifiers for the duration of a block."""
    tokens = []
    for name, value in kwargs.items():
        var = _CONTEXT_VARS.get(name)
        if var is not None and value is not None:
            tokens.append((var, var.set(str(value))))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def add_job_context(
    logger: Any,
    method_name: str,
    event_dict: dict,
) -> dict:
    """Structlog processor that adds the pipeline identifiers to log entries."""
    for name, var in _CONTEXT_VARS.items():
        value = var.get()
        if value:
            event_dict.setdefault(name, value)
    return event_dict


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================


def configure_logging() -> None:
    """Configure structured logging."""
    settings = get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        add_job_context,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.enable_structured_logging:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Structured logger instance
    """
    return structlog.get_logger(name)


# Initialize logging on import
configure_logging()
