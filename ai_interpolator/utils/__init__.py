"""
Logging and metrics utilities.
"""
from .logger import (
    clear_job_context,
    configure_logging,
    get_logger,
    job_context,
    set_job_context,
)
from . import metrics

__all__ = [
    "clear_job_context",
    "configure_logging",
    "get_logger",
    "job_context",
    "set_job_context",
    "metrics",
]
