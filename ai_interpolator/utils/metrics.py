"""
Prometheus metrics collection.
"""
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from ai_interpolator.core.settings import get_settings

# Create a custom registry
registry = CollectorRegistry()

# Job metrics
jobs_total = Counter(
    "interpolator_jobs_total",
    "Field jobs processed",
    ["worker", "status"],
    registry=registry,
)

job_duration = Histogram(
    "interpolator_job_duration_seconds",
    "Time spent running one field job",
    ["worker"],
    registry=registry,
)

# Generation backend metrics
generation_count = Counter(
    "interpolator_generation_total",
    "Calls to the generation backend",
    ["operation", "status"],
    registry=registry,
)

generation_duration = Histogram(
    "interpolator_generation_duration_seconds",
    "Generation backend latency",
    ["operation"],
    registry=registry,
)

# Value metrics
values_total = Counter(
    "interpolator_values_total",
    "Candidate values by verification outcome",
    ["rule", "outcome"],
    registry=registry,
)

# Queue metrics
queue_depth = Gauge(
    "interpolator_queue_depth",
    "Pending items in the durable work queue",
    ["queue"],
    registry=registry,
)

entity_status_transitions = Counter(
    "interpolator_entity_status_total",
    "Entity status transitions",
    ["status"],
    registry=registry,
)


def track_job(worker: str, status: str) -> None:
    """Count a finished job."""
    jobs_total.labels(worker=worker, status=status).inc()


def track_values(rule: str, accepted: int, rejected: int) -> None:
    """Count verified and dropped candidate values."""
    if accepted:
        values_total.labels(rule=rule, outcome="accepted").inc(accepted)
    if rejected:
        values_total.labels(rule=rule, outcome="rejected").inc(rejected)


def export_metrics() -> Optional[bytes]:
    """
    Render the registry in the Prometheus text format for the host to serve.

    Returns None when metrics are disabled.
    """
    if not get_settings().enable_metrics:
        return None
    return generate_latest(registry)
