"""
Processing strategies.

- DirectStrategy: inline, during the save
- BatchStrategy: after the host write, same request
- QueueStrategy / QueueWorker: durable queue, processed later
"""

from ai_interpolator.processing.base import (
    ProcessingStrategy,
    ImportCapable,
    DeferredCapable,
    write_field,
)
from ai_interpolator.processing.direct import DirectStrategy
from ai_interpolator.processing.batch import BatchStrategy
from ai_interpolator.processing.work_queue import (
    WorkQueue,
    ClaimedItem,
    AckResult,
    QueueItemNotFoundError,
    create_queue_engine,
)
from ai_interpolator.processing.queue import QueueStrategy, QueueWorker

__all__ = [
    # Base
    "ProcessingStrategy",
    "ImportCapable",
    "DeferredCapable",
    "write_field",
    # Strategies
    "DirectStrategy",
    "BatchStrategy",
    "QueueStrategy",
    # Queue
    "WorkQueue",
    "QueueWorker",
    "ClaimedItem",
    "AckResult",
    "QueueItemNotFoundError",
    "create_queue_engine",
]
