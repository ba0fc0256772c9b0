"""
Pipeline enums.

Shared enums for status tracking, config modes and worker selection.
"""

from enum import Enum


class EntityStatus(Enum):
    """Per-entity processing status stored in the status field."""
    PENDING = "pending"           # Enabled fields exist, nothing scheduled yet
    PROCESSING = "processing"     # At least one job scheduled or running
    FAILED = "failed"             # A job errored and the entity could not be completed
    FINISHED = "finished"         # Every job for the entity completed


class InterpolationMode(Enum):
    """How prompts are built for a field."""
    BASE = "base"                 # One prompt per source delta
    TOKEN = "token"               # One prompt rendered from entity tokens


class WorkerType(Enum):
    """Processing strategy a field is dispatched to."""
    DIRECT = "direct"
    BATCH = "batch"
    QUEUE = "queue"

    @classmethod
    def parse(cls, value: str) -> "WorkerType":
        """Parse a configured worker type; unknown values run directly."""
        try:
            return cls(value)
        except ValueError:
            return cls.DIRECT


class JobState(Enum):
    """Lifecycle of a durable queue item."""
    PENDING = "pending"
    CLAIMED = "claimed"
    FAILED = "failed"
