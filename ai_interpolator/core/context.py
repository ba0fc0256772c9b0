"""
Per-save context.

A SaveContext travels with one host save call. It replaces process-wide
flags: the re-entrancy guard, the request-scoped batch queue and the
user-visible warnings all live here.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Set, Tuple

if TYPE_CHECKING:
    from ai_interpolator.models import FieldDefinition, InterpolationConfig


@dataclass
class DeferredJob:
    """A batch job waiting for the end of the save lifecycle."""
    entity_type: str
    entity_id: Any
    field_definition: "FieldDefinition"
    config: "InterpolationConfig"

    @property
    def entity_key(self) -> str:
        return f"{self.entity_type}:{self.entity_id}"


@dataclass
class SaveContext:
    """State scoped to one save call."""
    suppress_pipeline: bool = False
    deferred: List[DeferredJob] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    # Entities handed to the queue in this save: key -> (entity_type, entity_id)
    queued: Dict[str, Tuple[str, Any]] = field(default_factory=dict)
    # "<worker>:<entity key>" pairs with at least one failed field in this save
    failed: Set[str] = field(default_factory=set)
    # Entity keys with a failed field under any worker
    failed_entities: Set[str] = field(default_factory=set)

    @classmethod
    def suppressed(cls) -> "SaveContext":
        """Context for the pipeline's own re-saves."""
        return cls(suppress_pipeline=True)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def mark_failed(self, worker: str, entity_key: str) -> None:
        self.failed.add(f"{worker}:{entity_key}")
        self.failed_entities.add(entity_key)

    def has_failed(self, worker: str, entity_key: str) -> bool:
        return f"{worker}:{entity_key}" in self.failed

    def entity_failed(self, entity_key: str) -> bool:
        """Whether any field of the entity failed in this save, whichever worker ran it."""
        return entity_key in self.failed_entities
