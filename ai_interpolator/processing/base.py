"""
Processing strategy interface.

A strategy decides when a scheduled field actually runs: inline during
the save, after the host write, or later in a queue worker.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ai_interpolator.core.context import SaveContext
from ai_interpolator.core.exceptions import ConcurrentModificationError
from ai_interpolator.core.settings import get_settings
from ai_interpolator.models import Entity, FieldDefinition, InterpolationConfig, WorkerType
from ai_interpolator.services.storage import EntityStorage
from ai_interpolator.utils.logger import get_logger

logger = get_logger(__name__)


class ProcessingStrategy(ABC):
    """
    Base class for processing strategies.

    The modifier calls ``pre_processing`` once per entity before the
    first field is scheduled and ``post_processing`` once after the last.
    """

    worker_type: WorkerType = WorkerType.DIRECT

    async def pre_processing(self, entity: Entity, context: SaveContext) -> None:
        pass

    @abstractmethod
    async def schedule(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
        context: SaveContext,
    ) -> bool:
        """
        Schedule or run one field.

        Returns:
            True when the field was run or handed off
        """

    async def post_processing(self, entity: Entity, context: SaveContext) -> None:
        pass


class ImportCapable:
    """Marker: the strategy dispatches only after the entity has been written."""


class DeferredCapable(ABC):
    """Strategy with work left over after the host write."""

    @abstractmethod
    async def drain(self, context: SaveContext) -> None:
        pass


async def write_field(
    storage: EntityStorage,
    entity_type: str,
    entity_id: Any,
    field_name: str,
    items: List[Dict[str, Any]],
    max_attempts: Optional[int] = None,
) -> Optional[Entity]:
    """
    Copy one field's items onto a freshly loaded entity and save it.

    The save is a revision compare-and-swap; on conflict the entity is
    reloaded and the write retried. Other fields are never overwritten.

    Returns:
        The saved entity, or None when it no longer exists

    Raises:
        ConcurrentModificationError: All attempts conflicted
    """
    attempts = max_attempts or get_settings().save_max_attempts
    for attempt in range(1, attempts + 1):
        fresh = await storage.load(entity_type, entity_id)
        if fresh is None:
            return None
        fresh.set(field_name, items)
        try:
            return await storage.save(
                fresh,
                context=SaveContext.suppressed(),
                expected_revision=fresh.revision,
            )
        except ConcurrentModificationError:
            if attempt == attempts:
                raise
            logger.debug(
                "Field write conflicted, retrying",
                entity_type=entity_type,
                entity_id=entity_id,
                field_name=field_name,
                attempt=attempt,
            )
    return None
