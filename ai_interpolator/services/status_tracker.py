"""
Per-entity processing status.

The status lives in the ``ai_interpolator_status`` list field. The field
is attached to a bundle while at least one of its fields has interpolation
enabled and detached when none is left.
"""

from typing import Any, Optional

from ai_interpolator.core.config import FieldConfigRepository
from ai_interpolator.core.context import SaveContext
from ai_interpolator.core.exceptions import ConcurrentModificationError
from ai_interpolator.core.settings import get_settings
from ai_interpolator.models import STATUS_FIELD, Entity, EntityStatus
from ai_interpolator.services.storage import EntityStorage
from ai_interpolator.utils.logger import get_logger
from ai_interpolator.utils import metrics

logger = get_logger(__name__)


class StatusTracker:
    """Reads, writes and persists entity status."""

    def __init__(
        self,
        repository: FieldConfigRepository,
        storage: Optional[EntityStorage] = None,
    ):
        self.repository = repository
        self.storage = storage

    def has_status_field(self, entity: Entity) -> bool:
        if entity.has_field(STATUS_FIELD):
            return True
        return self.repository.get_field_definition(entity.entity_type, entity.bundle, STATUS_FIELD) is not None

    def get_status(self, entity: Entity) -> Optional[EntityStatus]:
        """Current status; pending when the field exists but is unset."""
        if not self.has_status_field(entity):
            return None
        value = entity.get_value(STATUS_FIELD)
        if not value:
            return EntityStatus.PENDING
        try:
            return EntityStatus(value)
        except ValueError:
            logger.warning("Unknown entity status", entity=entity.key, status=value)
            return None

    def set_status(self, entity: Entity, status: EntityStatus) -> bool:
        """Set the status in memory. Returns False when the bundle has no status field."""
        if not self.has_status_field(entity):
            return False
        previous = entity.get_value(STATUS_FIELD)
        entity.set(STATUS_FIELD, status.value)
        if previous != status.value:
            metrics.entity_status_transitions.labels(status=status.value).inc()
            logger.debug("Entity status changed", entity=entity.key, previous=previous, status=status.value)
        return True

    async def persist_status(
        self,
        entity_type: str,
        entity_id: Any,
        status: EntityStatus,
    ) -> Optional[Entity]:
        """
        Reload an entity, set its status and save it without re-running the pipeline.

        Returns the saved entity, or None when it no longer exists.
        """
        if self.storage is None:
            raise RuntimeError("StatusTracker has no entity storage")
        attempts = get_settings().save_max_attempts
        for attempt in range(1, attempts + 1):
            entity = await self.storage.load(entity_type, entity_id)
            if entity is None:
                logger.info("Entity vanished before status update", entity_type=entity_type, entity_id=entity_id)
                return None
            if not self.set_status(entity, status):
                return entity
            try:
                return await self.storage.save(
                    entity,
                    context=SaveContext.suppressed(),
                    expected_revision=entity.revision,
                )
            except ConcurrentModificationError:
                if attempt == attempts:
                    raise
                logger.debug("Status save conflicted, retrying", entity_type=entity_type, entity_id=entity_id)
        return None

    def sync_status_field(self, entity_type: str, bundle: str) -> bool:
        """Attach or detach the status field on a bundle. See FieldConfigRepository."""
        return self.repository.sync_status_field(entity_type, bundle)
