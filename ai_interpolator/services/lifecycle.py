"""
Save lifecycle wiring.

Connects the EntityModifier to an EntityStorage so that every save runs
the pipeline: presave for inline strategies, postsave for queued ones,
then the deferred batch.
"""

from ai_interpolator.core.context import SaveContext
from ai_interpolator.models import Entity
from ai_interpolator.services.entity_modifier import EntityModifier
from ai_interpolator.services.storage import EntityStorage, SaveListener
from ai_interpolator.utils.logger import get_logger

logger = get_logger(__name__)


class InterpolatorLifecycle(SaveListener):
    """
    Storage listener running the pipeline on save.

    Usage:
        lifecycle = InterpolatorLifecycle(modifier)
        lifecycle.attach(storage)
        await storage.save(entity)
    """

    def __init__(self, modifier: EntityModifier):
        self.modifier = modifier

    def attach(self, storage: EntityStorage) -> "InterpolatorLifecycle":
        storage.add_listener(self)
        return self

    async def presave(self, entity: Entity, is_insert: bool, context: SaveContext) -> None:
        await self.modifier.save_entity(entity, is_insert=False, context=context)

    async def postsave(self, entity: Entity, is_insert: bool, context: SaveContext) -> None:
        await self.modifier.save_entity(entity, is_insert=True, context=context)
        await self.modifier.entity_saved(context)
        if context.warnings:
            logger.info("Save finished with warnings", entity=entity.key, warnings=len(context.warnings))
