"""
Direct strategy: run the field inline, during the save.
"""

import time

from ai_interpolator.core.context import SaveContext
from ai_interpolator.models import Entity, EntityStatus, FieldDefinition, InterpolationConfig, WorkerType
from ai_interpolator.processing.base import ProcessingStrategy
from ai_interpolator.services.rule_runner import RuleRunner
from ai_interpolator.services.status_tracker import StatusTracker
from ai_interpolator.utils.logger import get_logger, job_context
from ai_interpolator.utils import metrics

logger = get_logger(__name__)


class DirectStrategy(ProcessingStrategy):
    """
    Runs every scheduled field immediately on the entity being saved.

    The generated values and the final status are written together with
    the entity by the host save.
    """

    worker_type = WorkerType.DIRECT

    def __init__(self, runner: RuleRunner, status_tracker: StatusTracker):
        self.runner = runner
        self.status_tracker = status_tracker

    async def pre_processing(self, entity: Entity, context: SaveContext) -> None:
        self.status_tracker.set_status(entity, EntityStatus.PROCESSING)

    async def schedule(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
        context: SaveContext,
    ) -> bool:
        start = time.time()
        with job_context(entity_type=entity.entity_type, entity_id=entity.id, field_name=field_definition.name):
            try:
                await self.runner.run(entity, field_definition, config)
            except Exception as e:
                context.mark_failed(self.worker_type.value, entity.key)
                context.warn(f"Could not generate {field_definition.label or field_definition.name}: {e}")
                metrics.track_job(self.worker_type.value, "failed")
                logger.warning("Direct job failed", rule=config.rule, error=str(e))
                return False
            finally:
                metrics.job_duration.labels(worker=self.worker_type.value).observe(time.time() - start)

        metrics.track_job(self.worker_type.value, "finished")
        return True

    async def post_processing(self, entity: Entity, context: SaveContext) -> None:
        failed = context.entity_failed(entity.key)
        self.status_tracker.set_status(entity, EntityStatus.FAILED if failed else EntityStatus.FINISHED)
