"""
Batch strategy: run fields after the host write, in the same request.
"""

import time
from typing import Any, Dict, Tuple

from ai_interpolator.core.context import DeferredJob, SaveContext
from ai_interpolator.models import Entity, EntityStatus, FieldDefinition, InterpolationConfig, WorkerType
from ai_interpolator.processing.base import DeferredCapable, ProcessingStrategy, write_field
from ai_interpolator.services.rule_runner import RuleRunner
from ai_interpolator.services.status_tracker import StatusTracker
from ai_interpolator.services.storage import EntityStorage
from ai_interpolator.utils.logger import get_logger, job_context
from ai_interpolator.utils import metrics

logger = get_logger(__name__)


class BatchStrategy(DeferredCapable, ProcessingStrategy):
    """
    Collects fields on the save context and runs them once the entity
    has been written.

    Each job works on a freshly loaded entity and writes only its own
    field back, with the pipeline suppressed for that re-save.
    """

    worker_type = WorkerType.BATCH

    def __init__(self, runner: RuleRunner, status_tracker: StatusTracker, storage: EntityStorage):
        self.runner = runner
        self.status_tracker = status_tracker
        self.storage = storage

    async def pre_processing(self, entity: Entity, context: SaveContext) -> None:
        self.status_tracker.set_status(entity, EntityStatus.PROCESSING)

    async def schedule(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
        context: SaveContext,
    ) -> bool:
        context.deferred.append(
            DeferredJob(
                entity_type=entity.entity_type,
                entity_id=entity.id,
                field_definition=field_definition,
                config=config,
            )
        )
        logger.debug("Batch job deferred", entity=entity.key, field_name=field_definition.name)
        return True

    async def drain(self, context: SaveContext) -> None:
        """Run every deferred job in insertion order, then settle statuses."""
        jobs, context.deferred = context.deferred, []
        if not jobs:
            return

        entities: Dict[str, Tuple[str, Any]] = {}
        for job in jobs:
            entities.setdefault(job.entity_key, (job.entity_type, job.entity_id))
            await self._run_job(job, context)

        for entity_key, (entity_type, entity_id) in entities.items():
            if entity_key in context.queued:
                # Queued jobs of the same save settle the status on their last ack
                continue
            failed = context.entity_failed(entity_key)
            await self.status_tracker.persist_status(
                entity_type,
                entity_id,
                EntityStatus.FAILED if failed else EntityStatus.FINISHED,
            )

    async def _run_job(self, job: DeferredJob, context: SaveContext) -> None:
        field_name = job.field_definition.name
        start = time.time()
        with job_context(entity_type=job.entity_type, entity_id=job.entity_id, field_name=field_name):
            entity = await self.storage.load(job.entity_type, job.entity_id)
            if entity is None:
                logger.info("Entity deleted before batch job ran")
                return
            try:
                await self.runner.run(entity, job.field_definition, job.config)
                await write_field(self.storage, job.entity_type, job.entity_id, field_name, entity.get(field_name))
            except Exception as e:
                context.mark_failed(self.worker_type.value, job.entity_key)
                context.warn(f"Could not generate {job.field_definition.label or field_name}: {e}")
                metrics.track_job(self.worker_type.value, "failed")
                logger.warning("Batch job failed", rule=job.config.rule, error=str(e))
                return
            finally:
                metrics.job_duration.labels(worker=self.worker_type.value).observe(time.time() - start)
        metrics.track_job(self.worker_type.value, "finished")
