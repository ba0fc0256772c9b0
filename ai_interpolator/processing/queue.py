"""
Queue strategy and worker.

The strategy persists one ProcessingJob per field once the entity has
been written; QueueWorker processes them later, possibly in another
process, always against a freshly loaded entity.
"""

import asyncio
import time
from collections import defaultdict
from typing import Dict, Optional

from ai_interpolator.core.config import FieldConfigRepository
from ai_interpolator.core.context import SaveContext
from ai_interpolator.core.exceptions import ConcurrentModificationError, ConfigurationError
from ai_interpolator.core.settings import get_settings
from ai_interpolator.models import (
    Entity,
    EntityStatus,
    FieldDefinition,
    InterpolationConfig,
    ProcessingJob,
    WorkerType,
)
from ai_interpolator.processing.base import DeferredCapable, ImportCapable, ProcessingStrategy, write_field
from ai_interpolator.processing.work_queue import AckResult, ClaimedItem, QueueItemNotFoundError, WorkQueue
from ai_interpolator.services.rule_runner import RuleRunner
from ai_interpolator.services.status_tracker import StatusTracker
from ai_interpolator.services.storage import EntityStorage
from ai_interpolator.utils.logger import get_logger, job_context
from ai_interpolator.utils import metrics

logger = get_logger(__name__)


class QueueStrategy(ImportCapable, DeferredCapable, ProcessingStrategy):
    """Hands fields off to the durable work queue."""

    worker_type = WorkerType.QUEUE

    def __init__(self, work_queue: WorkQueue, status_tracker: StatusTracker):
        self.work_queue = work_queue
        self.status_tracker = status_tracker

    async def schedule(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
        context: SaveContext,
    ) -> bool:
        if entity.key not in context.queued:
            await self.status_tracker.persist_status(entity.entity_type, entity.id, EntityStatus.PROCESSING)
            context.queued[entity.key] = (entity.entity_type, entity.id)

        job = ProcessingJob(
            entity_id=entity.id,
            entity_type=entity.entity_type,
            field_name=field_definition.name,
            interpolator_config=config.to_dict(),
        )
        item_id = self.work_queue.enqueue(job)
        logger.info("Field queued", entity=entity.key, field_name=field_definition.name, item_id=item_id)
        return True

    async def drain(self, context: SaveContext) -> None:
        """Carry failures of other workers in this save over to the queued round."""
        for entity_key, (entity_type, entity_id) in context.queued.items():
            if not context.entity_failed(entity_key):
                continue
            if not self.work_queue.record_failure(entity_key):
                # Every queued job already finished; settle here
                await self.status_tracker.persist_status(entity_type, entity_id, EntityStatus.FAILED)


class QueueWorker:
    """
    Processes queued field jobs.

    Jobs of the same entity are serialized by an in-process lock; across
    processes, field writes are guarded by revision compare-and-swap.
    Delivery is at-least-once: acknowledging an item another delivery
    already removed is a no-op.
    """

    def __init__(
        self,
        work_queue: WorkQueue,
        storage: EntityStorage,
        repository: FieldConfigRepository,
        runner: RuleRunner,
        status_tracker: StatusTracker,
    ):
        self.work_queue = work_queue
        self.storage = storage
        self.repository = repository
        self.runner = runner
        self.status_tracker = status_tracker
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def process_item(self, item: ClaimedItem) -> bool:
        """
        Process one claimed item.

        Errors never propagate: the item is marked failed and the entity
        status set to failed.

        Returns:
            True when the item was processed successfully
        """
        job = item.job
        async with self._locks[job.entity_key]:
            with job_context(
                entity_type=job.entity_type,
                entity_id=job.entity_id,
                field_name=job.field_name,
                job_id=item.id,
            ):
                return await self._process(item, job)

    async def _process(self, item: ClaimedItem, job: ProcessingJob) -> bool:
        start = time.time()
        try:
            entity = await self.storage.load(job.entity_type, job.entity_id)
            if entity is None:
                self._acknowledge(item)
                logger.info("Entity deleted, dropping queued job")
                return True

            field_definition = self.repository.get_field_definition(
                entity.entity_type, entity.bundle, job.field_name
            )
            if field_definition is None:
                raise ConfigurationError(
                    f"Field '{job.field_name}' no longer exists on {entity.entity_type}:{entity.bundle}"
                )

            await self.runner.run(entity, field_definition, job.config())
            await write_field(
                self.storage,
                job.entity_type,
                job.entity_id,
                job.field_name,
                entity.get(job.field_name),
            )
        except Exception as e:
            logger.warning("Queued job failed", error=str(e), attempts=item.attempts)
            metrics.track_job(WorkerType.QUEUE.value, "failed")
            if self._acknowledge(item, error=str(e)) is not None:
                await self._settle(job, EntityStatus.FAILED)
            return False
        finally:
            metrics.job_duration.labels(worker=WorkerType.QUEUE.value).observe(time.time() - start)

        metrics.track_job(WorkerType.QUEUE.value, "finished")
        result = self._acknowledge(item)
        if result is not None and result.is_last:
            status = EntityStatus.FAILED if result.failed else EntityStatus.FINISHED
            await self._settle(job, status)
            logger.info("Last queued job for entity done", status=status.value)
        return True

    def _acknowledge(self, item: ClaimedItem, error: Optional[str] = None) -> Optional[AckResult]:
        """Complete or fail an item; None when another delivery already acknowledged it."""
        try:
            if error is None:
                return self.work_queue.complete(item.id)
            return self.work_queue.fail(item.id, error=error)
        except QueueItemNotFoundError:
            logger.debug("Item already acknowledged by another delivery", attempts=item.attempts)
            return None

    async def _settle(self, job: ProcessingJob, status: EntityStatus) -> None:
        try:
            await self.status_tracker.persist_status(job.entity_type, job.entity_id, status)
        except ConcurrentModificationError as e:
            logger.warning("Entity status could not be saved", status=status.value, error=str(e))

    async def run(self, time_limit: Optional[float] = None, max_items: Optional[int] = None) -> int:
        """
        Claim and process items until the queue is empty or a budget is hit.

        Args:
            time_limit: Seconds to keep claiming; defaults to the configured worker limit
            max_items: Maximum number of items to process

        Returns:
            Number of items processed
        """
        if time_limit is None:
            time_limit = get_settings().worker_time_limit
        deadline = time.monotonic() + time_limit
        processed = 0

        while time.monotonic() < deadline:
            if max_items is not None and processed >= max_items:
                break
            item = self.work_queue.claim()
            if item is None:
                break
            await self.process_item(item)
            processed += 1

        logger.info("Queue worker finished", queue=self.work_queue.name, processed=processed)
        return processed
