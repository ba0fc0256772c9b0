"""
Durable work queue backed by SQLAlchemy.

Items are (entity, field) jobs serialized as ProcessingJob JSON. Next to
the items the queue keeps a per-entity counter of outstanding jobs that is
updated in the same transaction as every enqueue and acknowledgement, so
exactly one acknowledgement observes that an entity has nothing left.

Claims are leases: an item claimed by a worker that died becomes
claimable again once its lease expires, which makes delivery
at-least-once.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import Float, Integer, Text, create_engine, func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from ai_interpolator.core.exceptions import InterpolatorError
from ai_interpolator.core.settings import get_settings
from ai_interpolator.models import JobState, ProcessingJob
from ai_interpolator.utils.logger import get_logger
from ai_interpolator.utils import metrics

logger = get_logger(__name__)


# =============================================================================
# TABLES
# =============================================================================


class QueueBase(DeclarativeBase):
    type_annotation_map = {
        str: Text,
        int: Integer,
        float: Float,
    }


class QueueItemTable(QueueBase):
    __tablename__ = "interpolator_queue_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    queue_name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    entity_key: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(Text, default=JobState.PENDING.value, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    lease_expires_at: Mapped[Optional[float]] = mapped_column(Float)
    error: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[float] = mapped_column(Float, nullable=False)


class EntityJobCounterTable(QueueBase):
    __tablename__ = "interpolator_entity_job_counters"

    queue_name: Mapped[str] = mapped_column(Text, primary_key=True)
    entity_key: Mapped[str] = mapped_column(Text, primary_key=True)
    pending: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class ClaimedItem:
    """An item leased to a worker."""
    id: int
    job: ProcessingJob
    attempts: int
    lease_expires_at: float


@dataclass
class AckResult:
    """Counter state of an entity right after one of its jobs was acknowledged."""
    entity_key: str
    remaining: int
    failed: int

    @property
    def is_last(self) -> bool:
        return self.remaining == 0


class QueueItemNotFoundError(InterpolatorError):
    error_code = "QUEUE_ITEM_NOT_FOUND"


# =============================================================================
# QUEUE
# =============================================================================


def create_queue_engine(url: str) -> Engine:
    """Engine for the queue database; in-memory SQLite shares one connection."""
    kwargs: Dict[str, Any] = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


class WorkQueue:
    """
    Named durable queue of processing jobs.

    Usage:
        queue = WorkQueue("sqlite:///queue.db")
        queue.enqueue(job)
        item = queue.claim()
        result = queue.complete(item.id)
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        name: Optional[str] = None,
        lease_seconds: Optional[int] = None,
        engine: Optional[Engine] = None,
    ):
        settings = get_settings()
        self.name = name or settings.queue_name
        self.lease_seconds = lease_seconds if lease_seconds is not None else settings.queue_lease_seconds
        self.engine = engine or create_queue_engine(database_url or settings.queue_database_url)
        self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)
        QueueBase.metadata.create_all(self.engine)

    def _session(self) -> Session:
        return self._sessions()

    def _update_depth(self, session: Session) -> None:
        metrics.queue_depth.labels(queue=self.name).set(self._pending(session))

    def _pending(self, session: Session) -> int:
        return session.scalar(
            select(func.count(QueueItemTable.id)).where(
                QueueItemTable.queue_name == self.name,
                QueueItemTable.state != JobState.FAILED.value,
            )
        ) or 0

    # =========================================================================
    # PRODUCER
    # =========================================================================

    def enqueue(self, job: ProcessingJob) -> int:
        """Persist a job and count it against its entity. Returns the item id."""
        with self._session() as session, session.begin():
            item = QueueItemTable(
                queue_name=self.name,
                entity_key=job.entity_key,
                payload=job.to_payload(),
                state=JobState.PENDING.value,
                attempts=0,
                created_at=time.time(),
            )
            session.add(item)
            self._adjust_counter(session, job.entity_key, pending=1)
            session.flush()
            item_id = item.id
            self._update_depth(session)

        logger.debug("Job enqueued", queue=self.name, item_id=item_id, entity=job.entity_key, field_name=job.field_name)
        return item_id

    def _adjust_counter(self, session: Session, entity_key: str, pending: int = 0, failed: int = 0) -> None:
        result = session.execute(
            update(EntityJobCounterTable)
            .where(
                EntityJobCounterTable.queue_name == self.name,
                EntityJobCounterTable.entity_key == entity_key,
            )
            .values(
                pending=EntityJobCounterTable.pending + pending,
                failed=EntityJobCounterTable.failed + failed,
            )
        )
        if result.rowcount == 0:
            session.add(
                EntityJobCounterTable(
                    queue_name=self.name,
                    entity_key=entity_key,
                    pending=max(pending, 0),
                    failed=max(failed, 0),
                )
            )

    # =========================================================================
    # CONSUMER
    # =========================================================================

    def claim(self) -> Optional[ClaimedItem]:
        """
        Lease the oldest claimable item.

        Pending items and claimed items whose lease has expired are
        claimable. Returns None when nothing is claimable.
        """
        while True:
            now = time.time()
            claimable = (
                (QueueItemTable.state == JobState.PENDING.value)
                | (
                    (QueueItemTable.state == JobState.CLAIMED.value)
                    & (QueueItemTable.lease_expires_at < now)
                )
            )
            with self._session() as session, session.begin():
                item = session.scalars(
                    select(QueueItemTable)
                    .where(QueueItemTable.queue_name == self.name, claimable)
                    .order_by(QueueItemTable.id)
                    .limit(1)
                ).first()
                if item is None:
                    return None

                lease = now + self.lease_seconds
                # Conditional update: another worker may have claimed it meanwhile
                result = session.execute(
                    update(QueueItemTable)
                    .where(QueueItemTable.id == item.id, claimable)
                    .values(
                        state=JobState.CLAIMED.value,
                        lease_expires_at=lease,
                        attempts=QueueItemTable.attempts + 1,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    continue
                if item.state == JobState.CLAIMED.value:
                    logger.info("Reclaiming item with expired lease", queue=self.name, item_id=item.id)
                return ClaimedItem(
                    id=item.id,
                    job=ProcessingJob.from_payload(item.payload),
                    attempts=item.attempts + 1,
                    lease_expires_at=lease,
                )

    def complete(self, item_id: int) -> AckResult:
        """Remove a processed item and decrement its entity's counter."""
        with self._session() as session, session.begin():
            item = self._get(session, item_id)
            entity_key = item.entity_key
            session.delete(item)
            self._adjust_counter(session, entity_key, pending=-1)
            result = self._settle(session, entity_key)
            self._update_depth(session)
        return result

    def fail(self, item_id: int, error: Optional[str] = None) -> AckResult:
        """Mark an item failed (it is not retried) and count the failure."""
        with self._session() as session, session.begin():
            item = self._get(session, item_id)
            item.state = JobState.FAILED.value
            item.error = error
            item.lease_expires_at = None
            self._adjust_counter(session, item.entity_key, pending=-1, failed=1)
            result = self._settle(session, item.entity_key)
            self._update_depth(session)
        return result

    def record_failure(self, entity_key: str) -> bool:
        """
        Count a failure that happened outside the queue against an entity's round.

        Returns False when the entity has no outstanding jobs, so nothing
        is left to settle its status.
        """
        with self._session() as session, session.begin():
            result = session.execute(
                update(EntityJobCounterTable)
                .where(
                    EntityJobCounterTable.queue_name == self.name,
                    EntityJobCounterTable.entity_key == entity_key,
                    EntityJobCounterTable.pending > 0,
                )
                .values(failed=EntityJobCounterTable.failed + 1)
            )
            return result.rowcount > 0

    def _get(self, session: Session, item_id: int) -> QueueItemTable:
        """Claimed item by id; items already acknowledged count as missing."""
        item = session.get(QueueItemTable, item_id)
        if item is None or item.queue_name != self.name or item.state != JobState.CLAIMED.value:
            raise QueueItemNotFoundError(
                f"Queue item {item_id} not found or not claimed",
                details={"queue": self.name, "item_id": item_id},
            )
        return item

    def _settle(self, session: Session, entity_key: str) -> AckResult:
        session.flush()
        counter = session.get(EntityJobCounterTable, (self.name, entity_key))
        session.refresh(counter)
        result = AckResult(entity_key=entity_key, remaining=max(counter.pending, 0), failed=counter.failed)
        if result.is_last:
            # Round finished; the next save starts from a clean counter
            session.delete(counter)
        return result

    # =========================================================================
    # ADMINISTRATION
    # =========================================================================

    def requeue_failed(self) -> int:
        """Make failed items claimable again. Returns how many were requeued."""
        with self._session() as session, session.begin():
            items = session.scalars(
                select(QueueItemTable).where(
                    QueueItemTable.queue_name == self.name,
                    QueueItemTable.state == JobState.FAILED.value,
                )
            ).all()
            per_entity: Dict[str, int] = {}
            for item in items:
                item.state = JobState.PENDING.value
                item.error = None
                per_entity[item.entity_key] = per_entity.get(item.entity_key, 0) + 1
            for entity_key, count in per_entity.items():
                self._adjust_counter(session, entity_key, pending=count)
                session.flush()
                counter = session.get(EntityJobCounterTable, (self.name, entity_key))
                session.refresh(counter)
                counter.failed = max(counter.failed - count, 0)
            self._update_depth(session)

        if items:
            logger.info("Failed items requeued", queue=self.name, count=len(items))
        return len(items)

    def pending_count(self) -> int:
        """Items not yet processed (pending or claimed)."""
        with self._session() as session:
            return self._pending(session)

    def count(self, state: Optional[JobState] = None) -> int:
        """Items in the queue, optionally filtered by state."""
        query = select(func.count(QueueItemTable.id)).where(QueueItemTable.queue_name == self.name)
        if state is not None:
            query = query.where(QueueItemTable.state == state.value)
        with self._session() as session:
            return session.scalar(query) or 0

    def remaining_jobs(self, entity_key: str) -> int:
        """Outstanding jobs of one entity."""
        with self._session() as session:
            counter = session.get(EntityJobCounterTable, (self.name, entity_key))
            return counter.pending if counter is not None else 0

    def close(self) -> None:
        self.engine.dispose()
