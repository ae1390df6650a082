"""
Background recovery for entities stuck in a non-terminal state
Re-enqueues a job for every entity whose lease expired (or that was never claimed)
"""
import logging
import threading
import time
from datetime import timedelta
from typing import Any, Dict, Optional

from ..models.schemas import (
    AudioJob,
    CATEGORY_QUEUES,
    DocumentJob,
    EntityCategory,
    EntityStatus,
    utcnow
)
from ..models.state_machine import active_statuses


logger = logging.getLogger(__name__)


class RecoveryService:
    """Periodic sweep that puts stuck entities back on their queue"""

    def __init__(
        self,
        entity_store,
        job_queue,
        check_interval: int = 900,
        unclaimed_grace_seconds: int = 900,
        batch_size: int = 100
    ):
        """
        Initialize recovery service

        Args:
            entity_store: EntityStore instance
            job_queue: SQSJobQueue instance
            check_interval: Seconds between sweeps
            unclaimed_grace_seconds: How long a pending entity may wait before it
                is considered lost
            batch_size: Maximum entities re-enqueued per category and sweep
        """
        self.entity_store = entity_store
        self.job_queue = job_queue
        self.check_interval = check_interval
        self.unclaimed_grace_seconds = unclaimed_grace_seconds
        self.batch_size = batch_size
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        logger.info(f"RecoveryService initialized: check_interval={check_interval}s")

    def start_background_sweep(self) -> None:
        """Start the sweep loop in a daemon thread"""
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="recovery-sweep", daemon=True)
        self._thread.start()

    def stop_background_sweep(self, timeout: Optional[float] = None) -> None:
        """Stop the sweep loop"""
        logger.info("Stopping recovery sweep...")
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def _loop(self) -> None:
        logger.info("Starting recovery sweep service...")
        while not self._stop_event.is_set():
            try:
                self.run_sweep()
            except Exception as e:
                logger.error(f"Error in recovery sweep: {e}", exc_info=True)
            self._stop_event.wait(self.check_interval)

    def _job_for(self, category: EntityCategory, entity):
        if category == EntityCategory.TRANSCRIPT:
            return AudioJob(entity_id=entity.id, source_ref=entity.source_ref)
        return DocumentJob(
            entity_id=entity.id,
            source_ref=entity.source_ref,
            declared_media_type=entity.declared_media_type
        )

    def run_sweep(self) -> Dict[str, Any]:
        """
        Run a single sweep

        Returns:
            dict: Number of entities found and re-enqueued per category
        """
        start_time = time.time()
        now = utcnow()
        unclaimed_before = now - timedelta(seconds=self.unclaimed_grace_seconds)
        stats: Dict[str, Any] = {}

        for category, queue_name in CATEGORY_QUEUES.items():
            if queue_name not in self.job_queue.queue_urls:
                continue

            statuses = [EntityStatus.PENDING] + active_statuses(category)
            stale = self.entity_store.find_stale(
                category, statuses, now, unclaimed_before, limit=self.batch_size
            )

            requeued = 0
            for entity in stale:
                try:
                    self.job_queue.send(queue_name, self._job_for(category, entity))
                    requeued += 1
                except Exception as e:
                    logger.error(f"Failed to re-enqueue {category.value} {entity.id}: {e}")

            if stale:
                logger.info(f"Re-enqueued {requeued}/{len(stale)} stuck {category.value} entities")
            stats[category.value] = {"found": len(stale), "requeued": requeued}

        stats["elapsed_time"] = time.time() - start_time
        return stats
