"""
Worker pool: consumer threads that turn queue messages into pipeline runs

Each logical queue gets its own set of daemon threads, bounded by the queue's
concurrency. ``process_message`` is the complete job body and is what the
consumer threads call for every message received.
"""
import logging
import threading
from datetime import timedelta
from typing import Callable, List, Optional

from pydantic import ValidationError

from ..models.schemas import (
    AudioJob,
    DocumentJob,
    Entity,
    EntityCategory,
    JobMessage,
    JobOutcome,
    QUEUE_CATEGORIES,
    utcnow
)
from ..models.state_machine import JobEvent, can_transition, claim_target, is_terminal, next_status
from ..exceptions import IngestionException, is_retryable
from ..pipeline.context import JobDeadline, PipelineContext


logger = logging.getLogger(__name__)


PipelineFn = Callable[[PipelineContext, Entity, object], object]


def _error_message(error: Exception) -> str:
    message = str(error) or error.__class__.__name__
    return message[:2000]


class WorkerPool:
    """Runs pipeline functions for jobs received from the job queue"""

    def __init__(self, job_queue, context: PipelineContext):
        """
        Initialize worker pool

        Args:
            job_queue: Queue with receive/ack/retry_later (SQSJobQueue)
            context: Shared pipeline context
        """
        self.job_queue = job_queue
        self.context = context
        self.config = context.config
        self._stop_event = threading.Event()
        self._threads: List[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def run(self, queue_name: str, concurrency: int, pipeline_fn: PipelineFn) -> None:
        """
        Start ``concurrency`` consumer threads for a queue

        Args:
            queue_name: Logical queue name ("resume", "document" or "audio")
            concurrency: Number of jobs processed at once
            pipeline_fn: Function called as ``pipeline_fn(context, entity, job)``
        """
        if queue_name not in QUEUE_CATEGORIES:
            raise ValueError(f"Unknown queue '{queue_name}'")

        for index in range(concurrency):
            thread = threading.Thread(
                target=self._consume,
                args=(queue_name, pipeline_fn),
                name=f"{queue_name}-worker-{index + 1}",
                daemon=True
            )
            thread.start()
            self._threads.append(thread)

        logger.info(f"Started {concurrency} worker(s) for queue '{queue_name}'")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal all consumers to stop and wait for in-flight jobs"""
        logger.info("Stopping worker pool...")
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = [thread for thread in self._threads if thread.is_alive()]
        if self._threads:
            logger.warning(f"{len(self._threads)} worker(s) still busy after stop timeout")

    def _consume(self, queue_name: str, pipeline_fn: PipelineFn) -> None:
        while not self._stop_event.is_set():
            try:
                messages = self.job_queue.receive(
                    queue_name,
                    max_messages=1,
                    visibility_timeout=self.config.lease_seconds
                )
                if not messages:
                    self._stop_event.wait(self.config.idle_sleep_seconds)
                    continue

                for message in messages:
                    self.process_message(queue_name, message, pipeline_fn)

            except Exception as e:
                logger.error(f"Error in '{queue_name}' consumer loop: {e}", exc_info=True)
                self._stop_event.wait(self.config.idle_sleep_seconds)

        logger.info(f"Worker {threading.current_thread().name} stopped")

    def _parse_job(self, queue_name: str, message: JobMessage):
        job_model = AudioJob if queue_name == "audio" else DocumentJob
        return job_model.model_validate(message.body)

    def claim(self, entity: Entity) -> bool:
        """
        Take the entity for this worker with a compare-and-swap write

        Returns:
            bool: False if the entity is not claimable or another worker won
        """
        now = utcnow()
        target = claim_target(entity, now)
        if target is None:
            return False

        fields = {
            "status": target,
            "claimed_until": now + timedelta(seconds=self.config.lease_seconds),
            "attempts": entity.attempts + 1,
        }
        if not self.context.entity_store.compare_and_set(entity, fields, timeout=self.context.call_timeout()):
            return False

        for key, value in fields.items():
            setattr(entity, key, value)
        return True

    def process_message(self, queue_name: str, message: JobMessage, pipeline_fn: PipelineFn) -> JobOutcome:
        """
        Run one job from receipt to ack, retry or failure

        Args:
            queue_name: Logical queue name the message came from
            message: Received message
            pipeline_fn: Pipeline function for the queue

        Returns:
            JobOutcome: What happened to the job
        """
        category: EntityCategory = QUEUE_CATEGORIES[queue_name]

        try:
            job = self._parse_job(queue_name, message)
        except ValidationError as e:
            logger.error(f"[{queue_name}] Dropping invalid job {message.message_id}: {e}")
            self.job_queue.ack(message)
            return JobOutcome.FAILED

        log_prefix = f"[{queue_name}] {job.entity_id} (attempt {message.attempt})"

        try:
            entity = self.context.entity_store.get(category, job.entity_id, timeout=self.context.call_timeout())
            if entity is None:
                logger.warning(f"{log_prefix}: entity not found, dropping job")
                self.job_queue.ack(message)
                return JobOutcome.SKIPPED

            if not self.claim(entity):
                logger.info(f"{log_prefix}: entity is {entity.status.value} and not claimable, skipping duplicate")
                self.job_queue.ack(message)
                return JobOutcome.DUPLICATE
        except Exception as e:
            # nothing was claimed; let the broker redeliver
            logger.error(f"{log_prefix}: failed before processing: {e}")
            return self._retry_or_drop(message, e, log_prefix)

        logger.info(f"{log_prefix}: claimed, status={entity.status.value}")
        job_context = self.context.for_job(JobDeadline(self.config.job_timeout_seconds))

        try:
            result = pipeline_fn(job_context, entity, job)
        except Exception as e:
            return self._handle_failure(message, entity, e, log_prefix)

        self.job_queue.ack(message)
        logger.info(f"{log_prefix}: succeeded ({getattr(result, 'message', 'done')})")
        return JobOutcome.SUCCEEDED

    def _retry_or_drop(self, message: JobMessage, error: Exception, log_prefix: str) -> JobOutcome:
        policy = self.config.retry_policy
        if is_retryable(error) and policy.should_retry(message.attempt):
            self.job_queue.retry_later(message, policy.delay_for(message.attempt))
            return JobOutcome.RETRYING
        logger.error(f"{log_prefix}: giving up on job: {error}")
        self.job_queue.ack(message)
        return JobOutcome.FAILED

    def _handle_failure(self, message: JobMessage, entity: Entity, error: Exception, log_prefix: str) -> JobOutcome:
        policy = self.config.retry_policy
        message_text = _error_message(error)
        store = self.context.entity_store
        transient = is_retryable(error)

        if transient and policy.should_retry(message.attempt):
            delay = policy.delay_for(message.attempt)
            logger.warning(f"{log_prefix}: transient failure, retrying in {delay}s: {message_text}")
            try:
                # status stays where it is; releasing the lease lets the redelivery reclaim it
                held = self._refresh_held(entity) and store.update_if_held(
                    entity, {"last_error": message_text, "claimed_until": utcnow()}
                )
            except IngestionException as e:
                logger.error(f"{log_prefix}: could not record transient failure: {e}")
                held = True
            if not held:
                return self._moved_on(message, log_prefix)
            self.job_queue.retry_later(message, delay)
            return JobOutcome.RETRYING

        reason = "permanent failure" if not transient else f"failed after {message.attempt} attempts"
        logger.error(f"{log_prefix}: {reason}: {message_text}", exc_info=not isinstance(error, IngestionException))

        try:
            held = self._refresh_held(entity)
        except IngestionException as e:
            logger.error(f"{log_prefix}: could not re-read entity before recording failure: {e}")
            return JobOutcome.RETRYING
        if not held:
            return self._moved_on(message, log_prefix)

        if can_transition(entity.category, entity.status, JobEvent.FAIL):
            fields = {
                "status": next_status(entity.category, entity.status, JobEvent.FAIL),
                "error": message_text,
                "last_error": message_text,
                "claimed_until": None,
            }
            try:
                held = store.update_if_held(entity, fields)
            except IngestionException as e:
                # leave the message for redelivery so the failure is recorded next time
                logger.error(f"{log_prefix}: could not record failure: {e}")
                return JobOutcome.RETRYING
            if not held:
                return self._moved_on(message, log_prefix)
            for key, value in fields.items():
                setattr(entity, key, value)
        else:
            logger.warning(f"{log_prefix}: no FAIL transition from {entity.status.value}")

        self.job_queue.ack(message)
        return JobOutcome.FAILED

    def _refresh_held(self, entity: Entity) -> bool:
        """
        Re-read the entity and adopt its stored status while this worker still holds the lease

        A stage write can land even though its response was lost, leaving the
        in-memory status behind the stored one.

        Returns:
            bool: False if the entity is gone, terminal or leased to someone else
        """
        current = self.context.entity_store.get(entity.category, entity.id)
        if current is None or is_terminal(current.status) or current.claimed_until != entity.claimed_until:
            return False
        entity.status = current.status
        entity.completed_stage = current.completed_stage
        return True

    def _moved_on(self, message: JobMessage, log_prefix: str) -> JobOutcome:
        """The stored entity was finished or reclaimed elsewhere; this delivery is stale"""
        logger.info(f"{log_prefix}: entity changed since this worker claimed it, dropping job")
        self.job_queue.ack(message)
        return JobOutcome.DUPLICATE
