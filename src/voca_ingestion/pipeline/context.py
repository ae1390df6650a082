"""
Shared collaborators for pipeline functions and the per-job deadline
"""
import copy
import time
import logging
from typing import Callable, Optional

from ..models.schemas import PipelineConfig
from ..exceptions import JobTimeoutException


logger = logging.getLogger(__name__)


class JobDeadline:
    """Wall-clock budget for one job"""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.seconds = seconds
        self._clock = clock
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        return self._expires_at - self._clock()

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def check(self, stage: str = "") -> None:
        """
        Raise if the job has run out of time

        Raises:
            JobTimeoutException: If the deadline has passed
        """
        if self.expired:
            where = f" before {stage}" if stage else ""
            raise JobTimeoutException(f"Job exceeded its {self.seconds}s deadline{where}")

    def timeout(self, default: float) -> float:
        """Per-call timeout: ``default`` clamped to the time left"""
        remaining = self.remaining()
        if remaining <= 0:
            raise JobTimeoutException(f"Job exceeded its {self.seconds}s deadline")
        return min(default, remaining)


class PipelineContext:
    """
    Process-wide clients handed to every pipeline function

    Built once at startup. ``for_job`` returns a shallow copy carrying the
    job's deadline, so the shared instance is never mutated by workers.
    """

    def __init__(
        self,
        object_store,
        extractor,
        chunker,
        metadata_extractor,
        embedding_client,
        vector_index,
        entity_store,
        transcription_service=None,
        llm_service=None,
        config: Optional[PipelineConfig] = None,
        http_timeout: float = 30
    ):
        self.object_store = object_store
        self.extractor = extractor
        self.chunker = chunker
        self.metadata_extractor = metadata_extractor
        self.embedding_client = embedding_client
        self.vector_index = vector_index
        self.entity_store = entity_store
        self.transcription_service = transcription_service
        self.llm_service = llm_service
        self.config = config or PipelineConfig()
        self.http_timeout = http_timeout
        self.deadline: Optional[JobDeadline] = None

    def for_job(self, deadline: JobDeadline) -> "PipelineContext":
        job_context = copy.copy(self)
        job_context.deadline = deadline
        return job_context

    def call_timeout(self, default: Optional[float] = None) -> float:
        """Timeout for the next external call, clamped to the job deadline"""
        base = default if default is not None else self.http_timeout
        if self.deadline is None:
            return base
        return self.deadline.timeout(base)

    def check_deadline(self, stage: str = "") -> None:
        if self.deadline is not None:
            self.deadline.check(stage)
