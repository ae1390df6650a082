"""
Pydantic models for data validation and serialization
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# Fixed namespace so point ids derived from (entity id, chunk index) are stable across runs
POINT_NAMESPACE = uuid.UUID("6f1c9a52-3d4e-4b8a-9c1f-2e7d5a0b8c34")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EntityCategory(str, Enum):
    """Kinds of ingestable entities"""
    RESUME = "resume"
    DOCUMENT = "document"
    TRANSCRIPT = "transcript"


class EntityStatus(str, Enum):
    """Entity lifecycle states"""
    PENDING = "pending"
    PROCESSING = "processing"
    TRANSCRIBING = "transcribing"
    SUMMARIZING = "summarizing"
    EMBEDDING = "embedding"
    READY = "ready"
    ERROR = "error"


# Logical queue name -> category of the entities its jobs refer to
QUEUE_CATEGORIES = {
    "resume": EntityCategory.RESUME,
    "document": EntityCategory.DOCUMENT,
    "audio": EntityCategory.TRANSCRIPT,
}
CATEGORY_QUEUES = {category: queue for queue, category in QUEUE_CATEGORIES.items()}


class PipelineStage(str, Enum):
    """Stages whose output is persisted and can be skipped on a re-run"""
    EXTRACT = "extract"
    TRANSCRIBE = "transcribe"
    SUMMARIZE = "summarize"
    CHUNK = "chunk"
    INDEX = "index"


STAGE_SEQUENCE = {
    EntityCategory.RESUME: [PipelineStage.EXTRACT, PipelineStage.CHUNK, PipelineStage.INDEX],
    EntityCategory.DOCUMENT: [PipelineStage.EXTRACT, PipelineStage.CHUNK, PipelineStage.INDEX],
    EntityCategory.TRANSCRIPT: [
        PipelineStage.TRANSCRIBE,
        PipelineStage.SUMMARIZE,
        PipelineStage.CHUNK,
        PipelineStage.INDEX,
    ],
}


class ChunkingStrategy(str, Enum):
    """How the chunker advances after taking a chunk"""
    BOUNDARY_SNAP = "boundary_snap"
    FIXED_OVERLAP = "fixed_overlap"


class JobOutcome(str, Enum):
    """What the worker pool did with a job message"""
    SUCCEEDED = "succeeded"
    RETRYING = "retrying"
    FAILED = "failed"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"


class TextMetadata(BaseModel):
    """Simple statistics about extracted text"""
    page_count: Optional[int] = None
    word_count: int = 0
    char_count: int = 0
    sentence_count: int = 0
    avg_word_length: float = 0.0
    language: str = "unknown"


class Entity(BaseModel):
    """An ingestable record (resume, document or transcript)"""
    id: str
    category: EntityCategory
    owner_id: str
    source_ref: str
    declared_media_type: Optional[str] = None
    filename: Optional[str] = None
    document_type: Optional[str] = None

    extracted_text: Optional[str] = None
    chunks: List[str] = Field(default_factory=list)
    embedding_refs: List[str] = Field(default_factory=list)

    status: EntityStatus = EntityStatus.PENDING
    error: Optional[str] = None
    completed_stage: Optional[PipelineStage] = None
    claimed_until: Optional[datetime] = None
    attempts: int = 0
    last_error: Optional[str] = None
    metadata: TextMetadata = Field(default_factory=TextMetadata)

    # transcript-only fields
    transcript: Optional[str] = None
    summary: Optional[str] = None
    language: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # optimistic concurrency token from the entity store, never persisted
    seq_no: Optional[int] = Field(default=None, exclude=True)
    primary_term: Optional[int] = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def error_matches_status(self):
        if self.status == EntityStatus.ERROR and not self.error:
            raise ValueError("status 'error' requires an error message")
        if self.status != EntityStatus.ERROR and self.error:
            raise ValueError("error message is only allowed with status 'error'")
        return self

    def has_completed(self, stage: PipelineStage) -> bool:
        """True when ``stage`` (or a later one) is recorded as done"""
        if self.completed_stage is None:
            return False
        sequence = STAGE_SEQUENCE[self.category]
        if stage not in sequence or self.completed_stage not in sequence:
            return False
        return sequence.index(self.completed_stage) >= sequence.index(stage)

    def lease_expired(self, now: datetime) -> bool:
        return self.claimed_until is None or self.claimed_until <= now

    def to_document(self) -> Dict[str, Any]:
        """Serialize for the entity store"""
        return self.model_dump(mode="json")

    @classmethod
    def from_document(
        cls,
        source: Dict[str, Any],
        seq_no: Optional[int] = None,
        primary_term: Optional[int] = None
    ) -> "Entity":
        entity = cls.model_validate(source)
        entity.seq_no = seq_no
        entity.primary_term = primary_term
        return entity


class DocumentJob(BaseModel):
    """Job body for the resume and document queues"""
    model_config = ConfigDict(populate_by_name=True)

    entity_id: str = Field(..., alias="entityId", min_length=1)
    source_ref: str = Field(..., alias="sourceRef", min_length=1)
    declared_media_type: Optional[str] = Field(default=None, alias="declaredMediaType")

    def to_message(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class AudioJob(BaseModel):
    """Job body for the audio queue"""
    model_config = ConfigDict(populate_by_name=True)

    entity_id: str = Field(..., alias="entityId", min_length=1)
    source_ref: str = Field(..., alias="sourceRef", min_length=1)

    def to_message(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class JobMessage(BaseModel):
    """A message received from a job queue"""
    queue_name: str
    message_id: str
    receipt_handle: str
    body: Dict[str, Any]
    attempt: int = 1


class VectorPoint(BaseModel):
    """A single embedding with its payload, as written to the vector index"""
    id: str
    vector: List[float]
    payload: Dict[str, Any]

    @field_validator('vector')
    def vector_not_empty(cls, v):
        if not v:
            raise ValueError('Vector cannot be empty')
        return v


def point_id(entity_id: str, chunk_index: int) -> str:
    """Deterministic vector point id for one chunk of one entity"""
    return str(uuid.uuid5(POINT_NAMESPACE, f"{entity_id}:{chunk_index}"))


class ExtractionResult(BaseModel):
    """Text produced by the extractor"""
    text: str
    handler: str
    page_count: Optional[int] = None


class JobResult(BaseModel):
    """Result of running a pipeline for one entity"""
    success: bool
    entity_id: str
    category: EntityCategory
    status: EntityStatus
    message: str
    processing_time: Optional[float] = None
    chunks_created: int = 0
    embeddings_generated: int = 0
    skipped_stages: List[PipelineStage] = Field(default_factory=list)
    # Detailed timing breakdown
    timing: Dict[str, float] = Field(default_factory=dict)


class ChunkingConfig(BaseModel):
    """Configuration for the text chunker"""
    chunk_size: int = Field(default=500, gt=0)
    chunk_overlap: int = Field(default=50, ge=0)
    min_chunk_length: int = Field(default=20, ge=0)
    max_chunks: int = Field(default=50, gt=0)
    max_input_length: int = Field(default=100_000, gt=0)
    boundary_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    strategy: ChunkingStrategy = ChunkingStrategy.BOUNDARY_SNAP

    @model_validator(mode="after")
    def overlap_smaller_than_chunk(self):
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return self


class RetryPolicy(BaseModel):
    """Broker redelivery policy for transient failures"""
    max_attempts: int = Field(default=3, ge=1)
    base_delay: int = Field(default=5, ge=0)
    max_delay: int = Field(default=300, ge=0)

    def delay_for(self, attempt: int) -> int:
        """Seconds to wait before the attempt after ``attempt``"""
        delay = self.base_delay * (2 ** max(attempt - 1, 0))
        return min(delay, self.max_delay)

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts


class PipelineConfig(BaseModel):
    """Configuration for the worker pools"""
    job_timeout_seconds: int = Field(default=600, gt=0)
    lease_margin_seconds: int = Field(default=60, ge=0)
    idle_sleep_seconds: float = Field(default=1.0, ge=0)
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)

    @property
    def lease_seconds(self) -> int:
        return self.job_timeout_seconds + self.lease_margin_seconds
