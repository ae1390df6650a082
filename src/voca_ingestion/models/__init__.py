"""Pydantic models and the entity state machine"""

from .schemas import (
    Entity,
    EntityCategory,
    EntityStatus,
    QUEUE_CATEGORIES,
    CATEGORY_QUEUES,
    PipelineStage,
    STAGE_SEQUENCE,
    ChunkingStrategy,
    JobOutcome,
    TextMetadata,
    DocumentJob,
    AudioJob,
    JobMessage,
    VectorPoint,
    ExtractionResult,
    JobResult,
    ChunkingConfig,
    RetryPolicy,
    PipelineConfig,
    point_id,
    utcnow
)
from .state_machine import (
    JobEvent,
    TRANSITIONS,
    STATUS_ORDER,
    TERMINAL_STATUSES,
    is_terminal,
    active_statuses,
    can_transition,
    next_status,
    claim_target
)

__all__ = [
    "Entity",
    "EntityCategory",
    "EntityStatus",
    "QUEUE_CATEGORIES",
    "CATEGORY_QUEUES",
    "PipelineStage",
    "STAGE_SEQUENCE",
    "ChunkingStrategy",
    "JobOutcome",
    "TextMetadata",
    "DocumentJob",
    "AudioJob",
    "JobMessage",
    "VectorPoint",
    "ExtractionResult",
    "JobResult",
    "ChunkingConfig",
    "RetryPolicy",
    "PipelineConfig",
    "point_id",
    "utcnow",
    "JobEvent",
    "TRANSITIONS",
    "STATUS_ORDER",
    "TERMINAL_STATUSES",
    "is_terminal",
    "active_statuses",
    "can_transition",
    "next_status",
    "claim_target"
]
