"""
Voca Ingestion Worker

Consumes resume, document and audio jobs, extracts or transcribes their text,
chunks and embeds it, writes the vectors to Elasticsearch and drives each
entity through its status state machine.
"""

from .pipeline import PipelineContext, process_resume, process_document, process_audio
from .queue_handlers import WorkerPool, SQSJobQueue
from .models.schemas import Entity, EntityCategory, EntityStatus, JobOutcome

__version__ = "0.1.0"

__all__ = [
    "PipelineContext",
    "process_resume",
    "process_document",
    "process_audio",
    "WorkerPool",
    "SQSJobQueue",
    "Entity",
    "EntityCategory",
    "EntityStatus",
    "JobOutcome"
]
