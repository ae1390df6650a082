"""Pipeline functions run by the worker pool"""

from .context import PipelineContext, JobDeadline
from .document_pipeline import process_resume, process_document
from .audio_pipeline import process_audio

# Pipeline function per logical queue name
PIPELINES = {
    "resume": process_resume,
    "document": process_document,
    "audio": process_audio,
}

__all__ = [
    "PipelineContext",
    "JobDeadline",
    "process_resume",
    "process_document",
    "process_audio",
    "PIPELINES"
]
