"""
Pipeline for resumes and generic documents: extract -> chunk -> embed/index -> ready
"""
import time
import logging
from typing import Dict, List

from ..models.schemas import DocumentJob, Entity, JobResult, PipelineStage
from .context import PipelineContext
from .stages import chunk_stage, complete, extract_stage, index_stage


logger = logging.getLogger(__name__)


def _run(ctx: PipelineContext, entity: Entity, job: DocumentJob) -> JobResult:
    start_time = time.time()
    timing: Dict[str, float] = {}
    skipped: List[PipelineStage] = []

    source_ref = job.source_ref or entity.source_ref
    text = extract_stage(ctx, entity, source_ref, job.declared_media_type, timing, skipped)
    chunks = chunk_stage(ctx, entity, text, timing, skipped)
    refs = index_stage(ctx, entity, chunks, timing, skipped)
    complete(ctx, entity)

    processing_time = time.time() - start_time
    timing["total"] = processing_time
    timing_str = ", ".join(f"{key}={value:.2f}s" for key, value in timing.items())
    logger.info(
        f"Processed {entity.category.value} {entity.id}: {len(chunks)} chunks. Timing: [{timing_str}]"
    )

    return JobResult(
        success=True,
        entity_id=entity.id,
        category=entity.category,
        status=entity.status,
        message=f"Indexed {len(refs)} chunks",
        processing_time=processing_time,
        chunks_created=len(chunks),
        embeddings_generated=len(refs),
        skipped_stages=skipped,
        timing=timing
    )


def process_resume(ctx: PipelineContext, entity: Entity, job: DocumentJob) -> JobResult:
    """
    Ingest a resume

    Args:
        ctx: Per-job pipeline context
        entity: Claimed resume entity (status ``processing``)
        job: The job payload

    Returns:
        JobResult: Processing report
    """
    return _run(ctx, entity, job)


def process_document(ctx: PipelineContext, entity: Entity, job: DocumentJob) -> JobResult:
    """Ingest a generic document; its ``document_type`` is copied into each vector payload"""
    return _run(ctx, entity, job)
