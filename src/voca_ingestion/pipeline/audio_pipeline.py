"""
Pipeline for audio recordings:
transcribe -> summarize -> chunk -> embed/index -> ready
"""
import os
import time
import logging
from typing import Dict, List

from ..models.schemas import AudioJob, Entity, JobResult, PipelineStage
from ..models.state_machine import JobEvent
from ..exceptions import EmptyContentException
from .context import PipelineContext
from .stages import advance, chunk_stage, complete, fetch_source, index_stage


logger = logging.getLogger(__name__)


def transcribe_stage(
    ctx: PipelineContext,
    entity: Entity,
    source_ref: str,
    timing: Dict[str, float],
    skipped: List[PipelineStage]
) -> str:
    if entity.has_completed(PipelineStage.TRANSCRIBE) and entity.transcript:
        skipped.append(PipelineStage.TRANSCRIBE)
        return entity.transcript

    audio = fetch_source(ctx, source_ref, timing)

    ctx.check_deadline("transcribe")
    start = time.time()
    transcript = ctx.transcription_service.transcribe(
        audio,
        entity.filename or os.path.basename(source_ref),
        language=entity.language or "en",
        timeout=ctx.call_timeout(ctx.transcription_service.timeout)
    )
    timing["transcription"] = time.time() - start

    transcript = (transcript or "").strip()
    if not transcript:
        raise EmptyContentException(f"Transcription of {source_ref} produced no text")

    metadata = ctx.metadata_extractor.extract(transcript)
    advance(
        ctx,
        entity,
        JobEvent.TRANSCRIBED,
        {"transcript": transcript, "extracted_text": transcript, "metadata": metadata},
        PipelineStage.TRANSCRIBE
    )
    return transcript


def summarize_stage(
    ctx: PipelineContext,
    entity: Entity,
    transcript: str,
    timing: Dict[str, float],
    skipped: List[PipelineStage]
) -> str:
    if entity.has_completed(PipelineStage.SUMMARIZE) and entity.summary is not None:
        skipped.append(PipelineStage.SUMMARIZE)
        return entity.summary

    ctx.check_deadline("summarize")
    start = time.time()
    summary = ctx.llm_service.summarize(transcript, timeout=ctx.call_timeout(ctx.llm_service.timeout))
    timing["summarization"] = time.time() - start

    advance(ctx, entity, JobEvent.SUMMARIZED, {"summary": summary}, PipelineStage.SUMMARIZE)
    return summary


def process_audio(ctx: PipelineContext, entity: Entity, job: AudioJob) -> JobResult:
    """
    Ingest an audio recording

    Args:
        ctx: Per-job pipeline context
        entity: Claimed transcript entity
        job: The job payload

    Returns:
        JobResult: Processing report
    """
    start_time = time.time()
    timing: Dict[str, float] = {}
    skipped: List[PipelineStage] = []

    source_ref = job.source_ref or entity.source_ref
    transcript = transcribe_stage(ctx, entity, source_ref, timing, skipped)
    summarize_stage(ctx, entity, transcript, timing, skipped)
    chunks = chunk_stage(ctx, entity, transcript, timing, skipped)
    refs = index_stage(ctx, entity, chunks, timing, skipped)
    complete(ctx, entity)

    processing_time = time.time() - start_time
    timing["total"] = processing_time
    timing_str = ", ".join(f"{key}={value:.2f}s" for key, value in timing.items())
    logger.info(f"Processed transcript {entity.id}: {len(chunks)} chunks. Timing: [{timing_str}]")

    return JobResult(
        success=True,
        entity_id=entity.id,
        category=entity.category,
        status=entity.status,
        message=f"Transcribed and indexed {len(refs)} chunks",
        processing_time=processing_time,
        chunks_created=len(chunks),
        embeddings_generated=len(refs),
        skipped_stages=skipped,
        timing=timing
    )
