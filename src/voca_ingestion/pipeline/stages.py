"""
Pipeline stages shared by the document and audio pipelines

Each stage persists its output together with the ``completed_stage`` marker in a
single partial update. A stage whose marker is already set and whose output is
present on the entity is skipped, so a reclaimed entity resumes where the previous
attempt stopped.
"""
import os
import time
import logging
from typing import Any, Dict, List, Optional

from ..models.schemas import Entity, EntityCategory, PipelineStage, VectorPoint, point_id
from ..models.state_machine import JobEvent, next_status
from ..exceptions import EmbeddingServiceException, EmptyContentException
from .context import PipelineContext


logger = logging.getLogger(__name__)


def apply_fields(entity: Entity, fields: Dict[str, Any]) -> None:
    """Mirror a persisted partial update on the in-memory entity"""
    for key, value in fields.items():
        setattr(entity, key, value)


def persist(
    ctx: PipelineContext,
    entity: Entity,
    fields: Dict[str, Any],
    stage: Optional[PipelineStage] = None
) -> None:
    """Write fields (and the completed-stage marker) to the store, then to ``entity``"""
    update = dict(fields)
    if stage is not None:
        update["completed_stage"] = stage
    ctx.entity_store.update_fields(entity.category, entity.id, update, timeout=ctx.call_timeout())
    apply_fields(entity, update)


def advance(
    ctx: PipelineContext,
    entity: Entity,
    event: JobEvent,
    fields: Optional[Dict[str, Any]] = None,
    stage: Optional[PipelineStage] = None
) -> None:
    """Apply a state-machine event, persisting ``fields`` in the same write"""
    update = dict(fields or {})
    update["status"] = next_status(entity.category, entity.status, event)
    persist(ctx, entity, update, stage)
    logger.info(f"{entity.category.value} {entity.id} -> {update['status'].value}")


def fetch_source(ctx: PipelineContext, source_ref: str, timing: Dict[str, float]) -> bytes:
    ctx.check_deadline("download")
    start = time.time()
    content = ctx.object_store.get_object(source_ref)
    timing["download"] = time.time() - start
    return content


def extract_stage(
    ctx: PipelineContext,
    entity: Entity,
    source_ref: str,
    media_type: Optional[str],
    timing: Dict[str, float],
    skipped: List[PipelineStage]
) -> str:
    """
    Download the source file and extract its text

    Raises:
        ParserException: If the file cannot be parsed
        EmptyContentException: If the file holds no text
    """
    if entity.has_completed(PipelineStage.EXTRACT) and entity.extracted_text:
        skipped.append(PipelineStage.EXTRACT)
        return entity.extracted_text

    content = fetch_source(ctx, source_ref, timing)

    ctx.check_deadline("extract")
    start = time.time()
    file_name = entity.filename or os.path.basename(source_ref)
    result = ctx.extractor.extract(content, media_type or entity.declared_media_type, file_name)
    timing["extraction"] = time.time() - start

    text = result.text.strip()
    if not text:
        raise EmptyContentException(f"No text could be extracted from {file_name}")

    metadata = ctx.metadata_extractor.extract(text, page_count=result.page_count)
    persist(ctx, entity, {"extracted_text": text, "metadata": metadata}, PipelineStage.EXTRACT)
    logger.info(
        f"Extracted {len(text)} chars from {file_name} with '{result.handler}' "
        f"({metadata.word_count} words, language={metadata.language})"
    )
    return text


def chunk_stage(
    ctx: PipelineContext,
    entity: Entity,
    text: str,
    timing: Dict[str, float],
    skipped: List[PipelineStage]
) -> List[str]:
    if entity.has_completed(PipelineStage.CHUNK) and entity.chunks:
        skipped.append(PipelineStage.CHUNK)
        return entity.chunks

    ctx.check_deadline("chunk")
    start = time.time()
    chunks = ctx.chunker.chunk_text(text)
    timing["chunking"] = time.time() - start

    if not chunks:
        raise EmptyContentException(f"No chunks produced for {entity.id}")

    persist(ctx, entity, {"chunks": chunks}, PipelineStage.CHUNK)
    return chunks


def build_payload(entity: Entity, chunk_index: int, chunk_text: str) -> Dict[str, Any]:
    payload = {
        "entity_id": entity.id,
        "owner_id": entity.owner_id,
        "chunk_index": chunk_index,
        "chunk_text": chunk_text,
        "category": entity.category.value,
    }
    if entity.category == EntityCategory.DOCUMENT and entity.document_type:
        payload["document_type"] = entity.document_type
    if entity.category == EntityCategory.TRANSCRIPT:
        payload["language"] = entity.language or "en"
    return payload


def index_stage(
    ctx: PipelineContext,
    entity: Entity,
    chunks: List[str],
    timing: Dict[str, float],
    skipped: List[PipelineStage]
) -> List[str]:
    """
    Embed all chunks in one call and upsert them into the vector index

    Raises:
        EmbeddingServiceException: If the embedding service fails or miscounts
        VectorIndexException: If the index cannot be provisioned or written
    """
    if entity.has_completed(PipelineStage.INDEX) and len(entity.embedding_refs) == len(chunks):
        skipped.append(PipelineStage.INDEX)
        return entity.embedding_refs

    ctx.check_deadline("embed")
    start = time.time()
    vectors = ctx.embedding_client.embed_batch(chunks, timeout=ctx.call_timeout())
    timing["embedding"] = time.time() - start

    if len(vectors) != len(chunks):
        raise EmbeddingServiceException(
            f"Expected {len(chunks)} embeddings, got {len(vectors)}", retryable=False
        )

    ctx.check_deadline("index")
    start = time.time()
    ctx.vector_index.ensure_collection(entity.category, len(vectors[0]), timeout=ctx.call_timeout())

    points = [
        VectorPoint(
            id=point_id(entity.id, idx),
            vector=vector,
            payload=build_payload(entity, idx, chunk)
        )
        for idx, (chunk, vector) in enumerate(zip(chunks, vectors))
    ]
    refs = ctx.vector_index.upsert_points(entity.category, points, timeout=ctx.call_timeout())
    # a previous run may have produced more chunks
    ctx.vector_index.delete_stale_points(entity.category, entity.id, len(points), timeout=ctx.call_timeout())
    timing["indexing"] = time.time() - start

    persist(ctx, entity, {"embedding_refs": refs}, PipelineStage.INDEX)
    return refs


def complete(ctx: PipelineContext, entity: Entity) -> None:
    """Move the entity to ``ready`` and release its lease"""
    ctx.check_deadline("complete")
    advance(ctx, entity, JobEvent.COMPLETE, {"claimed_until": None, "last_error": None})
