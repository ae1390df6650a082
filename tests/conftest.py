"""
Shared test fixtures

Provides: in-memory fakes for the object store, entity store (version-checked
compare-and-set), vector index and job queue, plus a wired PipelineContext.
"""
import uuid
from typing import Dict, List
from unittest.mock import MagicMock

import pytest

from voca_ingestion.exceptions import DimensionMismatchException, S3Exception
from voca_ingestion.models.schemas import (
    Entity,
    EntityCategory,
    JobMessage,
    PipelineConfig,
    RetryPolicy,
    VectorPoint
)
from voca_ingestion.parsers import TextExtractor
from voca_ingestion.pipeline import PipelineContext
from voca_ingestion.processors import MetadataExtractor, TextChunker
from voca_ingestion.services.embedding_service import HashEmbeddingClient
from voca_ingestion.services.entity_store import EntityStore


class FakeObjectStore:
    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.reads: List[str] = []

    def put_object(self, key, content, content_type=None):
        self.objects[key] = content
        return key

    def get_object(self, key):
        self.reads.append(key)
        if key not in self.objects:
            raise S3Exception(f"Failed to read object {key}", retryable=False)
        return self.objects[key]


class FakeEntityStore:
    """Keeps entities as JSON documents with a version number per entity"""

    def __init__(self):
        self.docs: Dict[str, dict] = {}
        self.versions: Dict[str, int] = {}
        self.status_history: Dict[str, List[str]] = {}

    def add(self, entity: Entity) -> Entity:
        self.docs[entity.id] = entity.to_document()
        self.versions[entity.id] = 1
        self.status_history[entity.id] = [entity.status.value]
        return entity

    def get(self, category, entity_id, timeout=None):
        doc = self.docs.get(entity_id)
        if doc is None or doc["category"] != EntityCategory(category).value:
            return None
        return Entity.from_document(dict(doc), seq_no=self.versions[entity_id], primary_term=1)

    def _write(self, entity_id, fields):
        update = EntityStore._prepare(fields)
        self.docs[entity_id].update(update)
        self.versions[entity_id] += 1
        if "status" in update:
            self.status_history[entity_id].append(update["status"])

    def compare_and_set(self, entity, fields, timeout=None):
        if self.versions.get(entity.id) != entity.seq_no:
            return False
        self._write(entity.id, fields)
        entity.seq_no = self.versions[entity.id]
        return True

    def update_fields(self, category, entity_id, fields, timeout=None):
        self._write(entity_id, fields)

    def update_if_held(self, entity, fields, timeout=None):
        expected = EntityStore._prepare({"status": entity.status, "claimed_until": entity.claimed_until})
        doc = self.docs[entity.id]
        if doc.get("status") != expected["status"] or doc.get("claimed_until") != expected["claimed_until"]:
            return False
        self._write(entity.id, fields)
        return True

    def find_stale(self, category, statuses, now, unclaimed_before, limit=100):
        wanted = {s.value for s in statuses}
        stale = []
        for entity_id in self.docs:
            entity = self.get(category, entity_id)
            if entity is None or entity.status.value not in wanted:
                continue
            if entity.claimed_until is not None:
                if entity.claimed_until < now:
                    stale.append(entity)
            elif entity.updated_at < unclaimed_before:
                stale.append(entity)
        return stale[:limit]


class FakeVectorIndex:
    def __init__(self):
        self.points: Dict[EntityCategory, Dict[str, VectorPoint]] = {}
        self.dims: Dict[EntityCategory, int] = {}
        self.upsert_calls = 0

    def ensure_collection(self, category, dims, timeout=None):
        existing = self.dims.setdefault(category, dims)
        if existing != dims:
            raise DimensionMismatchException(f"expected {existing}, got {dims}")
        self.points.setdefault(category, {})

    def upsert_points(self, category, points, timeout=None):
        self.upsert_calls += 1
        for point in points:
            self.points[category][point.id] = point
        return [point.id for point in points]

    def delete_stale_points(self, category, entity_id, keep, timeout=None):
        stale = [
            pid for pid, point in self.points.get(category, {}).items()
            if point.payload["entity_id"] == entity_id and point.payload["chunk_index"] >= keep
        ]
        for pid in stale:
            del self.points[category][pid]
        return len(stale)

    def points_for(self, category, entity_id):
        return [
            point for point in self.points.get(category, {}).values()
            if point.payload["entity_id"] == entity_id
        ]


class FakeJobQueue:
    def __init__(self, queue_names=("resume", "document", "audio")):
        self.queue_urls = {name: f"https://sqs.test/{name}" for name in queue_names}
        self.acked: List[JobMessage] = []
        self.retried: List[tuple] = []
        self.sent: List[tuple] = []

    def ack(self, message):
        self.acked.append(message)
        return True

    def retry_later(self, message, delay_seconds):
        self.retried.append((message, delay_seconds))
        return True

    def send(self, queue_name, job, delay_seconds=0):
        self.sent.append((queue_name, job))
        return str(uuid.uuid4())

    def receive(self, queue_name, max_messages=1, visibility_timeout=None):
        return []


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def entity_store():
    return FakeEntityStore()


@pytest.fixture
def vector_index():
    return FakeVectorIndex()


@pytest.fixture
def job_queue():
    return FakeJobQueue()


@pytest.fixture
def transcription_service():
    service = MagicMock()
    service.timeout = 300
    service.transcribe.return_value = (
        "Welcome to the weekly product sync. Today we cover the release plan and the "
        "open issues in the search service. The team agreed to ship on Friday."
    )
    return service


@pytest.fixture
def llm_service():
    service = MagicMock()
    service.timeout = 120
    service.summarize.return_value = "- Release plan\n- Search issues\n- Ship on Friday"
    return service


@pytest.fixture
def pipeline_context(object_store, entity_store, vector_index, transcription_service, llm_service):
    return PipelineContext(
        object_store=object_store,
        extractor=TextExtractor(),
        chunker=TextChunker(),
        metadata_extractor=MetadataExtractor(),
        embedding_client=HashEmbeddingClient(dimensions=8),
        vector_index=vector_index,
        entity_store=entity_store,
        transcription_service=transcription_service,
        llm_service=llm_service,
        config=PipelineConfig(
            job_timeout_seconds=60,
            lease_margin_seconds=10,
            retry_policy=RetryPolicy(max_attempts=3, base_delay=5, max_delay=300)
        ),
        http_timeout=5
    )


@pytest.fixture
def make_entity(entity_store):
    """Factory that stores a new entity and returns it"""

    def _make(category=EntityCategory.RESUME, **fields):
        entity_id = fields.pop("id", uuid.uuid4().hex)
        defaults = {
            "owner_id": "user-1",
            "source_ref": f"{category.value}/user-1/{entity_id}_file.txt",
        }
        defaults.update(fields)
        entity = Entity(id=entity_id, category=category, **defaults)
        return entity_store.add(entity)

    return _make


@pytest.fixture
def make_message():
    """Factory for received job messages"""

    def _make(queue_name, body, attempt=1):
        return JobMessage(
            queue_name=queue_name,
            message_id=uuid.uuid4().hex,
            receipt_handle=uuid.uuid4().hex,
            body=body,
            attempt=attempt
        )

    return _make
