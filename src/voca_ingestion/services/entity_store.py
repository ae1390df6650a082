"""
Entity store backed by Elasticsearch documents

Status writes go through partial ``_update`` requests so concurrent workers never
overwrite each other's fields. Claims use optimistic concurrency control
(``if_seq_no`` / ``if_primary_term``).
"""
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .elasticsearch_client import ElasticsearchClient
from ..models.schemas import Entity, EntityCategory, EntityStatus, utcnow
from ..exceptions import EntityStoreException
from ..config import IngestionConfig


logger = logging.getLogger(__name__)


ENTITY_MAPPING = {
    "dynamic": True,
    "properties": {
        "id": {"type": "keyword"},
        "category": {"type": "keyword"},
        "owner_id": {"type": "keyword"},
        "source_ref": {"type": "keyword"},
        "declared_media_type": {"type": "keyword"},
        "filename": {"type": "keyword"},
        "document_type": {"type": "keyword"},
        "status": {"type": "keyword"},
        "completed_stage": {"type": "keyword"},
        "claimed_until": {"type": "date"},
        "attempts": {"type": "integer"},
        "language": {"type": "keyword"},
        "extracted_text": {"type": "text", "index": False},
        "transcript": {"type": "text", "index": False},
        "summary": {"type": "text"},
        "chunks": {"type": "text", "index": False},
        "embedding_refs": {"type": "keyword"},
        "created_at": {"type": "date"},
        "updated_at": {"type": "date"},
    },
}


# Applies params.doc only if status and lease are unchanged
HELD_UPDATE_SCRIPT = (
    "if (ctx._source.status != params.status || ctx._source.claimed_until != params.claimed_until) "
    "{ ctx.op = 'noop'; } "
    "else { for (entry in params.doc.entrySet()) { ctx._source[entry.getKey()] = entry.getValue(); } }"
)


def _to_json(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_to_json(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_json(v) for k, v in value.items()}
    return value


class EntityStore:
    """Reads and updates ingestable entities"""

    def __init__(self, client: ElasticsearchClient, index_prefix: str = None):
        self.client = client
        self.index_prefix = index_prefix if index_prefix is not None else IngestionConfig.INDEX_PREFIX

    def index_name(self, category: EntityCategory) -> str:
        return f"{self.index_prefix}{EntityCategory(category).value}s"

    def ensure_indices(self) -> None:
        """Create the entity indices if they do not exist"""
        for category in EntityCategory:
            index = self.index_name(category)
            resp = self.client.request(
                "PUT",
                index,
                body={"mappings": ENTITY_MAPPING},
                allowed_statuses=(400,),
                error_cls=EntityStoreException
            )
            if resp.status_code == 400 and "resource_already_exists_exception" not in resp.text:
                raise EntityStoreException(
                    f"Failed to create entity index {index}: {resp.text[:500]}", retryable=False
                )
            if resp.status_code < 300:
                logger.info(f"Created entity index {index}")

    def create(self, entity: Entity, timeout: Optional[float] = None) -> Entity:
        """
        Insert a new entity (producer side; used by tooling and tests)

        Raises:
            EntityStoreException: If an entity with the same id already exists
        """
        resp = self.client.request(
            "PUT",
            f"{self.index_name(entity.category)}/_create/{entity.id}",
            body=entity.to_document(),
            params={"refresh": "wait_for"},
            timeout=timeout,
            error_cls=EntityStoreException
        )
        data = resp.json()
        entity.seq_no = data.get("_seq_no")
        entity.primary_term = data.get("_primary_term")
        return entity

    def get(
        self,
        category: EntityCategory,
        entity_id: str,
        timeout: Optional[float] = None
    ) -> Optional[Entity]:
        """
        Fetch an entity with its concurrency token

        Args:
            category: Entity category
            entity_id: Entity id
            timeout: Request timeout in seconds

        Returns:
            Entity or None: None if no such entity exists
        """
        resp = self.client.request(
            "GET",
            f"{self.index_name(category)}/_doc/{entity_id}",
            timeout=timeout,
            allowed_statuses=(404,),
            error_cls=EntityStoreException
        )
        if resp.status_code == 404:
            return None

        data = resp.json()
        if not data.get("found"):
            return None

        try:
            return Entity.from_document(
                data["_source"],
                seq_no=data.get("_seq_no"),
                primary_term=data.get("_primary_term")
            )
        except ValueError as e:
            raise EntityStoreException(
                f"Stored entity {entity_id} is malformed", original_error=e, retryable=False
            )

    def compare_and_set(
        self,
        entity: Entity,
        fields: Dict[str, Any],
        timeout: Optional[float] = None
    ) -> bool:
        """
        Update fields only if the entity has not changed since it was read

        Args:
            entity: Entity as read by ``get`` (carries seq_no/primary_term)
            fields: Fields to write
            timeout: Request timeout in seconds

        Returns:
            bool: False if another writer got there first
        """
        if entity.seq_no is None or entity.primary_term is None:
            raise EntityStoreException(
                f"Entity {entity.id} has no concurrency token", retryable=False
            )

        resp = self.client.request(
            "POST",
            f"{self.index_name(entity.category)}/_update/{entity.id}",
            body={"doc": self._prepare(fields)},
            params={
                "if_seq_no": entity.seq_no,
                "if_primary_term": entity.primary_term,
                "refresh": "wait_for",
            },
            timeout=timeout,
            allowed_statuses=(409,),
            error_cls=EntityStoreException
        )
        if resp.status_code == 409:
            logger.info(f"Version conflict updating {entity.category.value} {entity.id}")
            return False

        data = resp.json()
        entity.seq_no = data.get("_seq_no", entity.seq_no)
        entity.primary_term = data.get("_primary_term", entity.primary_term)
        return True

    def update_fields(
        self,
        category: EntityCategory,
        entity_id: str,
        fields: Dict[str, Any],
        timeout: Optional[float] = None
    ) -> None:
        """
        Partially update an entity (field-level write, no read-modify-write)

        Raises:
            EntityStoreException: If the update fails
        """
        self.client.request(
            "POST",
            f"{self.index_name(category)}/_update/{entity_id}",
            body={"doc": self._prepare(fields)},
            params={"retry_on_conflict": 3, "refresh": "wait_for"},
            timeout=timeout,
            error_cls=EntityStoreException
        )
        logger.debug(f"Updated {category.value} {entity_id}: {sorted(fields)}")

    def update_if_held(
        self,
        entity: Entity,
        fields: Dict[str, Any],
        timeout: Optional[float] = None
    ) -> bool:
        """
        Partially update an entity only while this worker still holds it

        The write is applied only if the stored ``status`` and ``claimed_until``
        are the ones ``entity`` carries. A worker whose final write landed without
        a response, or whose lease was taken over, therefore never overwrites
        the newer state.

        Args:
            entity: The claimed entity as this worker last wrote it
            fields: Fields to write
            timeout: Request timeout in seconds

        Returns:
            bool: False if the stored entity has moved on (nothing written)
        """
        expected = self._prepare({"status": entity.status, "claimed_until": entity.claimed_until})
        resp = self.client.request(
            "POST",
            f"{self.index_name(entity.category)}/_update/{entity.id}",
            body={
                "script": {
                    "lang": "painless",
                    "source": HELD_UPDATE_SCRIPT,
                    "params": {
                        "status": expected["status"],
                        "claimed_until": expected["claimed_until"],
                        "doc": self._prepare(fields),
                    },
                }
            },
            params={"retry_on_conflict": 3, "refresh": "wait_for"},
            timeout=timeout,
            error_cls=EntityStoreException
        )
        if resp.json().get("result") == "noop":
            logger.info(f"{entity.category.value} {entity.id} changed since it was claimed, update skipped")
            return False
        return True

    def find_stale(
        self,
        category: EntityCategory,
        statuses: List[EntityStatus],
        now: datetime,
        unclaimed_before: datetime,
        limit: int = 100
    ) -> List[Entity]:
        """
        Find entities stuck in a non-terminal state

        An entity is stale when its lease has expired, or when it was never
        claimed and has not been touched since ``unclaimed_before``.

        Returns:
            list: Matching entities (at most ``limit``)
        """
        query = {
            "size": limit,
            "query": {
                "bool": {
                    "filter": [{"terms": {"status": [EntityStatus(s).value for s in statuses]}}],
                    "should": [
                        {"range": {"claimed_until": {"lt": now.isoformat()}}},
                        {
                            "bool": {
                                "must_not": [{"exists": {"field": "claimed_until"}}],
                                "filter": [
                                    {"range": {"updated_at": {"lt": unclaimed_before.isoformat()}}}
                                ],
                            }
                        },
                    ],
                    "minimum_should_match": 1,
                }
            },
        }
        resp = self.client.request(
            "POST",
            f"{self.index_name(category)}/_search",
            body=query,
            allowed_statuses=(404,),
            error_cls=EntityStoreException
        )
        if resp.status_code == 404:
            return []

        entities = []
        for hit in resp.json().get("hits", {}).get("hits", []):
            try:
                entities.append(Entity.from_document(hit["_source"]))
            except ValueError as e:
                logger.warning(f"Skipping malformed entity {hit.get('_id')}: {e}")
        return entities

    @staticmethod
    def _prepare(fields: Dict[str, Any]) -> Dict[str, Any]:
        doc = {key: _to_json(value) for key, value in fields.items()}
        doc.setdefault("updated_at", utcnow().isoformat())
        return doc
