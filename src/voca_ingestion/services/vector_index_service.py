"""
Vector index backed by Elasticsearch dense_vector indices (one per category)
"""
import logging
import threading
from typing import Any, Dict, List, Optional

from .elasticsearch_client import ElasticsearchClient
from ..models.schemas import EntityCategory, VectorPoint
from ..exceptions import DimensionMismatchException, VectorIndexException
from ..config import IngestionConfig


logger = logging.getLogger(__name__)


def _chunk_mapping(dims: int) -> Dict[str, Any]:
    return {
        "properties": {
            "vector": {
                "type": "dense_vector",
                "dims": dims,
                "index": True,
                "similarity": "cosine",
            },
            "entity_id": {"type": "keyword"},
            "owner_id": {"type": "keyword"},
            "chunk_index": {"type": "integer"},
            "chunk_text": {"type": "text"},
            "category": {"type": "keyword"},
            "document_type": {"type": "keyword"},
            "language": {"type": "keyword"},
        }
    }


class VectorIndexService:
    """Stores chunk embeddings and serves owner-scoped similarity search"""

    def __init__(self, client: ElasticsearchClient, index_prefix: str = None):
        self.client = client
        self.index_prefix = index_prefix if index_prefix is not None else IngestionConfig.INDEX_PREFIX
        # index name -> dims, shared by all worker threads
        self._dims_cache: Dict[str, int] = {}
        self._lock = threading.Lock()

    def index_name(self, category: EntityCategory) -> str:
        return f"{self.index_prefix}{EntityCategory(category).value}_chunks"

    def _read_dims(self, index: str, timeout: Optional[float]) -> Optional[int]:
        resp = self.client.request(
            "GET",
            f"{index}/_mapping",
            timeout=timeout,
            allowed_statuses=(404,),
            error_cls=VectorIndexException
        )
        if resp.status_code == 404:
            return None
        try:
            properties = resp.json()[index]["mappings"]["properties"]
            return int(properties["vector"]["dims"])
        except (KeyError, TypeError, ValueError) as e:
            raise VectorIndexException(
                f"Index {index} exists without a vector mapping", original_error=e, retryable=False
            )

    def ensure_collection(self, category: EntityCategory, dims: int, timeout: Optional[float] = None) -> None:
        """
        Create the category's index on first use, sized to ``dims``

        Args:
            category: Entity category
            dims: Dimensionality of the embeddings about to be written
            timeout: Request timeout in seconds

        Raises:
            DimensionMismatchException: If the index exists with a different size
            VectorIndexException: If the index cannot be read or created
        """
        index = self.index_name(category)
        with self._lock:
            existing = self._dims_cache.get(index)
            if existing is None:
                existing = self._read_dims(index, timeout)

            if existing is None:
                resp = self.client.request(
                    "PUT",
                    index,
                    body={"mappings": _chunk_mapping(dims)},
                    timeout=timeout,
                    allowed_statuses=(400,),
                    error_cls=VectorIndexException
                )
                if resp.status_code == 400:
                    if "resource_already_exists_exception" not in resp.text:
                        raise VectorIndexException(
                            f"Failed to create index {index}: {resp.text[:500]}", retryable=False
                        )
                    # another process created it first
                    existing = self._read_dims(index, timeout)
                else:
                    logger.info(f"Created vector index {index} with dims={dims}")
                    existing = dims

            self._dims_cache[index] = existing

        if existing != dims:
            raise DimensionMismatchException(
                f"Index {index} holds {existing}-dimensional vectors, got {dims}"
            )

    def upsert_points(
        self,
        category: EntityCategory,
        points: List[VectorPoint],
        timeout: Optional[float] = None
    ) -> List[str]:
        """
        Write points in one bulk request

        Point ids are deterministic, so writing the same chunks again overwrites
        them. If any item fails, the points of this batch are removed again and
        the call raises.

        Returns:
            list: Point ids in input order

        Raises:
            VectorIndexException: If the bulk request or any item fails
        """
        if not points:
            return []

        index = self.index_name(category)
        lines = []
        for point in points:
            lines.append({"index": {"_index": index, "_id": point.id}})
            lines.append({**point.payload, "vector": point.vector})

        resp = self.client.request(
            "POST",
            "_bulk",
            body=lines,
            params={"refresh": "wait_for"},
            timeout=timeout,
            ndjson=True,
            error_cls=VectorIndexException
        )
        data = resp.json()

        if data.get("errors"):
            failures = [
                item.get("index", {}).get("error")
                for item in data.get("items", [])
                if item.get("index", {}).get("error")
            ]
            logger.error(f"Bulk upsert into {index} had {len(failures)} failed items, rolling back batch")
            self.delete_points_by_id(category, [p.id for p in points], timeout=timeout)
            raise VectorIndexException(f"Bulk upsert into {index} failed: {failures[:3]}")

        logger.info(f"Upserted {len(points)} points into {index}")
        return [point.id for point in points]

    def delete_points_by_id(
        self,
        category: EntityCategory,
        point_ids: List[str],
        timeout: Optional[float] = None
    ) -> int:
        if not point_ids:
            return 0
        return self._delete_by_query(category, {"ids": {"values": point_ids}}, timeout)

    def delete_stale_points(
        self,
        category: EntityCategory,
        entity_id: str,
        keep: int,
        timeout: Optional[float] = None
    ) -> int:
        """
        Remove points with ``chunk_index >= keep`` left by an earlier, longer run

        Returns:
            int: Number of deleted points
        """
        query = {
            "bool": {
                "filter": [
                    {"term": {"entity_id": entity_id}},
                    {"range": {"chunk_index": {"gte": keep}}},
                ]
            }
        }
        deleted = self._delete_by_query(category, query, timeout)
        if deleted:
            logger.info(f"Deleted {deleted} stale points for {entity_id}")
        return deleted

    def search(
        self,
        category: EntityCategory,
        vector: List[float],
        owner_id: str,
        k: int = 5,
        timeout: Optional[float] = None
    ) -> List[Dict[str, Any]]:
        """
        kNN search restricted to one owner's points

        Returns:
            list: Hits as ``{"id", "score", "payload"}`` dicts, best first
        """
        body = {
            "knn": {
                "field": "vector",
                "query_vector": vector,
                "k": k,
                "num_candidates": max(50, k * 10),
                "filter": {"term": {"owner_id": owner_id}},
            },
            "_source": {"excludes": ["vector"]},
        }
        resp = self.client.request(
            "POST",
            f"{self.index_name(category)}/_search",
            body=body,
            timeout=timeout,
            allowed_statuses=(404,),
            error_cls=VectorIndexException
        )
        if resp.status_code == 404:
            return []

        return [
            {"id": hit["_id"], "score": hit.get("_score"), "payload": hit.get("_source", {})}
            for hit in resp.json().get("hits", {}).get("hits", [])
        ]

    def _delete_by_query(
        self,
        category: EntityCategory,
        query: Dict[str, Any],
        timeout: Optional[float]
    ) -> int:
        resp = self.client.request(
            "POST",
            f"{self.index_name(category)}/_delete_by_query",
            body={"query": query},
            params={"refresh": "true", "conflicts": "proceed"},
            timeout=timeout,
            allowed_statuses=(404,),
            error_cls=VectorIndexException
        )
        if resp.status_code == 404:
            return 0
        return int(resp.json().get("deleted", 0))
