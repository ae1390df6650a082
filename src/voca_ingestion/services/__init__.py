"""External service clients"""

from .s3_service import S3Service
from .elasticsearch_client import ElasticsearchClient
from .entity_store import EntityStore
from .vector_index_service import VectorIndexService
from .embedding_service import (
    EmbeddingClient,
    HTTPEmbeddingClient,
    HashEmbeddingClient,
    create_embedding_client
)
from .transcription_service import TranscriptionService
from .llm_service import LLMService
from .recovery_service import RecoveryService

__all__ = [
    "S3Service",
    "ElasticsearchClient",
    "EntityStore",
    "VectorIndexService",
    "EmbeddingClient",
    "HTTPEmbeddingClient",
    "HashEmbeddingClient",
    "create_embedding_client",
    "TranscriptionService",
    "LLMService",
    "RecoveryService"
]
