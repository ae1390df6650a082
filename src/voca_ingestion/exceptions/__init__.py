"""Custom exceptions for the ingestion worker"""

from .custom_exceptions import (
    IngestionException,
    ParserException,
    EmptyContentException,
    ChunkingException,
    ValidationException,
    S3Exception,
    ElasticsearchException,
    EntityStoreException,
    VectorIndexException,
    DimensionMismatchException,
    EmbeddingServiceException,
    TranscriptionException,
    LLMServiceException,
    JobTimeoutException,
    InvalidTransitionException,
    is_retryable
)

__all__ = [
    "IngestionException",
    "ParserException",
    "EmptyContentException",
    "ChunkingException",
    "ValidationException",
    "S3Exception",
    "ElasticsearchException",
    "EntityStoreException",
    "VectorIndexException",
    "DimensionMismatchException",
    "EmbeddingServiceException",
    "TranscriptionException",
    "LLMServiceException",
    "JobTimeoutException",
    "InvalidTransitionException",
    "is_retryable"
]
