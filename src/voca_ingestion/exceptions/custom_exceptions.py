"""
Custom exception classes for the ingestion worker

Every exception carries a ``retryable`` flag. Permanent (data) errors end the job
immediately; transient (service) errors go back to the queue for another attempt.
"""
from typing import Optional


class IngestionException(Exception):
    """Base exception for the ingestion worker"""
    retryable = True

    def __init__(
        self,
        message: str,
        original_error: Exception = None,
        retryable: Optional[bool] = None
    ):
        self.message = message
        self.original_error = original_error
        if retryable is not None:
            self.retryable = retryable
        super().__init__(self.message)

    def __str__(self):
        if self.original_error is not None:
            return f"{self.message}: {self.original_error}"
        return self.message


class ParserException(IngestionException):
    """Exception raised during document parsing"""
    retryable = False


class EmptyContentException(IngestionException):
    """Extraction or transcription produced no text"""
    retryable = False


class ChunkingException(IngestionException):
    """Exception raised during text chunking"""
    retryable = False


class ValidationException(IngestionException):
    """Exception raised for malformed job payloads or records"""
    retryable = False


class S3Exception(IngestionException):
    """Exception raised during object store operations"""
    pass


class ElasticsearchException(IngestionException):
    """Exception raised during Elasticsearch operations"""
    pass


class EntityStoreException(ElasticsearchException):
    """Exception raised while reading or writing entity records"""
    pass


class VectorIndexException(ElasticsearchException):
    """Exception raised while provisioning or writing the vector index"""
    pass


class DimensionMismatchException(VectorIndexException):
    """Embedding size does not match the collection it is written to"""
    retryable = False


class EmbeddingServiceException(IngestionException):
    """Exception raised during embedding generation"""
    pass


class TranscriptionException(IngestionException):
    """Exception raised by the speech-to-text service"""
    pass


class LLMServiceException(IngestionException):
    """Exception raised during LLM service calls"""
    pass


class JobTimeoutException(IngestionException):
    """The job ran past its deadline"""
    pass


class InvalidTransitionException(IngestionException):
    """A status change that the state machine does not allow"""
    retryable = False


def is_retryable(error: Exception) -> bool:
    """
    Decide whether a failed job should go back to the queue

    Args:
        error: The exception raised by the pipeline

    Returns:
        bool: True for transient failures
    """
    if isinstance(error, IngestionException):
        return error.retryable
    return True
