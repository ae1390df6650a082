"""
Embedding clients: the batch-embed HTTP service and a deterministic hash stub
"""
import math
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import requests

from ..exceptions import EmbeddingServiceException
from ..config import IngestionConfig


logger = logging.getLogger(__name__)


class EmbeddingClient(ABC):
    """Turns an ordered list of texts into one vector per text"""

    @abstractmethod
    def embed_batch(self, texts: List[str], timeout: Optional[float] = None) -> List[List[float]]:
        """
        Embed texts in a single call

        Args:
            texts: Texts to embed
            timeout: Request timeout in seconds

        Returns:
            list: One vector per input text, in input order

        Raises:
            EmbeddingServiceException: If embedding fails
        """
        pass


class HTTPEmbeddingClient(EmbeddingClient):
    """Client for the embedding server's ``/batch-embed`` endpoint"""

    # The server rejects larger batches
    MAX_BATCH_SIZE = 100

    def __init__(self, endpoint: str = None, model_name: str = None, timeout: float = None):
        """Initialize embedding client with configuration"""
        self.endpoint = (endpoint or IngestionConfig.EMBEDDING_ENDPOINT).rstrip("/")
        self.model_name = model_name or IngestionConfig.EMBEDDING_MODEL_NAME
        self.timeout = timeout or IngestionConfig.HTTP_TIMEOUT_SECONDS
        logger.info(f"HTTPEmbeddingClient initialized: {self.model_name} at {self.endpoint}")

    def embed_batch(self, texts: List[str], timeout: Optional[float] = None) -> List[List[float]]:
        if not texts:
            return []

        vectors = []
        for start in range(0, len(texts), self.MAX_BATCH_SIZE):
            batch = texts[start:start + self.MAX_BATCH_SIZE]
            vectors.extend(self._post_batch(batch, timeout or self.timeout))

        dims = {len(v) for v in vectors}
        if len(dims) != 1 or 0 in dims:
            raise EmbeddingServiceException(
                f"Embedding service returned inconsistent dimensions: {sorted(dims)}",
                retryable=False
            )
        return vectors

    def _post_batch(self, texts: List[str], timeout: float) -> List[List[float]]:
        payload = {"texts": texts, "normalize": True}
        try:
            response = requests.post(f"{self.endpoint}/batch-embed", json=payload, timeout=timeout)
        except requests.exceptions.Timeout as e:
            raise EmbeddingServiceException("Embedding request timeout", original_error=e)
        except requests.exceptions.ConnectionError as e:
            raise EmbeddingServiceException(
                "Cannot connect to embedding service - ensure it's running", original_error=e
            )
        except requests.exceptions.RequestException as e:
            raise EmbeddingServiceException("Embedding request failed", original_error=e)

        if response.status_code != 200:
            raise EmbeddingServiceException(
                f"Embedding API error: {response.status_code} - {response.text[:300]}",
                retryable=response.status_code >= 500 or response.status_code == 429
            )

        try:
            vectors = response.json()["vectors"]
        except (ValueError, KeyError, TypeError) as e:
            raise EmbeddingServiceException(
                "Malformed embedding response", original_error=e, retryable=False
            )

        if not isinstance(vectors, list) or len(vectors) != len(texts):
            raise EmbeddingServiceException(
                f"Embedding service returned {len(vectors) if isinstance(vectors, list) else 'no'} "
                f"vectors for {len(texts)} texts",
                retryable=False
            )
        return vectors


class HashEmbeddingClient(EmbeddingClient):
    """
    Deterministic stand-in for a real model

    Seeds a sine wave with a 32-bit string hash, so the same text always maps to
    the same vector. Useful for local runs and tests; carries no semantics.
    """

    def __init__(self, dimensions: int = None):
        self.dimensions = dimensions or IngestionConfig.EMBEDDING_DIMENSIONS
        logger.info(f"HashEmbeddingClient initialized: dims={self.dimensions}")

    @staticmethod
    def _hash(text: str) -> int:
        h = 0
        for ch in text:
            h = (h * 31 + ord(ch)) & 0xFFFFFFFF
        # interpret as signed 32-bit
        return h - 0x100000000 if h & 0x80000000 else h

    def embed_text(self, text: str) -> List[float]:
        seed = self._hash(text)
        return [math.sin(seed + i) * 0.1 for i in range(self.dimensions)]

    def embed_batch(self, texts: List[str], timeout: Optional[float] = None) -> List[List[float]]:
        return [self.embed_text(text) for text in texts]


def create_embedding_client(provider: str = None) -> EmbeddingClient:
    """
    Build the embedding client selected by configuration

    Args:
        provider: "http" or "hash" (defaults to EMBEDDING_PROVIDER)

    Returns:
        EmbeddingClient: The client

    Raises:
        ValueError: For an unknown provider
    """
    resolved = (provider or IngestionConfig.EMBEDDING_PROVIDER).strip().lower()
    if resolved == "http":
        return HTTPEmbeddingClient()
    if resolved == "hash":
        return HashEmbeddingClient()
    raise ValueError(f"Unsupported embedding provider: {resolved}")
