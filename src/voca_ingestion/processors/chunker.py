"""
Text chunking processor with sentence-boundary snapping
"""
import logging
from typing import List, Optional

from ..models.schemas import ChunkingConfig, ChunkingStrategy
from ..exceptions import ChunkingException


logger = logging.getLogger(__name__)


class TextChunker:
    """Processor for chunking text into bounded pieces"""

    def __init__(self, config: Optional[ChunkingConfig] = None):
        """
        Initialize text chunker

        Args:
            config: Chunking configuration (defaults: 500 chars, 50 overlap)
        """
        self.config = config or ChunkingConfig()
        logger.info(
            f"TextChunker initialized: size={self.config.chunk_size}, "
            f"overlap={self.config.chunk_overlap}, strategy={self.config.strategy.value}"
        )

    def _window_end(self, text: str, start: int) -> int:
        """End offset of the chunk starting at ``start``, snapped to a boundary if possible"""
        size = self.config.chunk_size
        end = min(start + size, len(text))
        if end >= len(text):
            return end

        window = text[start:end]
        break_point = max(window.rfind(". "), window.rfind("\n"))
        if break_point > size * self.config.boundary_threshold:
            # keep the terminator with the chunk
            return start + break_point + 1
        return end

    def _next_start(self, start: int, end: int) -> int:
        if self.config.strategy == ChunkingStrategy.FIXED_OVERLAP:
            return max(end - self.config.chunk_overlap, start + 1)
        return end

    def chunk_text(self, text: str) -> List[str]:
        """
        Chunk text into smaller pieces

        Walks forward through the text taking windows of ``chunk_size``
        characters. A window that does not reach the end of the text is cut at
        its last ". " or newline when that lies past ``boundary_threshold`` of
        the window. Chunks shorter than ``min_chunk_length`` after trimming are
        dropped, and at most ``max_chunks`` are returned.

        Args:
            text: Input text to chunk

        Returns:
            list: Trimmed chunk strings; empty only for blank input

        Raises:
            ChunkingException: If chunking fails
        """
        if not text or not text.strip():
            logger.warning("Empty text provided for chunking")
            return []

        try:
            if len(text) <= self.config.chunk_size:
                return [text.strip()]

            if len(text) > self.config.max_input_length:
                logger.warning(
                    f"Truncating text from {len(text)} to {self.config.max_input_length} chars"
                )
                text = text[:self.config.max_input_length]

            chunks = []
            start = 0
            while start < len(text) and len(chunks) < self.config.max_chunks:
                end = self._window_end(text, start)
                chunk = text[start:end].strip()

                if len(chunk) >= self.config.min_chunk_length:
                    chunks.append(chunk)
                else:
                    logger.debug(f"Skipping short chunk at offset {start}: {len(chunk)} chars")

                if end >= len(text):
                    break
                start = self._next_start(start, end)

            if len(chunks) >= self.config.max_chunks and start < len(text):
                logger.warning(f"Chunk limit of {self.config.max_chunks} reached, remaining text dropped")

            if not chunks:
                return [text.strip()]

            logger.info(f"Created {len(chunks)} chunks from text")
            return chunks

        except Exception as e:
            raise ChunkingException("Failed to chunk text", original_error=e)
