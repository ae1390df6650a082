"""
Metadata extractor for extracted text
"""
import logging
import re
from typing import Optional

from ..models.schemas import TextMetadata


logger = logging.getLogger(__name__)


# Common English function words used by the language guess
ENGLISH_MARKERS = ['the', 'and', 'is', 'in', 'to', 'of', 'a', 'for', 'on', 'with']
ENGLISH_MIN_MATCHES = 3


class MetadataExtractor:
    """Extractor for simple text statistics"""

    def detect_language(self, text: str) -> str:
        """
        Guess the language of a text

        Returns "en" when at least three common English words appear
        surrounded by spaces, otherwise "unknown".
        """
        if not text:
            return "unknown"
        lower_text = text.lower()
        matches = sum(1 for word in ENGLISH_MARKERS if f" {word} " in lower_text)
        return "en" if matches >= ENGLISH_MIN_MATCHES else "unknown"

    def extract(self, text: Optional[str], page_count: Optional[int] = None) -> TextMetadata:
        """
        Compute word, character and sentence statistics

        Args:
            text: Extracted text
            page_count: Page count reported by the parser, if any

        Returns:
            TextMetadata: Text statistics
        """
        if not text:
            return TextMetadata(page_count=page_count)

        words = text.split()
        sentences = [s for s in re.split(r'[.!?]+', text) if s.strip()]
        avg_word_length = sum(len(w) for w in words) / len(words) if words else 0.0

        metadata = TextMetadata(
            page_count=page_count,
            word_count=len(words),
            char_count=len(text),
            sentence_count=len(sentences),
            avg_word_length=round(avg_word_length, 2),
            language=self.detect_language(text)
        )
        logger.debug(f"Text metadata: {metadata.model_dump()}")
        return metadata
