"""Text processors"""

from .chunker import TextChunker
from .metadata_extractor import MetadataExtractor
from .text_cleaner import TextCleaner

__all__ = [
    "TextChunker",
    "MetadataExtractor",
    "TextCleaner"
]
