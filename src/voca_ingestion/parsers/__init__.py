"""Format-specific parsers and the text extractor"""

from .base_parser import BaseParser
from .text_parser import TextParser
from .pdf_parser import PDFParser
from .docx_parser import DOCXParser
from .text_extractor import TextExtractor

__all__ = [
    "BaseParser",
    "TextParser",
    "PDFParser",
    "DOCXParser",
    "TextExtractor"
]
