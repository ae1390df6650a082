"""
Text extractor: picks a parser by media type, then by file extension
"""
import logging
import os
from typing import Optional

from .base_parser import BaseParser
from .text_parser import TextParser
from .pdf_parser import PDFParser
from .docx_parser import DOCXParser
from ..models.schemas import ExtractionResult
from ..exceptions import IngestionException, ParserException


logger = logging.getLogger(__name__)


PDF_MEDIA_TYPE = "application/pdf"
DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_MEDIA_TYPES = {"text/plain", "text/markdown"}

EXTENSION_HANDLERS = {
    ".txt": "text",
    ".md": "text",
    ".pdf": "pdf",
    ".docx": "docx",
}


class TextExtractor:
    """Converts raw file bytes into plain text"""

    def __init__(self):
        self.parsers = {
            "text": TextParser(),
            "pdf": PDFParser(),
            "docx": DOCXParser(),
        }
        # Unknown formats are decoded best effort
        self.fallback_parser = TextParser()

    def resolve_handler(self, media_type: Optional[str], file_name: Optional[str]) -> Optional[str]:
        """
        Pick a handler name for a file

        Args:
            media_type: Declared media type, if any
            file_name: Original file name or object key, if any

        Returns:
            str or None: Handler name, or None for the raw-decode fallback
        """
        if media_type:
            mt = media_type.split(";")[0].strip().lower()
            if mt == PDF_MEDIA_TYPE:
                return "pdf"
            if mt == DOCX_MEDIA_TYPE or "word" in mt:
                return "docx"
            if mt in TEXT_MEDIA_TYPES:
                return "text"

        if file_name:
            extension = os.path.splitext(file_name)[1].lower()
            if extension in EXTENSION_HANDLERS:
                return EXTENSION_HANDLERS[extension]

        return None

    def _get_parser(self, handler: Optional[str]) -> BaseParser:
        if handler is None:
            return self.fallback_parser
        return self.parsers[handler]

    def extract(
        self,
        content: bytes,
        media_type: Optional[str] = None,
        file_name: Optional[str] = None
    ) -> ExtractionResult:
        """
        Extract plain text from file bytes

        Args:
            content: Raw file bytes
            media_type: Declared media type (takes precedence over the extension)
            file_name: File name used for the extension fallback

        Returns:
            ExtractionResult: Extracted text (may be empty for an empty input)

        Raises:
            ParserException: If the selected parser fails
        """
        handler = self.resolve_handler(media_type, file_name)
        handler_name = handler or "raw"
        display_name = file_name or "<unnamed>"

        if not content:
            logger.info(f"Empty input for {display_name}, nothing to extract")
            return ExtractionResult(text="", handler=handler_name)

        logger.info(f"Extracting {display_name} with '{handler_name}' handler ({len(content)} bytes)")

        parser = self._get_parser(handler)
        try:
            result = parser.parse(content, display_name)
        except IngestionException:
            raise
        except Exception as e:
            raise ParserException(f"Failed to extract text from {display_name}", original_error=e)

        return result.model_copy(update={"handler": handler_name})
